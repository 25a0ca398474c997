"""Tests for the command-line interface."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from swipe.cli import cli


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def no_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run from a directory without config/config.yaml."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SWIPE_CONFIG_PATH", raising=False)


class TestValidateConfig:
    """validate-config command."""

    def test_valid(self, runner: CliRunner, config_file: Path):
        result = runner.invoke(cli, ["validate-config", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "Configuration valid" in result.output

    def test_missing(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(cli, ["validate-config", "-c", str(tmp_path / "none.yaml")])
        assert result.exit_code == 1
        assert "Load error" in result.output


class TestTier:
    """tier command."""

    def test_tiers(self, runner: CliRunner, no_config: None):
        result = runner.invoke(cli, ["tier", "chase.com", "etsy.com"])
        assert result.exit_code == 0
        assert "never" in result.output
        assert "caution" in result.output

    def test_configured_domain(self, runner: CliRunner, config_file: Path):
        result = runner.invoke(cli, ["tier", "mybank.example", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "never" in result.output


class TestClassify:
    """classify command."""

    def test_classify_file(self, runner: CliRunner, tmp_path: Path, make_item, no_config: None):
        items = [
            make_item(item_id=str(i), http="https://promo.example.com/u").to_dict()
            for i in range(3)
        ]
        items_file = tmp_path / "items.json"
        items_file.write_text(json.dumps({"items": items}))
        stats_file = tmp_path / "stats.json"
        stats_file.write_text(
            json.dumps({"deals@promo.example.com": {"reputation_score": 1.0, "frequency_score": 1.0}})
        )

        result = runner.invoke(cli, ["classify", str(items_file), "--stats", str(stats_file)])

        assert result.exit_code == 0, result.output
        assert "Distribution: promo=3" in result.output

    def test_invalid_items(self, runner: CliRunner, tmp_path: Path):
        items_file = tmp_path / "items.json"
        items_file.write_text(json.dumps([{"subject": "no sender"}]))

        result = runner.invoke(cli, ["classify", str(items_file)])

        assert result.exit_code == 1
        assert "Invalid item" in result.output


class TestSimulate:
    """simulate command."""

    @pytest.mark.parametrize("action", ["delete", "keep", "domain_nuke"])
    def test_simulate(self, runner: CliRunner, no_config: None, action: str):
        result = runner.invoke(cli, ["simulate", "--count", "5", "--action", action])
        assert result.exit_code == 0, result.output
        assert "items consumed" in result.output
        assert "outcome: success" in result.output
