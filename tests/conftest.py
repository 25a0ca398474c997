"""Pytest fixtures and configuration for swipe tests.

Provides common fixtures for configuration, items, and providers.
"""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from swipe.config import reset_config
from swipe.models import NormalizedItem, UnsubscribeDescriptor
from swipe.providers.memory import InMemoryProvider


@pytest.fixture(autouse=True)
def reset_config_singleton() -> Generator[None, None, None]:
    """Reset the config singleton before each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def temp_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_yaml() -> str:
    """Return a valid config.yaml content."""
    return """
schema_version: 1

logging:
  level: DEBUG
  json_output: false

buffer:
  window_size: 10
  trigger_threshold: 3
  batch_size: 20
  group_threshold: 5

actions:
  undo_window_seconds: 30
  unsubscribe_timeout_seconds: 2

safety:
  extra_never_domains: ["MyBank.example"]
  extra_caution_domains: ["*.shop.example"]
"""


@pytest.fixture
def config_file(temp_config_dir: Path, sample_config_yaml: str) -> Path:
    """Create a temporary config file with valid content."""
    config_path = temp_config_dir / "config.yaml"
    config_path.write_text(sample_config_yaml)
    return config_path


@pytest.fixture
def set_config_env(config_file: Path) -> Generator[None, None, None]:
    """Set the SWIPE_CONFIG_PATH environment variable."""
    old_value = os.environ.get("SWIPE_CONFIG_PATH")
    os.environ["SWIPE_CONFIG_PATH"] = str(config_file)
    yield
    if old_value is None:
        del os.environ["SWIPE_CONFIG_PATH"]
    else:
        os.environ["SWIPE_CONFIG_PATH"] = old_value


def _make_item(
    item_id: str = "1",
    sender: str = "deals@promo.example.com",
    sender_name: str | None = "PROMO TEAM",
    subject: str = "Weekend sale",
    http: str | None = None,
    mailto: str | None = None,
    labels: tuple[str, ...] = (),
    headers: dict[str, Any] | None = None,
    **overrides: Any,
) -> NormalizedItem:
    """Create a NormalizedItem for testing.

    The defaults are neither personal nor transactional.
    """
    values: dict[str, Any] = {
        "id": item_id,
        "provider_id": f"p-{item_id}",
        "sender": sender,
        "sender_name": sender_name,
        "sender_domain": sender.rpartition("@")[2].lower(),
        "subject": subject,
        "unsubscribe": UnsubscribeDescriptor(http=http, mailto=mailto),
        "labels": frozenset(labels),
        "headers": headers or {},
    }
    values.update(overrides)
    return NormalizedItem(**values)


@pytest.fixture
def make_item() -> Callable[..., NormalizedItem]:
    """Factory fixture building NormalizedItems."""
    return _make_item


@pytest.fixture
def provider() -> InMemoryProvider:
    """Empty in-memory provider with every capability."""
    return InMemoryProvider()
