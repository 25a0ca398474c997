"""Command-line interface for the swipe inbox core.

Provides commands for configuration validation, batch classification,
domain safety lookups, and an end-to-end simulation against the in-memory
provider.

Usage:
    python -m swipe validate-config
    python -m swipe classify items.json --stats stats.json
    python -m swipe tier chase.com news.example.com
    python -m swipe simulate --count 40 --action delete
"""

from __future__ import annotations

import asyncio
import json
import sys
import uuid
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.table import Table

from swipe.config import validate_config_file
from swipe.core.logging import configure_logging, set_correlation_id

if TYPE_CHECKING:
    from swipe.config_schema import AppConfig

console = Console()


def _load_app_config(config_path: Path | None) -> AppConfig:
    """Load config, using defaults when no config file exists.

    Prints an actionable message and calls sys.exit(1) on invalid config.
    """
    from swipe.config import get_config, get_config_path, load_config
    from swipe.config_schema import AppConfig
    from swipe.core.errors import ConfigLoadError, ConfigValidationError

    path = config_path or get_config_path()
    if not path.exists():
        console.print(f"[dim]No config file at {path}, using defaults.[/dim]")
        return AppConfig()

    try:
        return load_config(path) if config_path else get_config()
    except (ConfigLoadError, ConfigValidationError) as e:
        console.print(
            f"[red]Config error:[/red] {e}\n\n"
            "Run [cyan]swipe validate-config[/cyan] for details."
        )
        sys.exit(1)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Cannot read {path}:[/red] {e}")
        sys.exit(1)


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file (default: config/config.yaml)",
)


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
def cli(debug: bool) -> None:
    """Swipe inbox - classify, buffer and act on bulk mail."""
    log_level = "DEBUG" if debug else "WARNING"
    configure_logging(log_level=log_level, json_output=False)
    set_correlation_id(str(uuid.uuid4()))


@cli.command("validate-config")
@config_option
def validate_config(config_path: Path | None) -> None:
    """Validate the configuration file.

    Checks that config.yaml exists and passes schema validation.
    Reports specific errors for invalid fields.
    """
    console.print(f"Validating config: [cyan]{config_path or 'config/config.yaml'}[/cyan]")

    is_valid, message = validate_config_file(config_path)

    if is_valid:
        console.print(f"\n[green]✓[/green] {message}")
        sys.exit(0)
    else:
        console.print(f"\n[red]✗[/red] {message}")
        sys.exit(1)


@cli.command("classify")
@click.argument("items_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--stats",
    "stats_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON object of sender address -> {frequency_score, reputation_score}",
)
@click.option("--gmail", is_flag=True, help="Items are raw Gmail metadata payloads")
def classify_items(items_file: Path, stats_file: Path | None, gmail: bool) -> None:
    """Classify a JSON list of items and show the results."""
    from swipe.classifier.scorer import classify_batch
    from swipe.models import NormalizedItem, SenderStats
    from swipe.providers.normalize import normalize_gmail_message

    raw = _read_json(items_file)
    if isinstance(raw, dict):
        raw = raw.get("items") or raw.get("messages") or []
    if not isinstance(raw, list):
        console.print("[red]Items file must hold a JSON list (or an object with 'items').[/red]")
        sys.exit(1)

    try:
        items = [normalize_gmail_message(r) if gmail else NormalizedItem.from_dict(r) for r in raw]
    except (KeyError, TypeError, ValueError) as e:
        console.print(f"[red]Invalid item:[/red] {e}")
        sys.exit(1)

    stats: dict[str, SenderStats] = {}
    if stats_file:
        for sender, values in _read_json(stats_file).items():
            stats[sender.lower()] = SenderStats(
                frequency_score=values.get("frequency_score", 0.0),
                reputation_score=values.get("reputation_score", 0.5),
            )

    results = classify_batch(items, stats)

    table = Table(title=f"Classified {len(items)} items")
    table.add_column("ID", style="dim")
    table.add_column("Sender")
    table.add_column("Type", style="cyan")
    table.add_column("Confidence", justify="right")
    table.add_column("Rule", style="dim")
    for item in items:
        result = results[item.id]
        table.add_row(
            item.id, item.sender, result.type, f"{result.confidence:.2f}", result.rule
        )
    console.print(table)

    distribution = Counter(result.type for result in results.values())
    console.print(
        "Distribution: "
        + ", ".join(f"{kind}={count}" for kind, count in distribution.most_common())
    )


@cli.command("tier")
@click.argument("domains", nargs=-1, required=True)
@config_option
def tier(domains: tuple[str, ...], config_path: Path | None) -> None:
    """Show the trust tier and domain-action verdict of each domain."""
    from swipe.classifier.safety import SafetyPolicy

    policy = SafetyPolicy.from_config(_load_app_config(config_path).safety)

    table = Table()
    table.add_column("Domain")
    table.add_column("Tier", style="cyan")
    table.add_column("Can nuke")
    table.add_column("Confirm")
    table.add_column("Message", style="dim")
    for domain in domains:
        info = policy.domain_safety_info(domain.lower())
        table.add_row(
            info["domain"],
            info["tier"],
            "[green]yes[/green]" if info["can_act"] else "[red]no[/red]",
            "yes" if info["requires_confirmation"] else "no",
            info["message"] or "",
        )
    console.print(table)


@cli.command("simulate")
@click.option("--count", default=20, type=int, help="Number of swipes to perform")
@click.option(
    "--action",
    "action",
    type=click.Choice(["delete", "unsubscribe", "block", "keep", "domain_nuke"]),
    default="delete",
    help="Action applied to every swipe",
)
@click.option("--seed", default=0, type=int, help="Mock mailbox seed")
@config_option
def simulate(count: int, action: str, seed: int, config_path: Path | None) -> None:
    """Drive a buffer and orchestrator against a mock mailbox."""
    config = _load_app_config(config_path)
    try:
        asyncio.run(_run_simulation(config, count, action, seed))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(130)


async def _run_simulation(config: AppConfig, count: int, action: str, seed: int) -> None:
    """Async implementation of simulate command."""
    import httpx

    from swipe.classifier.safety import SafetyPolicy
    from swipe.engine.actions import ActionOptions, ActionOrchestrator
    from swipe.engine.buffer import AdaptiveBuffer
    from swipe.providers.memory import MockMailbox

    mailbox = MockMailbox(seed=seed)
    buffer = AdaptiveBuffer(
        mailbox.generate(config.buffer.window_size),
        refill=mailbox.refill_source(config.buffer.batch_size),
        config=config.buffer,
    )
    # Unsubscribe links of the mock mailbox never leave the process
    orchestrator = ActionOrchestrator(
        config=config.actions,
        policy=SafetyPolicy.from_config(config.safety),
        http_transport=httpx.MockTransport(lambda request: httpx.Response(200)),
    )

    outcomes: Counter[str] = Counter()
    consumed = 0
    for _ in range(count):
        if not buffer.window:
            break
        entry = buffer.window[0]
        result = await orchestrator.execute(
            action, entry.item, mailbox.provider, ActionOptions(confirmed=True)
        )
        outcomes[result.outcome] += 1
        ids = list(entry.member_ids) or [entry.item.id]
        if action == "domain_nuke" and result.success:
            consumed += buffer.nuke_domain(entry.item.sender_domain)
            continue
        await buffer.consume_many(ids)
        consumed += len(ids)

    table = Table(title=f"Simulated {sum(outcomes.values())} '{action}' swipes")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for outcome, n in sorted(outcomes.items()):
        table.add_row(f"outcome: {outcome}", str(n))
    table.add_row("items consumed", str(consumed))
    table.add_row("items pending", str(buffer.pending_count))
    table.add_row("window entries", str(len(buffer.window)))
    table.add_row("live undo tokens", str(orchestrator.pending_undo_count))
    table.add_row("messages in trash", str(len(mailbox.provider.trashed)))
    table.add_row("filters created", str(len(mailbox.provider.filters)))
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
