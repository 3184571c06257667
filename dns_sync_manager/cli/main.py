#!/usr/bin/env python3
"""
DNS Sync Manager - Command Line Interface

Main entry point for running, planning and scheduling DNS syncs and for
managing the stored providers, sync options and history.
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import Dict, Optional

import yaml
from rich.console import Console
from rich.table import Table

from ..core.errors import ConfigurationError, DNSSyncError
from ..core.models import SyncOptions, SyncRunSummary
from ..providers.base_provider import RetryPolicy
from ..providers.registry import default_registry
from ..storage.config_store import YAMLConfigStore
from ..storage.history import DEFAULT_HISTORY_LIMIT
from ..sync.orchestrator import OrchestratorSettings, SyncOrchestrator, TargetPlan
from ..sync.scheduler import DEFAULT_INTERVAL, SyncScheduler

console = Console()
logger = logging.getLogger(__name__)


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.output_file and args.command != "plan":
        print("Error: --output-file can only be used with plan")
        sys.exit(1)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Error: {e}")
        sys.exit(1)
    config_logger(config, verbose=args.verbose)

    try:
        orchestrator = build_orchestrator(config)
        success = COMMANDS[args.command](orchestrator, config, args)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        success = False
    except DNSSyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        success = False
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        success = False

    sys.exit(0 if success else 1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dns-sync",
        description="DNS Sync Manager - Keep DNS zones consistent across providers",
    )
    parser.add_argument(
        "--config",
        "-c",
        default="configs/config.yaml",
        help="Configuration file path (default: configs/config.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    parser.add_argument(
        "--output-file",
        "-o",
        help="File to save the plan output (only used with plan)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="Sync every target provider now")

    plan = subparsers.add_parser("plan", help="Show the changes for one target without applying")
    plan.add_argument("target_id", help="Target provider id")

    schedule = subparsers.add_parser("schedule", help="Sync on a fixed interval")
    schedule.add_argument("--interval", type=float, help="Seconds between runs")
    schedule.add_argument("--once", action="store_true", help="Run a single scheduled sync")

    history = subparsers.add_parser("history", help="Show sync history, newest first")
    history.add_argument("--limit", type=int, help="Number of entries to show")

    subparsers.add_parser("clear-history", help="Delete all sync history")
    subparsers.add_parser("providers", help="List configured providers")
    subparsers.add_parser("import-providers", help="Import providers from the config file")

    delete = subparsers.add_parser("delete-provider", help="Delete a provider")
    delete.add_argument("provider_id", help="Provider id")

    options = subparsers.add_parser("options", help="Show or change sync options")
    options.add_argument(
        "--overwrite-all", dest="overwrite_all", action="store_true", default=None,
        help="Create records missing on targets",
    )
    options.add_argument(
        "--no-overwrite-all", dest="overwrite_all", action="store_false",
        help="Only update records that already exist on targets",
    )
    options.add_argument(
        "--delete-extra", dest="delete_extra", action="store_true", default=None,
        help="Delete target records absent from the sources",
    )
    options.add_argument(
        "--no-delete-extra", dest="delete_extra", action="store_false",
        help="Never delete target records",
    )
    return parser


def load_config(config_path: str) -> Dict:
    """Load configuration from YAML file."""
    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"Configuration loaded from {config_path}")
    except FileNotFoundError:
        logger.warning(f"Config file {config_path} not found, using defaults")
        return get_default_config()
    except yaml.YAMLError as e:
        logger.error(f"Error parsing config file: {e}")
        raise ConfigurationError(f"Invalid configuration file {config_path}: {e}")

    if not isinstance(config, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")

    defaults = get_default_config()
    for section, values in defaults.items():
        if isinstance(values, dict):
            merged = dict(values)
            merged.update(config.get(section) or {})
            config[section] = merged
        else:
            config.setdefault(section, values)
    return config


def get_default_config() -> Dict:
    """Return default configuration."""
    return {
        "storage": {"path": "dns_sync_state.yaml", "history_limit": DEFAULT_HISTORY_LIMIT},
        "sync": {
            "overwrite_all": True,
            "delete_extra": False,
            "target_concurrency": 2,
            "fetch_concurrency": 4,
            "target_timeout": 300,
            "retry_attempts": 3,
            "retry_base_delay": 0.5,
            "interval": DEFAULT_INTERVAL,
            "bind_timeout": 30,
        },
        "providers": [],
        "logging": {"level": "INFO"},
    }


def config_logger(config: Dict, verbose: bool = False):
    """Configure logging."""
    logging_config = config.get("logging") or {}
    log_level = "DEBUG" if verbose else logging_config.get("level", "INFO")
    handlers = [logging.StreamHandler(sys.stdout)]

    log_file = logging_config.get("file")
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def build_orchestrator(config: Dict) -> SyncOrchestrator:
    """Create the orchestrator described by the configuration."""
    storage = config.get("storage") or {}
    sync = config.get("sync") or {}

    settings = OrchestratorSettings(
        target_concurrency=int(sync.get("target_concurrency", 2)),
        fetch_concurrency=int(sync.get("fetch_concurrency", 4)),
        target_timeout=float(sync.get("target_timeout", 300)),
        retry=RetryPolicy(
            attempts=int(sync.get("retry_attempts", 3)),
            base_delay=float(sync.get("retry_base_delay", 0.5)),
        ),
    )
    if settings.target_concurrency < 1 or settings.fetch_concurrency < 1:
        raise ConfigurationError("Concurrency limits must be at least 1")
    if settings.retry.attempts < 1:
        raise ConfigurationError("retry_attempts must be at least 1")

    return SyncOrchestrator(
        YAMLConfigStore(storage.get("path", "dns_sync_state.yaml")),
        default_registry(bind_timeout=float(sync.get("bind_timeout", 30))),
        settings=settings,
        history_limit=int(storage.get("history_limit", DEFAULT_HISTORY_LIMIT)),
        default_options=SyncOptions(
            overwrite_all=bool(sync.get("overwrite_all", True)),
            delete_extra=bool(sync.get("delete_extra", False)),
        ),
    )


def cmd_run(orchestrator: SyncOrchestrator, config: Dict, args) -> bool:
    with console.status("Syncing DNS records..."):
        summary = asyncio.run(orchestrator.run_all())
    display_summary(summary)
    return not summary.failed


def cmd_plan(orchestrator: SyncOrchestrator, config: Dict, args) -> bool:
    plan = asyncio.run(orchestrator.plan(args.target_id))
    display_plan(plan)
    if args.output_file:
        save_plan_output(plan, args.output_file)
        console.print(f"[green]Plan output saved to: {args.output_file}[/green]")
    return True


def cmd_schedule(orchestrator: SyncOrchestrator, config: Dict, args) -> bool:
    interval = args.interval or float(config["sync"].get("interval", DEFAULT_INTERVAL))
    scheduler = SyncScheduler(orchestrator, interval, on_summary=display_summary)
    console.print(f"[blue]Scheduled sync every {interval:g}s[/blue]")
    asyncio.run(scheduler.run_forever(max_runs=1 if args.once else None))
    return True


def cmd_history(orchestrator: SyncOrchestrator, config: Dict, args) -> bool:
    entries = orchestrator.history.list(args.limit)
    table = Table(title="Sync History")
    table.add_column("Time", style="cyan")
    table.add_column("Target", style="magenta")
    table.add_column("Sources", style="white")
    table.add_column("Records", justify="right")
    table.add_column("Changes", justify="right")
    table.add_column("Status")
    table.add_column("Error", style="red")

    for entry in entries:
        status_style = "green" if entry.success else "red"
        table.add_row(
            datetime.fromtimestamp(entry.timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S"),
            entry.target_name,
            ", ".join(entry.source_names) or "-",
            str(entry.record_count),
            f"+{entry.created} ~{entry.updated} -{entry.deleted}",
            f"[{status_style}]{entry.status}[/{status_style}]",
            entry.error or "",
        )
    console.print(table)
    return True


def cmd_clear_history(orchestrator: SyncOrchestrator, config: Dict, args) -> bool:
    orchestrator.history.clear()
    console.print("[green]Sync history cleared[/green]")
    return True


def cmd_providers(orchestrator: SyncOrchestrator, config: Dict, args) -> bool:
    table = Table(title="DNS Providers")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="magenta")
    table.add_column("Type")
    table.add_column("Role")
    table.add_column("Domains")
    table.add_column("Sources")

    for provider in orchestrator.providers.list_providers_public():
        domains = ", ".join(rule["domain"] for rule in provider["domains"]) or "all domains"
        table.add_row(
            provider["id"],
            provider["name"],
            provider["type"],
            provider["role"],
            domains,
            ", ".join(provider["sourceProviderIds"]),
        )
    console.print(table)
    return True


def cmd_import_providers(orchestrator: SyncOrchestrator, config: Dict, args) -> bool:
    entries = config.get("providers") or []
    if not entries:
        console.print("[yellow]No providers found in configuration file[/yellow]")
        return False
    for entry in entries:
        provider = orchestrator.providers.save_provider(entry)
        console.print(f"[green]Imported {provider.role.value} provider {provider.name} ({provider.id})[/green]")
    return True


def cmd_delete_provider(orchestrator: SyncOrchestrator, config: Dict, args) -> bool:
    if orchestrator.providers.delete_provider(args.provider_id):
        console.print(f"[green]Deleted provider {args.provider_id}[/green]")
        return True
    console.print(f"[red]Provider {args.provider_id} not found[/red]")
    return False


def cmd_options(orchestrator: SyncOrchestrator, config: Dict, args) -> bool:
    options = orchestrator.sync_settings.get_sync_options()
    if args.overwrite_all is not None or args.delete_extra is not None:
        if args.overwrite_all is not None:
            options.overwrite_all = args.overwrite_all
        if args.delete_extra is not None:
            options.delete_extra = args.delete_extra
        orchestrator.sync_settings.save_sync_options(options)
    console.print(
        f"overwrite_all: [bold]{options.overwrite_all}[/bold]  "
        f"delete_extra: [bold]{options.delete_extra}[/bold]"
    )
    return True


COMMANDS = {
    "run": cmd_run,
    "plan": cmd_plan,
    "schedule": cmd_schedule,
    "history": cmd_history,
    "clear-history": cmd_clear_history,
    "providers": cmd_providers,
    "import-providers": cmd_import_providers,
    "delete-provider": cmd_delete_provider,
    "options": cmd_options,
}


def display_summary(summary: SyncRunSummary):
    """Display the per-target result of a sync run."""
    table = Table(title="DNS Sync Summary")
    table.add_column("Target", style="cyan")
    table.add_column("Sources", style="white")
    table.add_column("Records", justify="right")
    table.add_column("Created", justify="right", style="green")
    table.add_column("Updated", justify="right", style="yellow")
    table.add_column("Deleted", justify="right", style="red")
    table.add_column("Status")

    for outcome in summary.success + summary.failed:
        style = "green" if outcome.succeeded else "red"
        status = outcome.state.value
        if outcome.error:
            status += f": {outcome.error}"
        table.add_row(
            outcome.target_name,
            ", ".join(outcome.source_names) or "-",
            str(outcome.record_count),
            str(outcome.result.created),
            str(outcome.result.updated),
            str(outcome.result.deleted),
            f"[{style}]{status}[/{style}]",
        )

    console.print(table)
    console.print(
        f"[bold]Succeeded: {len(summary.success)}, failed: {len(summary.failed)}[/bold]"
    )


def display_plan(plan: TargetPlan):
    """Display the planned changes for one target."""
    table = Table(title=f"Planned changes for {plan.target.name}")
    table.add_column("Operation", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Name", style="white")
    table.add_column("Content")
    table.add_column("TTL", justify="right")

    for label, records in (
        ("Update", plan.actions.updates),
        ("Create", plan.actions.creates),
        ("Delete", plan.actions.deletes),
    ):
        for record in records:
            table.add_row(label, record.type.value, record.name, record.content, str(record.ttl))

    console.print(table)
    console.print(
        f"\n[bold]Total changes: {plan.actions.total_changes}[/bold] "
        f"({len(plan.desired)} desired, {len(plan.existing)} existing, "
        f"sources: {', '.join(plan.source_names)})"
    )


def save_plan_output(plan: TargetPlan, output_file: str):
    """Save a plan to a text file."""
    with open(output_file, "w") as f:
        f.write("=" * 60 + "\n")
        f.write("DNS SYNC MANAGER - PLAN SUMMARY\n")
        f.write("=" * 60 + "\n\n")

        f.write(f"Target: {plan.target.name} ({plan.target.id})\n")
        f.write(f"Sources: {', '.join(plan.source_names)}\n")
        f.write(f"Total Changes: {plan.actions.total_changes}\n")
        f.write(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n\n")

        for title, symbol, records in (
            ("RECORDS TO UPDATE", "~", plan.actions.updates),
            ("RECORDS TO CREATE", "+", plan.actions.creates),
            ("RECORDS TO DELETE", "-", plan.actions.deletes),
        ):
            if not records:
                continue
            f.write(f"{title}:\n")
            f.write("-" * 20 + "\n")
            for record in records:
                f.write(f"  {symbol} {record.type.value:<6} {record.name:<30} -> {record.content}\n")
            f.write("\n")

        f.write("=" * 60 + "\n")
        f.write("END OF PLAN SUMMARY\n")
        f.write("=" * 60 + "\n")

    logger.info(f"Plan output saved to: {output_file}")


if __name__ == "__main__":
    main()
