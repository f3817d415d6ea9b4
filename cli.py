#!/usr/bin/env python3
"""
cli.py - cyclekernel Command Line

Runs the cycle kernel against a JSON ledger directory.

Commands:
    cyclekernel run               advance the city one cycle
    cyclekernel replay CYCLE_ID   re-run a stored cycle and compare checksums
    cyclekernel seeds             list stored cycle seeds
    cyclekernel validate-config   check a kernel config file

Exit codes:
    0  success
    1  actionable issue (write errors, replay mismatch, invalid config)
    2  fatal (ledger unavailable, missing file)
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

import config_schema
from ledger_store import JsonLedgerStore, LedgerUnavailableError
from receipts import StopRule, write_receipt_jsonl
from cyclesim.constants import TABLE_CYCLE_SEEDS
from cyclesim.cycle import run_cycle
from cyclesim.records import SEED_SPEC, read_records
from cyclesim.types_config import CycleMode
from cyclesim.types_result import CycleResult

console = Console()

DEFAULT_LEDGER = "ledger"

LEVEL_STYLE = {"none": "green", "light": "yellow", "moderate": "dark_orange", "heavy": "red"}


# =============================================================================
# OUTPUT HELPERS
# =============================================================================

def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    console.print(f"[yellow]⚠[/yellow] {message}")


def _fail(output: str, code: int, message: str, **extra: Any) -> None:
    if output == "json":
        click.echo(json.dumps({"error": message, **extra}))
    else:
        print_error(message)
    sys.exit(code)


def _read_structured(path: str) -> Any:
    """YAML or JSON by suffix."""
    p = Path(path)
    content = p.read_text()
    if p.suffix in (".yaml", ".yml"):
        return yaml.safe_load(content)
    return json.loads(content)


def _load_config(path: Optional[str]) -> "config_schema.KernelConfig":
    return config_schema.load(path) if path else config_schema.default()


def _ledger_dir(ledger: Optional[str], config) -> str:
    return ledger or config.ledger_dir or DEFAULT_LEDGER


def _render_result(result: CycleResult, title: str) -> None:
    s = result.summary
    level = s.get("recovery_level", "none")
    style = LEVEL_STYLE.get(level, "white")
    stats = result.stats

    content = (
        f"cycle:          {result.cycle_id}\n"
        f"cycle_weight:   {s.get('cycle_weight', '-')} ({s.get('cycle_weight_score', 0)})\n"
        f"civic_load:     {s.get('civic_load', '-')} ({s.get('civic_load_score', 0)})\n"
        f"pattern:        {s.get('pattern_flag', '-')}\n"
        f"shock:          {s.get('shock_flag', '-')}\n"
        f"migration:      {s.get('migration_drift', 0)}\n"
        f"recovery:       [{style}]{level}[/{style}] (overload {s.get('overload_score', 0)})\n"
        f"cooldowns:      {s.get('active_cooldowns', 'none')}\n"
        f"world_events:   {len(s.get('world_events', []))}"
    )
    border = "green" if result.ok else "red"
    console.print(Panel(content, title=f"[bold]{title}[/bold]", border_style=border))

    table = Table(title="Persistence")
    table.add_column("Destination")
    table.add_column("Intents", justify="right")
    for dest, n in sorted(stats.by_destination.items()):
        table.add_row(dest, str(n))
    console.print(table)

    if stats.dry_run or stats.replay:
        print_warning(f"{stats.skipped} intents skipped (no writes)")
    else:
        print_success(f"{stats.executed} intents executed")
    for err in stats.errors:
        print_error(err)
    for issue in result.audit_issues:
        print_warning(issue)
    if result.phase_timings_ms:
        timing = Table(title="Phase timings (ms)")
        timing.add_column("Phase")
        timing.add_column("ms", justify="right")
        for name, ms in result.phase_timings_ms.items():
            timing.add_row(name, f"{ms:.3f}")
        console.print(timing)


def _execute(ledger: str, mode: CycleMode, config, inputs: Optional[Dict[str, Any]],
             output: str, title: str, receipts_path: Optional[str] = None) -> CycleResult:
    store = JsonLedgerStore(ledger)
    try:
        result = run_cycle(store, mode=mode, config=config, inputs=inputs)
    except LedgerUnavailableError as e:
        _fail(output, 2, f"Ledger unavailable: {e}", ledger=ledger)
    except StopRule as e:
        _fail(output, 1, f"Cycle stopped: {e}")

    if receipts_path:
        with open(receipts_path, "a") as fh:
            for receipt in result.receipts:
                write_receipt_jsonl(receipt, fh)

    if output == "json":
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        _render_result(result, title)
    return result


# =============================================================================
# CLICK GROUP
# =============================================================================

@click.group()
@click.option("--log-level", default="WARNING",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Logging level")
def cli(log_level: str) -> None:
    """Cycle simulation kernel."""
    logging.basicConfig(level=getattr(logging, log_level.upper()),
                        format="%(levelname)s %(name)s: %(message)s")


# --- run ---

@cli.command("run")
@click.option("--ledger", "-l", default=None, help="Ledger directory")
@click.option("--config", "-c", "config_path", default=None, help="Kernel config (YAML/JSON)")
@click.option("--inputs", "-i", "inputs_path", default=None, help="World-state inputs (YAML/JSON)")
@click.option("--dry-run", is_flag=True, help="Queue writes but never execute them")
@click.option("--strict", is_flag=True, help="Abort on the first failure")
@click.option("--profile", is_flag=True, help="Record per-phase timings")
@click.option("--receipts", "receipts_path", default=None, help="Append cycle receipts to a JSONL file")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich")
def run_cmd(ledger: Optional[str], config_path: Optional[str], inputs_path: Optional[str],
            dry_run: bool, strict: bool, profile: bool, receipts_path: Optional[str],
            output: str) -> None:
    """Advance the city one cycle."""
    try:
        config = _load_config(config_path)
        inputs = _read_structured(inputs_path) if inputs_path else None
    except FileNotFoundError as e:
        _fail(output, 2, str(e))
    except ValueError as e:
        _fail(output, 1, f"Invalid config or inputs: {e}")

    base = config.mode
    mode = CycleMode(
        dry_run=dry_run or base.dry_run,
        strict=strict or base.strict,
        profile=profile or base.profile,
    )
    title = "Cycle (dry run)" if mode.dry_run else "Cycle"
    result = _execute(_ledger_dir(ledger, config), mode, config, inputs, output, title,
                      receipts_path)
    sys.exit(0 if result.ok else 1)


# --- replay ---

@cli.command("replay")
@click.argument("cycle_id", type=click.IntRange(min=1))
@click.option("--ledger", "-l", default=None, help="Ledger directory")
@click.option("--config", "-c", "config_path", default=None, help="Kernel config (YAML/JSON)")
@click.option("--inputs", "-i", "inputs_path", default=None, help="World-state inputs (YAML/JSON)")
@click.option("--strict", is_flag=True, help="Abort on the first failure")
@click.option("--profile", is_flag=True, help="Record per-phase timings")
@click.option("--receipts", "receipts_path", default=None, help="Append cycle receipts to a JSONL file")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich")
def replay_cmd(cycle_id: int, ledger: Optional[str], config_path: Optional[str],
               inputs_path: Optional[str], strict: bool, profile: bool,
               receipts_path: Optional[str], output: str) -> None:
    """Re-run a stored cycle with its seed and compare checksums."""
    try:
        config = _load_config(config_path)
        inputs = _read_structured(inputs_path) if inputs_path else None
    except FileNotFoundError as e:
        _fail(output, 2, str(e))
    except ValueError as e:
        _fail(output, 1, f"Invalid config or inputs: {e}")

    mode = CycleMode(replay=True, replay_cycle_id=cycle_id, strict=strict, profile=profile)
    result = _execute(_ledger_dir(ledger, config), mode, config, inputs, output,
                      f"Replay of cycle {cycle_id}", receipts_path)

    comparison = result.replay
    if output != "json" and comparison is not None:
        if comparison.match:
            print_success(f"checksum matches: {comparison.current_checksum}")
        else:
            print_error(f"checksum mismatch: {comparison.original_checksum} "
                        f"vs {comparison.current_checksum}")
            for d in comparison.differences:
                console.print(f"  {d['field']}: {d['original']} -> {d['current']}")
    sys.exit(0 if result.ok else 1)


# --- seeds ---

@cli.command("seeds")
@click.option("--ledger", "-l", default=DEFAULT_LEDGER, help="Ledger directory")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich")
def seeds_cmd(ledger: str, output: str) -> None:
    """List stored cycle seeds."""
    store = JsonLedgerStore(ledger)
    try:
        store.ping()
        records = [rec for _, rec in read_records(SEED_SPEC, store.read(TABLE_CYCLE_SEEDS))]
    except LedgerUnavailableError as e:
        _fail(output, 2, f"Ledger unavailable: {e}", ledger=ledger)

    if output == "json":
        click.echo(json.dumps(records, indent=2, default=str))
        return

    table = Table(title=f"Cycle seeds ({len(records)})")
    for name in ("Cycle", "Seed", "Weather", "Holiday", "Events", "Checksum"):
        table.add_column(name)
    for rec in records:
        table.add_row(str(rec["cycle_id"]), str(rec["seed"]), str(rec.get("weather", "")),
                      str(rec.get("holiday", "")), str(rec.get("event_count", "")),
                      rec["checksum"])
    console.print(table)


# --- validate-config ---

@cli.command("validate-config")
@click.argument("config_path")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich")
def validate_config_cmd(config_path: str, output: str) -> None:
    """Validate a kernel config file."""
    if not Path(config_path).exists():
        _fail(output, 2, "config not found", path=config_path)

    try:
        data = _read_structured(config_path)
    except (ValueError, yaml.YAMLError) as e:
        _fail(output, 1, f"Config is not parseable: {e}", path=config_path)

    errors = config_schema.validate(data if data is not None else {})
    config = None
    if not errors:
        try:
            config = config_schema.KernelConfig.from_dict(data or {})
        except ValueError as e:
            errors = [str(e)]

    if output == "json":
        click.echo(json.dumps({
            "path": config_path,
            "valid": not errors,
            "errors": errors,
            "config": config.to_dict() if config else None,
            "config_hash": config.config_hash() if config else None,
        }, indent=2))
    else:
        status, style = ("PASSED", "green") if not errors else ("FAILED", "red")
        if config is not None:
            t = config.recovery_thresholds
            content = (
                f"File: {config_path}\n"
                f"thresholds:  light {t['light']}  moderate {t['moderate']}  heavy {t['heavy']}\n"
                f"digest_window: {config.digest_window}    "
                f"max_crisis_spikes: {config.max_crisis_spikes}\n"
                f"config_hash: {config.config_hash()[:16]}..."
            )
        else:
            content = "\n".join([f"File: {config_path}", ""] +
                                [f"[red]✗[/red] {e}" for e in errors])
        console.print(Panel(content,
                            title=f"[bold {style}]Config Validation: {status}[/bold {style}]",
                            border_style=style))

    if errors:
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
