"""incident-linker CLI — cross-source maritime incident deduplication.

Commands:
  init-db    — create database tables
  load       — insert collector output (JSON list of raw records)
  process    — link new records to canonical incidents
  dedup      — run a batch cross-source deduplication pass
  match      — show how one record scores against canonical incidents
  integrity  — list merge-chain violations
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from incident_linker.config import settings

app = typer.Typer(
    name="incident-linker",
    help="Cross-source maritime incident deduplication.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_db_cmd():
    """Create all tables (idempotent)."""
    from incident_linker.database import init_db

    try:
        init_db()
    except Exception as e:
        console.print(f"[red]Database setup failed: {e}[/red]")
        raise typer.Exit(1)
    console.print("[green]Database ready.[/green]")


@app.command("load")
def load(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with a list of raw records"),
):
    """Validate and insert raw records; duplicates by (source, reference id) are skipped."""
    from incident_linker.database import SessionLocal
    from incident_linker.modules.incident_store import SqlIncidentStore, StoreWriteError
    from incident_linker.schemas.raw_record import RawRecordIn

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON in {path}: {e}[/red]")
        raise typer.Exit(1)
    if isinstance(payload, dict):
        payload = payload.get("records", [])
    if not isinstance(payload, list):
        console.print("[red]Expected a JSON list of records.[/red]")
        raise typer.Exit(1)

    valid: list[RawRecordIn] = []
    rejected = 0
    for i, item in enumerate(payload):
        try:
            valid.append(RawRecordIn.model_validate(item))
        except ValidationError as e:
            rejected += 1
            console.print(f"[yellow]Record #{i} rejected: {e.error_count()} validation error(s)[/yellow]")

    db = SessionLocal()
    try:
        stats = SqlIncidentStore(db).add_records(valid)
    except StoreWriteError as e:
        console.print(f"[red]Load failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        db.close()

    console.print(
        f"[green]Loaded {stats['inserted']} records[/green] "
        f"({stats['skipped']} duplicates skipped, {rejected} rejected)"
    )


@app.command("process")
def process(
    limit: Optional[int] = typer.Option(None, "--limit", help="Max records to link this run"),
):
    """Link new records to existing canonical incidents or create new ones."""
    from incident_linker.database import SessionLocal
    from incident_linker.modules.incident_linking import process_new_records
    from incident_linker.modules.incident_store import SqlIncidentStore, StoreUnavailableError

    db = SessionLocal()
    try:
        stats = process_new_records(SqlIncidentStore(db), limit=limit)
    except StoreUnavailableError as e:
        console.print(f"[red]Processing failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        db.close()

    _print_stats("Ingest linking", stats)
    if stats["errors"]:
        console.print(f"[yellow]{stats['errors']} record(s) could not be linked.[/yellow]")


@app.command("dedup")
def dedup(
    dry_run: bool = typer.Option(False, "--dry-run", help="Score and plan merges without writing"),
    days: int = typer.Option(settings.DEDUP_LOOKBACK_DAYS, "--days", help="Lookback window in days"),
    max_records: int = typer.Option(settings.DEDUP_MAX_RECORDS, "--max-records", help="Max records per pass"),
    threshold: float = typer.Option(
        settings.DEDUP_CONFIDENCE_THRESHOLD, "--threshold", help="Merge confidence threshold",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
):
    """Run one batch cross-source deduplication pass."""
    from incident_linker.database import SessionLocal
    from incident_linker.modules.deduplicator import DedupConfig, DedupRunError, run_deduplication_pass
    from incident_linker.modules.incident_store import SqlIncidentStore

    config = DedupConfig(
        lookback_days=days,
        max_records=max_records,
        confidence_threshold=threshold,
        dry_run=dry_run,
    )
    db = SessionLocal()
    try:
        summary = run_deduplication_pass(SqlIncidentStore(db), config)
    except DedupRunError as e:
        console.print(f"[red]Deduplication failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        db.close()

    if as_json:
        typer.echo(json.dumps(summary.to_dict(), indent=2, default=str))
        return

    counts = {k: v for k, v in summary.to_dict().items() if k != "matches"}
    _print_stats("Deduplication (dry run)" if dry_run else "Deduplication", counts)
    if summary.matches:
        table = Table(title="Matches")
        table.add_column("Primary", justify="right")
        table.add_column("Secondary", justify="right")
        table.add_column("Score", justify="right")
        table.add_column("Action")
        table.add_column("Fields")
        for m in summary.matches:
            table.add_row(
                f"{m['primaryId']} ({m['primarySource']})",
                f"{m['secondaryId']} ({m['secondarySource']})",
                f"{m['score']:.3f}",
                m["action"],
                ", ".join(m["fields"]) or "—",
            )
        console.print(table)


@app.command("match")
def match(
    record_id: int = typer.Argument(..., help="Raw record id"),
):
    """Score one record against nearby canonical incidents (read-only)."""
    from incident_linker.database import SessionLocal
    from incident_linker.modules.candidate_finder import find_match
    from incident_linker.modules.incident_store import SqlIncidentStore

    db = SessionLocal()
    try:
        store = SqlIncidentStore(db)
        record = store.get_record(record_id)
        if record is None:
            console.print(f"[red]Record {record_id} not found.[/red]")
            raise typer.Exit(1)
        result = find_match(store, record)
    finally:
        db.close()

    if result.evaluations:
        table = Table(title=f"Candidates for record {record_id}")
        table.add_column("Incident", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("Time", justify="right")
        table.add_column("Spatial", justify="right")
        table.add_column("Vessel", justify="right")
        table.add_column("Override")
        for ev in result.evaluations:
            table.add_row(
                str(ev.incident_id),
                f"{ev.score.total:.3f}",
                f"{ev.score.time:.2f}",
                f"{ev.score.spatial:.2f}",
                f"{ev.score.vessel:.2f}",
                ev.override.rule or "",
            )
        console.print(table)

    if result.matched:
        console.print(f"[green]Matched canonical incident {result.canonical_id}[/green]")
    else:
        console.print(f"[yellow]No match[/yellow] ({result.reason})")


@app.command("integrity")
def integrity():
    """List secondaries whose merge target is missing or itself merged."""
    from incident_linker.database import SessionLocal
    from incident_linker.modules.incident_store import SqlIncidentStore

    db = SessionLocal()
    try:
        violations = SqlIncidentStore(db).query_chain_violations()
    finally:
        db.close()

    if not violations:
        console.print("[green]No merge-chain violations.[/green]")
        return
    table = Table(title="Merge-chain violations")
    table.add_column("Record", justify="right")
    table.add_column("Merged into", justify="right")
    table.add_column("Problem")
    for v in violations:
        table.add_row(str(v["record_id"]), str(v["merged_into_id"]), v["problem"])
    console.print(table)
    raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _print_stats(title: str, stats: dict) -> None:
    table = Table(title=title)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key, value in stats.items():
        table.add_row(key, str(value))
    console.print(table)
