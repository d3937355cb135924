"""
Ledger CLI: capture evidence documents, verify platform state against stored
predictions, inspect context changes and plan repredictions.

Usage (from repo root):
  python tools/ledger.py collect-context --dir data/context [--scope S] [--dry-run]
  python tools/ledger.py verify-matchday --fixtures-dir fixtures [--scope S] [--model M] [--no-check-outdated]
  python tools/ledger.py verify-bonus --fixtures-dir fixtures [--scope S] [--model M]
  python tools/ledger.py context-changes [--scope S] [--count 10] [--seed 42]
  python tools/ledger.py reprediction-plan --fixtures-dir fixtures [--kind matchday] [--max-repredictions N]
  python tools/ledger.py serve [--host 127.0.0.1] [--port 8000]

Verification exit codes: 0 pass, 1 discrepancies, 2 init (no local predictions).
Settings come from the environment (DATABASE_URL, LEDGER_SCOPE, LEDGER_MODEL, ...).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

# Add backend to path when run from repo root
_backend = Path(__file__).resolve().parent.parent / "backend"
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from core.clock import as_utc, utc_now
from core.config import Settings, get_settings
from core.database import DatabaseManager, dispose_database, get_database_manager, init_database
from core.errors import LedgerError
from core.logging import setup_logging
from domain.predictions import NO_REPREDICTION
from evaluation.context_changes import DEFAULT_CHANGES_COUNT, build_context_changes
from evaluation.staleness import StalenessEvaluator
from ingestion.connectors.recorded_platform import RecordedPlatformClient
from ingestion.context_capture import ContextCapture, load_documents_from_dir
from pipeline.reprediction import RepredictionKind, next_action
from repositories.prediction_repo import PredictionRepository
from runner.verify_runner import KIND_BONUS, KIND_MATCHDAY, exit_code_for, render_text, run_verification
from services.document_store import VersionedDocumentStore

logger = logging.getLogger("ledger")


def _parse_now_utc(s: Optional[str]) -> datetime:
    if not s or not s.strip():
        return utc_now()
    return as_utc(datetime.fromisoformat(s.strip().replace("Z", "+00:00")))


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


async def cmd_collect_context(args: argparse.Namespace, settings: Settings, db: DatabaseManager) -> int:
    documents = load_documents_from_dir(args.dir, args.pattern)
    if not documents:
        print(f"No documents matching {args.pattern} in {args.dir}")
        return 0
    capture = ContextCapture(VersionedDocumentStore(db), settings.history_prefixes)
    summary = await capture.capture(documents, args.scope, _parse_now_utc(args.now_utc), dry_run=args.dry_run)
    if args.json:
        _print_json(summary.to_dict())
    else:
        for d in summary.documents:
            version = f"v{d.version}" if d.version is not None else "-"
            stamped = " (stamped)" if d.stamped else ""
            error = f": {d.error}" if d.error else ""
            print(f"  {d.status:<10} {d.name} {version}{stamped}{error}")
        print(f"Saved {summary.saved}, unchanged {summary.unchanged}, failed {summary.failed}"
              + (" (dry-run)" if args.dry_run else ""))
    return 1 if summary.failed else 0


async def cmd_verify(args: argparse.Namespace, settings: Settings, db: DatabaseManager, kind: str) -> int:
    platform = RecordedPlatformClient(args.fixtures_dir)
    report = await run_verification(
        db,
        platform,
        kind,
        args.scope,
        args.model,
        excluded_documents=settings.staleness_excluded,
        check_outdated=not args.no_check_outdated,
    )
    if args.json:
        _print_json(report.to_dict())
    else:
        print(render_text(report))
    return exit_code_for(report)


async def cmd_context_changes(args: argparse.Namespace, settings: Settings, db: DatabaseManager) -> int:
    report = await build_context_changes(VersionedDocumentStore(db), args.scope, args.count, args.seed)
    if args.json:
        _print_json(report.to_dict())
        return 0
    if report.total_documents == 0:
        print(f"No context documents found for scope {args.scope}")
        return 0
    for change in report.changes:
        print(f"== {change.name}: v{change.previous_version} ({change.previous_created_at}) "
              f"-> v{change.latest_version} ({change.latest_created_at})")
        for line in change.diff:
            print(line)
        print()
    if report.changes:
        print(f"Found changes in {len(report.changes)} of {len(report.checked)} document(s)")
    else:
        print("No changes found between versions")
    return 0


async def cmd_reprediction_plan(args: argparse.Namespace, settings: Settings, db: DatabaseManager) -> int:
    max_repredictions = args.max_repredictions
    if max_repredictions is None:
        max_repredictions = settings.max_repredictions
    platform = RecordedPlatformClient(args.fixtures_dir)
    if args.kind == KIND_BONUS:
        states = await platform.get_bonus_states(args.scope)
    else:
        states = await platform.get_submitted_values(args.scope)
    store = VersionedDocumentStore(db)
    staleness = StalenessEvaluator(store)
    rows = []
    for state in states:
        entity = state.entity
        async with db.session() as session:
            record = await PredictionRepository(session).get_latest(entity.entity_key, args.model, args.scope)
        current = record.reprediction_index if record is not None else NO_REPREDICTION
        action = next_action(current, max_repredictions)
        plan = action.describe()
        if record is not None and action.kind is RepredictionKind.CREATE_REPREDICTION:
            verdict = await staleness.evaluate(record, args.scope, settings.staleness_excluded)
            if not verdict.outdated:
                plan = "keep, prediction is up to date"
        rows.append({"entity": entity.display_name, "current_index": current, "plan": plan})
    if args.json:
        _print_json({"scope": args.scope, "model": args.model, "max_repredictions": max_repredictions, "entities": rows})
    else:
        limit = "unlimited" if max_repredictions is None else str(max_repredictions)
        print(f"Reprediction plan for {args.scope} ({args.model}, max {limit})")
        for row in rows:
            print(f"  {row['entity']}: current {row['current_index']}, {row['plan']}")
    return 0


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Matchday ledger operations")
    sub = parser.add_subparsers(dest="command", required=True)

    def common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--scope", default=settings.scope, help=f"Scope (default: {settings.scope})")
        p.add_argument("--json", action="store_true", help="Print JSON instead of text")

    p = sub.add_parser("collect-context", help="Capture a directory of context documents")
    common(p)
    p.add_argument("--dir", required=True, help="Directory with collected documents")
    p.add_argument("--pattern", default="*.csv", help="File glob (default: *.csv)")
    p.add_argument("--now-utc", default=None, help="Optional ISO8601 capture time")
    p.add_argument("--dry-run", action="store_true", help="Report what would be saved without writing")

    for name, kind in (("verify-matchday", KIND_MATCHDAY), ("verify-bonus", KIND_BONUS)):
        p = sub.add_parser(name, help=f"Verify {kind} predictions against recorded platform state")
        common(p)
        p.add_argument("--fixtures-dir", required=True, help="Directory with <scope>.json platform fixtures")
        p.add_argument("--model", default=settings.model, help=f"Model (default: {settings.model})")
        p.add_argument("--no-check-outdated", action="store_true", help="Skip the staleness check")
        p.set_defaults(kind=kind)

    p = sub.add_parser("context-changes", help="Show changes between latest and previous document versions")
    common(p)
    p.add_argument("-n", "--count", type=int, default=DEFAULT_CHANGES_COUNT, help="Documents to show (default: 10)")
    p.add_argument("--seed", type=int, default=None, help="Random seed for document selection")

    p = sub.add_parser("reprediction-plan", help="Show the next reprediction action per entity")
    common(p)
    p.add_argument("--fixtures-dir", required=True, help="Directory with <scope>.json platform fixtures")
    p.add_argument("--kind", choices=[KIND_MATCHDAY, KIND_BONUS], default=KIND_MATCHDAY)
    p.add_argument("--model", default=settings.model, help=f"Model (default: {settings.model})")
    p.add_argument("--max-repredictions", type=int, default=None, help="Reprediction limit (default: env or unlimited)")

    p = sub.add_parser("serve", help="Run the read-only HTTP API with uvicorn")
    p.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    p.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    return parser


async def _main(argv: Optional[List[str]] = None) -> int:
    settings = get_settings()
    setup_logging(settings)
    args = build_parser(settings).parse_args(argv)

    await init_database(settings.database_url)
    try:
        db = get_database_manager()
        await db.create_schema()
        if args.command == "collect-context":
            return await cmd_collect_context(args, settings, db)
        if args.command in ("verify-matchday", "verify-bonus"):
            return await cmd_verify(args, settings, db, args.kind)
        if args.command == "context-changes":
            return await cmd_context_changes(args, settings, db)
        return await cmd_reprediction_plan(args, settings, db)
    except (LedgerError, FileNotFoundError, ValueError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await dispose_database()


def serve(host: str, port: int) -> int:
    """Run the API in the foreground; the app opens and disposes the database itself."""
    import uvicorn

    uvicorn.run("main:app", host=host, port=port, log_level=get_settings().log_level.lower())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv[:1] == ["serve"]:
        args = build_parser(get_settings()).parse_args(argv)
        return serve(args.host, args.port)
    return asyncio.run(_main(argv))


if __name__ == "__main__":
    sys.exit(main())
