"""Command line interface for fetching, categorizing, and updating pipeline leads."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, Optional

from .config import ConfigurationError, PipelineSettings, load_settings
from .crm import LeadConnectorClient
from .ingestion import export_snapshot, load_contacts
from .metrics import get_average_time_strategy
from .models import LeadDraft, OperationResult, PipelineSnapshot
from .orchestrator import PipelineOrchestrator, PipelineRefresher

LOGGER = logging.getLogger(__name__)


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Categorize CRM contacts into loan pipeline stages and manage leads",
    )
    parser.add_argument(
        "--config",
        help="Path to the pipeline configuration file (YAML or JSON)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    snapshot = subparsers.add_parser("snapshot", help="Fetch contacts from the CRM and categorize them")
    snapshot.add_argument("--output", help="Write the snapshot to a .json, .csv, .tsv or .xlsx file")

    categorize = subparsers.add_parser("categorize", help="Categorize contacts from an exported file")
    categorize.add_argument("input", help="Path to a JSON, CSV or Excel contacts export")
    categorize.add_argument("--output", help="Write the snapshot to a .json, .csv, .tsv or .xlsx file")

    watch = subparsers.add_parser("watch", help="Refresh the pipeline periodically")
    watch.add_argument("--interval", type=float, default=None, help="Seconds between refreshes")
    watch.add_argument("--max-cycles", type=int, default=None, help="Stop after this many refreshes")
    watch.add_argument("--output", help="Rewrite this snapshot file after every successful refresh")

    subparsers.add_parser("ping", help="Check CRM connectivity and count contacts")
    subparsers.add_parser("stages", help="List pipeline stages and their tags")

    create = subparsers.add_parser("create", help="Create a lead in the CRM")
    create.add_argument("--name", required=True)
    create.add_argument("--email", required=True)
    create.add_argument("--phone", default="")
    create.add_argument("--address", default="")
    create.add_argument("--loan-type", default="Conventional")
    create.add_argument("--loan-amount", type=float, default=0)
    create.add_argument("--close-date", default="")
    create.add_argument("--stage", default=None)
    create.add_argument("--tag", dest="tags", action="append", default=[])
    create.add_argument("--notes", default="")

    move = subparsers.add_parser("move", help="Move a lead to another stage")
    move.add_argument("lead_id")
    move.add_argument("to_stage")
    move.add_argument("--from", dest="from_stage", default=None, help="Stage the lead is currently in")

    tags = subparsers.add_parser("tags", help="Replace a lead's stage tags")
    tags.add_argument("lead_id")
    tags.add_argument("tags", nargs="+")

    delete = subparsers.add_parser("delete", help="Delete a lead from the CRM")
    delete.add_argument("lead_id")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _build_orchestrator(settings: PipelineSettings, *, with_client: bool = True) -> PipelineOrchestrator:
    client = LeadConnectorClient(settings.crm.require_credentials()) if with_client else None
    return PipelineOrchestrator(
        client,
        catalog=settings.catalog,
        average_time=get_average_time_strategy(settings.average_time),
    )


def format_summary(snapshot: PipelineSnapshot) -> str:
    lines = []
    for stage in snapshot.stages:
        metrics = snapshot.metrics[stage.title]
        lines.append(
            f"{stage.icon} {stage.title}: {metrics.leads} leads, avg {metrics.avg_time}, "
            f"conversion {metrics.conversion:g}%"
        )
    overall = snapshot.metrics.overall
    if overall is not None:
        lines.append(
            f"Total: {overall.total_leads} leads, value {overall.total_value:,.2f}, "
            f"average loan {overall.average_loan_amount:,.2f}"
        )
    return "\n".join(lines)


def _emit_snapshot(snapshot: PipelineSnapshot, output: Optional[str]) -> None:
    print(format_summary(snapshot))
    if output:
        destination = export_snapshot(snapshot, output)
        LOGGER.info("Snapshot written to %s", Path(destination).resolve())


def _report(result: OperationResult) -> int:
    if not result.success:
        LOGGER.error("%s", result.error)
        return 1
    if result.data is not None:
        print(json.dumps(result.data, ensure_ascii=False, indent=2, default=str))
    return 0


def _cmd_snapshot(args: argparse.Namespace, settings: PipelineSettings) -> int:
    orchestrator = _build_orchestrator(settings)
    result = orchestrator.fetch_pipeline()
    if not result.success:
        LOGGER.error("Could not load the pipeline: %s", result.error)
        return 1
    _emit_snapshot(result.data, args.output)
    return 0


def _cmd_categorize(args: argparse.Namespace, settings: PipelineSettings) -> int:
    orchestrator = _build_orchestrator(settings, with_client=False)
    contacts = load_contacts(args.input)
    snapshot = orchestrator.build_snapshot(contacts)
    _emit_snapshot(snapshot, args.output)
    LOGGER.info("Categorized %s contacts from %s", len(contacts), args.input)
    return 0


def _cmd_watch(args: argparse.Namespace, settings: PipelineSettings) -> int:
    orchestrator = _build_orchestrator(settings)
    interval = args.interval or settings.refresh.interval_seconds
    refresher = PipelineRefresher(
        orchestrator,
        lambda snapshot: _emit_snapshot(snapshot, args.output),
        interval_seconds=interval,
    )
    LOGGER.info("Refreshing every %ss (Ctrl+C to stop)", interval)
    try:
        refresher.run(max_cycles=args.max_cycles)
    except KeyboardInterrupt:
        refresher.stop()
    return 0


def _cmd_ping(args: argparse.Namespace, settings: PipelineSettings) -> int:
    return _report(_build_orchestrator(settings).count_contacts())


def _cmd_stages(args: argparse.Namespace, settings: PipelineSettings) -> int:
    for stage in settings.catalog.stages:
        print(f"{stage.icon} {stage.title}: {', '.join(settings.catalog.tags_for(stage.title))}")
    return 0


def _cmd_create(args: argparse.Namespace, settings: PipelineSettings) -> int:
    draft = LeadDraft(
        name=args.name,
        email=args.email,
        phone=args.phone,
        address=args.address,
        loan_type=args.loan_type,
        loan_amount=args.loan_amount,
        close_date=args.close_date,
        stage=args.stage,
        tags=list(args.tags),
        notes=args.notes,
    )
    return _report(_build_orchestrator(settings).create_lead(draft))


def _cmd_move(args: argparse.Namespace, settings: PipelineSettings) -> int:
    return _report(_build_orchestrator(settings).move_lead(args.lead_id, args.to_stage, args.from_stage))


def _cmd_tags(args: argparse.Namespace, settings: PipelineSettings) -> int:
    return _report(_build_orchestrator(settings).update_lead_tags(args.lead_id, args.tags))


def _cmd_delete(args: argparse.Namespace, settings: PipelineSettings) -> int:
    return _report(_build_orchestrator(settings).delete_lead(args.lead_id))


COMMANDS: Dict[str, Callable[[argparse.Namespace, PipelineSettings], int]] = {
    "snapshot": _cmd_snapshot,
    "categorize": _cmd_categorize,
    "watch": _cmd_watch,
    "ping": _cmd_ping,
    "stages": _cmd_stages,
    "create": _cmd_create,
    "move": _cmd_move,
    "tags": _cmd_tags,
    "delete": _cmd_delete,
}


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        settings = load_settings(args.config)
        return COMMANDS[args.command](args, settings)
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return 1
    except (OSError, ValueError) as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
