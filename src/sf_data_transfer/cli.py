"""
Command-line interface for the Salesforce data transfer tool.
"""

from __future__ import annotations

import argparse
import logging
import sys

from . import org_utils
from .exceptions import TransferError
from .models import TransferConfig, TransferMode, TransferResult
from .orchestrator import TransferOrchestrator
from .utils import parse_assignments, parse_limits, setup_logging

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Transfer records between Salesforce orgs, preserving lookups")
    _ = parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    _ = subparsers.add_parser("orgs", help="List orgs authenticated with the Salesforce CLI")

    objects = subparsers.add_parser("objects", help="List transferable object types of an org")
    _ = objects.add_argument("source", help="Source org alias or username")

    query = subparsers.add_parser("query", help="Preview a SOQL query against an org")
    _ = query.add_argument("source", help="Source org alias or username")
    _ = query.add_argument("soql", help="SOQL query")

    relationships = subparsers.add_parser("relationships", help="Show lookups between object types")
    _ = relationships.add_argument("source", help="Source org alias or username")
    _ = relationships.add_argument("objects", nargs="+", help="Object types to analyze")

    transfer = subparsers.add_parser("transfer", help="Transfer records from one org to another")
    _ = transfer.add_argument("source", help="Source org alias or username")
    _ = transfer.add_argument("target", help="Target org alias or username")

    selection = transfer.add_mutually_exclusive_group(required=True)
    _ = selection.add_argument(
        "--object",
        "-o",
        dest="objects",
        action="append",
        help="Object type to transfer. Can be specified multiple times.",
    )
    _ = selection.add_argument("--query", "-q", help="Custom SOQL query selecting the records to transfer")

    _ = transfer.add_argument(
        "--query-object", help="Object type read by --query (default: derived from the FROM clause)"
    )
    _ = transfer.add_argument(
        "--include-relationships", "-r", action="store_true", help="Resolve lookups to parent records in the target"
    )
    _ = transfer.add_argument("--batch-size", "-b", type=int, default=200, help="Records per write call (default: 200)")
    _ = transfer.add_argument(
        "--limit",
        "-l",
        action="append",
        help='Record limit per object (format: "Object=N"). Can be specified multiple times.',
    )
    _ = transfer.add_argument(
        "--mode",
        choices=[m.value for m in TransferMode],
        default=TransferMode.INSERT.value,
        help="insert: create parents in the target; upsert: match parents by external id (default: insert)",
    )
    _ = transfer.add_argument(
        "--external-id",
        "-e",
        action="append",
        help='External id field for a parent object in upsert mode (format: "Object=Field__c").',
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> TransferConfig:
    """Map parsed ``transfer`` arguments onto a TransferConfig."""
    return TransferConfig(
        entity_types=args.objects,
        custom_query=args.query,
        query_entity_type=args.query_object,
        include_relationships=args.include_relationships,
        batch_size=args.batch_size,
        record_limits=parse_limits(args.limit),
        external_id_mapping=parse_assignments(args.external_id),
        mode=TransferMode(args.mode),
    )


def _connect(source: str, target: str | None = None) -> TransferOrchestrator:
    source_connection = org_utils.resolve_connection(source)
    target_connection = org_utils.resolve_connection(target) if target else source_connection
    orchestrator = TransferOrchestrator()
    orchestrator.initialize(source_connection, target_connection)
    return orchestrator


def _print_transfer_report(result: TransferResult) -> None:
    print("\n" + "=" * 60)
    print(f"Transfer {'PASSED' if result.success else 'FAILED'}")
    print(f"Records transferred: {result.records_transferred}")
    if result.errors:
        print(f"\nErrors ({len(result.errors)}):")
        for error in result.errors:
            print(f"  - {error}")
    print("=" * 60)


def run(args: argparse.Namespace) -> int:
    """Execute the selected command and return the exit code."""
    if args.command == "orgs":
        for name in org_utils.list_available_systems():
            print(name)
        return 0

    if args.command == "transfer":
        config = build_config(args)
        orchestrator = _connect(args.source, args.target)
        result = orchestrator.transfer(config)
        _print_transfer_report(result)
        return 0 if result.success else 1

    orchestrator = _connect(args.source)

    if args.command == "objects":
        for name in orchestrator.list_entity_types():
            print(name)
    elif args.command == "query":
        page = orchestrator.run_query(args.soql)
        completeness = "complete" if page.is_complete else "first page only"
        print(f"{len(page.records)} of {page.total_available} records ({completeness})")
    elif args.command == "relationships":
        related = orchestrator.analyze_relationships(args.objects)
        for entity_type in args.objects:
            print(f"{entity_type}: {', '.join(related.get(entity_type, [])) or '-'}")
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)

    verbose: bool = getattr(args, "verbose", False)
    setup_logging(verbose=verbose)

    try:
        exit_code = run(args)
    except (TransferError, ValueError) as e:
        logger.error(f"{e}")  # noqa: TRY400
        sys.exit(1)
    except Exception:
        logger.exception("Transfer failed")
        sys.exit(1)

    sys.exit(exit_code)
