"""Command-line entrypoint for the record maintenance procedures.

Examples:
    maintenance record-types my-namespace --store pinecone
    maintenance cleanup-duplicates my-namespace --dry-run
    maintenance cleanup-namespaces --prefix=user_test_ --dry-run
    maintenance copy-namespace source-ns --target ns-a --target ns-b
    maintenance delete-namespace-records my-namespace --exclude-types=user,subscription
    maintenance delete-user-records user-123 --weeks=2 --table=my-table --auto-confirm
"""

import argparse
import logging
import sys
import time
from collections.abc import Callable
from pathlib import Path

from maintenance.config import MaintenanceConfig, RunConfig
from maintenance.enums import ConfirmationMode, StoreKind
from maintenance.errors import ConfigurationError, ScopeUnavailable
from maintenance.logging_config import configure_logging
from maintenance.observability import log_mutation_failure, setup_error_log_file
from maintenance.reporting import present_copy, present_plan, present_run, write_report
from maintenance.services import (
    BatchMutator,
    ConfirmationGate,
    PaginatedEnumerator,
    ReconciliationService,
)
from maintenance.stores import DynamoDBStore, PineconeStore, RemoteStore

logger = logging.getLogger(__name__)

CLEANUP_DUPLICATES = "cleanup-duplicates"
CLEANUP_NAMESPACES = "cleanup-namespaces"
COPY_NAMESPACE = "copy-namespace"
DELETE_NAMESPACE_RECORDS = "delete-namespace-records"
DELETE_USER_RECORDS = "delete-user-records"
RECORD_TYPES = "record-types"

# Store each fixed-store command runs against.
_COMMAND_STORES = {
    CLEANUP_DUPLICATES: StoreKind.PINECONE,
    CLEANUP_NAMESPACES: StoreKind.PINECONE,
    COPY_NAMESPACE: StoreKind.PINECONE,
    DELETE_NAMESPACE_RECORDS: StoreKind.PINECONE,
    DELETE_USER_RECORDS: StoreKind.DYNAMODB,
}

# Partial failure exits non-zero for these even without --strict.
_STRICT_BY_DEFAULT = {CLEANUP_NAMESPACES, DELETE_NAMESPACE_RECORDS, DELETE_USER_RECORDS}


def _comma_list(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--dry-run", action="store_true", help="Show what would change without changing it")
    mode.add_argument("--auto-confirm", action="store_true", help="Skip the confirmation prompt")
    parser.add_argument("--verbose", action="store_true", help="Debug logging and post-run verification")
    parser.add_argument("--strict", action="store_true", help="Exit 1 if any record failed")
    parser.add_argument("--include-types", type=_comma_list, default=None, help="Comma-separated categories to keep")
    parser.add_argument("--exclude-types", type=_comma_list, default=None, help="Comma-separated categories to skip")
    parser.add_argument("--batch-size", type=int, default=None, help="Override the store's batch size")
    parser.add_argument("--report-file", type=Path, default=None, help="Write the run report as JSON")
    parser.add_argument("--index", default=None, help="Pinecone index name")
    parser.add_argument("--table", default=None, help="DynamoDB table name")
    parser.add_argument("--region", default=None, help="AWS region")
    parser.add_argument("--config", default="config.json", help="Path to config.json")
    parser.add_argument("--secrets", default="secrets.yml", help="Path to secrets.yml")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="maintenance",
        description="Bulk record maintenance for the vector index and the user table",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser(CLEANUP_DUPLICATES, help="Delete lower-ranked duplicate memories in a namespace")
    p.add_argument("scope", metavar="namespace")
    p.add_argument(
        "--record-type",
        default=None,
        help="Category to deduplicate (default: --include-types, else user_memory)",
    )
    _add_common_arguments(p)

    p = sub.add_parser(CLEANUP_NAMESPACES, help="Delete every namespace whose name starts with a prefix")
    p.add_argument("--prefix", dest="scope", default=None, help="Namespace name prefix (default: user_test_)")
    _add_common_arguments(p)

    p = sub.add_parser(COPY_NAMESPACE, help="Copy every record of a namespace into other namespaces")
    p.add_argument("scope", metavar="source")
    p.add_argument("--target", action="append", required=True, dest="targets", help="Target namespace (repeatable)")
    _add_common_arguments(p)

    p = sub.add_parser(DELETE_NAMESPACE_RECORDS, help="Delete records in a namespace by category")
    p.add_argument("scope", metavar="namespace")
    _add_common_arguments(p)

    p = sub.add_parser(DELETE_USER_RECORDS, help="Delete a user's table records, optionally within a time window")
    p.add_argument("scope", metavar="user_id")
    p.add_argument("--weeks", type=int, default=None, help="Only records logged in the last N weeks")
    _add_common_arguments(p)

    p = sub.add_parser(RECORD_TYPES, help="Show record counts per category (read-only)")
    p.add_argument("scope")
    p.add_argument("--store", type=StoreKind, choices=list(StoreKind), default=StoreKind.PINECONE)
    _add_common_arguments(p)

    return parser


def load_config(args: argparse.Namespace) -> MaintenanceConfig:
    config = MaintenanceConfig.from_json_file(args.config, args.secrets)
    overrides = {
        "pinecone_index_name": args.index,
        "dynamodb_table_name": args.table,
        "aws_region": args.region,
    }
    overrides = {k: v for k, v in overrides.items() if v}
    return config.model_copy(update=overrides) if overrides else config


def _confirmation_mode(args: argparse.Namespace) -> ConfirmationMode:
    if args.dry_run:
        return ConfirmationMode.DRY_RUN
    if args.auto_confirm:
        return ConfirmationMode.AUTO_CONFIRM
    return ConfirmationMode.INTERACTIVE


def build_run_config(args: argparse.Namespace, config: MaintenanceConfig) -> RunConfig:
    command = args.command
    store = args.store if command == RECORD_TYPES else _COMMAND_STORES[command]

    exclude = args.exclude_types
    if exclude is None and command == DELETE_USER_RECORDS:
        exclude = tuple(config.default_exclude_types)

    scope = args.scope
    delay_ms = None
    if command == CLEANUP_NAMESPACES:
        scope = config.namespace_cleanup_prefix if scope is None else scope
        delay_ms = config.namespace_purge_delay_ms

    return RunConfig.build(
        config,
        store=store,
        scope=scope,
        mode=ConfirmationMode.DRY_RUN if command == RECORD_TYPES else _confirmation_mode(args),
        include_types=args.include_types,
        exclude_types=exclude,
        batch_size=args.batch_size,
        inter_batch_delay_ms=delay_ms,
        weeks=getattr(args, "weeks", None),
        target_scopes=tuple(getattr(args, "targets", None) or ()) or None,
        verbose=args.verbose,
        strict=args.strict or command in _STRICT_BY_DEFAULT,
        report_file=args.report_file,
    )


def build_store(run: RunConfig, config: MaintenanceConfig) -> RemoteStore:
    if run.store == StoreKind.PINECONE:
        return PineconeStore(config)
    return DynamoDBStore(config)


def build_service(
    store: RemoteStore,
    config: MaintenanceConfig,
    *,
    input_fn: Callable[[str], str] = input,
    sleep: Callable[[float], None] = time.sleep,
) -> ReconciliationService:
    page_delay_ms = config.pinecone_page_delay_ms if store.name == StoreKind.PINECONE else 0
    enumerator = PaginatedEnumerator(
        store,
        probe_queries=config.probe_queries,
        probe_top_k=config.probe_top_k,
        page_delay_ms=page_delay_ms,
        sleep=sleep,
    )
    return ReconciliationService(
        store,
        enumerator=enumerator,
        mutator=BatchMutator(store, sleep=sleep, on_failure=log_mutation_failure),
        gate=ConfirmationGate(input_fn),
        presenter=present_plan,
        sleep=sleep,
    )


def _record_type(args: argparse.Namespace, run: RunConfig, config: MaintenanceConfig) -> str | None:
    """Category cleanup-duplicates works on; None defers to --include-types."""
    record_type = getattr(args, "record_type", None)
    if record_type or run.include_types:
        return record_type
    return config.duplicate_record_type


def run_command(
    command: str,
    service: ReconciliationService,
    run: RunConfig,
    *,
    record_type: str | None = None,
) -> int:
    """Execute one procedure and map its outcome to an exit code."""
    if command == RECORD_TYPES:
        report = service.inventory(run)
    elif command == COPY_NAMESPACE:
        report = service.copy_records(run)
        present_copy(report)
    elif command == CLEANUP_DUPLICATES:
        report = service.cleanup_duplicates(run, record_type)
        present_run(report)
    elif command == CLEANUP_NAMESPACES:
        report = service.cleanup_scopes(run)
        present_run(report)
    else:
        report = service.delete_records(run, procedure=command)
        present_run(report)

    if run.report_file is not None:
        write_report(report, run.report_file)

    if getattr(report, "has_failures", False):
        logger.warning("Run finished with failures")
        if run.strict:
            return 1
    return 0


def main(
    argv: list[str] | None = None,
    *,
    input_fn: Callable[[str], str] = input,
    sleep: Callable[[float], None] = time.sleep,
    store_factory: Callable[[RunConfig, MaintenanceConfig], RemoteStore] = build_store,
) -> int:
    args = build_parser().parse_args(argv)

    configure_logging(args.verbose)

    try:
        config = load_config(args)
        setup_error_log_file(config)
        run = build_run_config(args, config)
        store = store_factory(run, config)
        service = build_service(store, config, input_fn=input_fn, sleep=sleep)
        return run_command(args.command, service, run, record_type=_record_type(args, run, config))
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except ScopeUnavailable as e:
        logger.error("%s", e)
        return 1
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
