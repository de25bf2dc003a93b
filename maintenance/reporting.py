"""Human-readable run summaries and the optional JSON report file."""

import logging
from pathlib import Path

from maintenance.enums import MutationKind
from maintenance.models.base import JsonModel
from maintenance.models.records import BatchResult
from maintenance.models.reports import CopyReport, RunReport

logger = logging.getLogger(__name__)

MAX_ERRORS_SHOWN = 10
MAX_GROUPS_SHOWN = 20

_STATUS_MARKERS = {
    "excluded": "[EXCLUDED]",
    "included": "[INCLUDED]",
    "skipped": "[SKIPPED]",
    "targeted": "",
}


def present_plan(report: RunReport) -> None:
    """Log what was found and what would change. Used before the confirmation prompt."""
    logger.info("%s on %s: %d records enumerated", report.procedure, report.scope.name, report.enumerated)
    if report.approximate:
        logger.warning(
            "Enumeration was approximate (probe queries); some records may have been missed"
        )
    if report.scope.since is not None:
        logger.info("Time window: records logged since %s", report.scope.since.isoformat())

    if report.categories:
        logger.info("Records by category:")
        for entry in report.categories:
            logger.info(
                "  %-28s %6d (%5.1f%%) %s",
                entry.category,
                entry.count,
                entry.percentage,
                _STATUS_MARKERS.get(entry.status.value, ""),
            )
            logger.debug("    sample ids: %s", ", ".join(entry.sample_ids))

    for group in report.duplicate_groups[:MAX_GROUPS_SHOWN]:
        logger.info(
            "  group %s: keep %s (usage=%d), delete %d",
            group.group_key,
            group.keep.id,
            group.keep.ranking_metrics.usage_count,
            len(group.to_delete),
        )
    if len(report.duplicate_groups) > MAX_GROUPS_SHOWN:
        logger.info("  ... and %d more groups", len(report.duplicate_groups) - MAX_GROUPS_SHOWN)

    if report.mutation_kind is not None:
        unit = "namespaces" if report.mutation_kind == MutationKind.PURGE else "records"
        logger.info("Planned: %s %d %s", report.mutation_kind.value, report.planned, unit)
    if report.dry_run and report.planned:
        logger.info("DRY RUN: the following ids would be affected:")
        for record_id in report.planned_ids:
            logger.info("  %s", record_id)


def present_result(result: BatchResult, *, label: str = "Result") -> None:
    logger.info(
        "%s: %d attempted, %d succeeded, %d failed",
        label,
        result.attempted,
        result.succeeded,
        result.failed,
    )
    for error in result.errors[:MAX_ERRORS_SHOWN]:
        logger.error("  %s: %s", error.id, error.message)
    if len(result.errors) > MAX_ERRORS_SHOWN:
        logger.error("  ... and %d more errors", len(result.errors) - MAX_ERRORS_SHOWN)


def present_run(report: RunReport) -> None:
    """Log the outcome of a finished run."""
    if report.result is not None:
        present_result(report.result)
    if report.remaining is not None:
        logger.info("Records remaining after run: %d", report.remaining)


def present_copy(report: CopyReport) -> None:
    """Log per-target outcomes and the grand total of a namespace copy."""
    if report.fetch_result is not None:
        present_result(report.fetch_result, label="Fetch")
    for target, result in report.targets.items():
        present_result(result, label=f"Target {target}")
    if report.total is not None:
        present_result(report.total, label="Total")


def write_report(report: JsonModel, path: Path) -> Path:
    """Write a report as pretty camelCase JSON.

    Returns:
        The resolved path written.
    """
    path = Path(path).expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.to_json(pretty=True) + "\n", encoding="utf-8")
    logger.info("Report written to %s", path)
    return path
