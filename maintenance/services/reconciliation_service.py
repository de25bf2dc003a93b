"""Reconciliation procedures: enumerate, plan, confirm, mutate, report.

Each public method is one maintenance procedure. They all follow the same
data flow (enumerator -> resolver or filter -> gate -> mutator -> aggregate),
and a dry run walks the identical path up to the gate, so its report is the
plan a live run would execute.
"""

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from maintenance.config import RunConfig
from maintenance.enums import MutationKind
from maintenance.errors import ConfigurationError
from maintenance.models.records import (
    BatchResult,
    EnumerationResult,
    MutationPlan,
    Record,
    RecordError,
    Scope,
)
from maintenance.models.reports import CategoryCount, CopyReport, RunReport
from maintenance.services.batch_mutator import BatchMutator, partition
from maintenance.services.confirmation_gate import ConfirmationGate
from maintenance.services.duplicate_resolver import ids_to_delete, resolve_duplicates
from maintenance.services.enumerator import PaginatedEnumerator
from maintenance.services.record_filter import (
    category_breakdown,
    filter_by_window,
    filter_records,
)
from maintenance.services.result_aggregator import aggregate_results
from maintenance.stores.base import RemoteStore

logger = logging.getLogger(__name__)

PlanPresenter = Callable[[RunReport], None]


def _no_presenter(report: RunReport) -> None:
    return None


class ReconciliationService:
    """Runs maintenance procedures against one RemoteStore.

    Collaborators are injected so tests can swap the prompt, the clock and
    the sleep function. The presenter is called with the finished plan right
    before the confirmation gate, so a human sees what they are confirming.
    """

    def __init__(
        self,
        store: RemoteStore,
        *,
        enumerator: PaginatedEnumerator | None = None,
        mutator: BatchMutator | None = None,
        gate: ConfirmationGate | None = None,
        presenter: PlanPresenter | None = None,
        now: Callable[[], datetime] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.enumerator = enumerator or PaginatedEnumerator(store, sleep=sleep)
        self.mutator = mutator or BatchMutator(store, sleep=sleep)
        self.gate = gate or ConfirmationGate()
        self._present = presenter or _no_presenter
        self._now = now or (lambda: datetime.now(UTC))
        self._sleep = sleep

    def _scope(self, run: RunConfig) -> Scope:
        return Scope(name=run.scope, since=run.window_start(self._now()))

    def _enumerate(self, run: RunConfig) -> tuple[Scope, EnumerationResult]:
        scope = self._scope(run)
        logger.info("Enumerating %s scope %s", self.store.name, scope.name)
        return scope, self.enumerator.enumerate(scope)

    # ------------------------------------------------------------------
    # Procedures
    # ------------------------------------------------------------------

    def inventory(self, run: RunConfig) -> RunReport:
        """Read-only per-category breakdown of a scope."""
        scope, enumeration = self._enumerate(run)
        records = filter_by_window(enumeration.records, scope.since)
        report = RunReport(
            procedure="record-types",
            scope=scope,
            enumerated=len(records),
            approximate=enumeration.approximate,
            categories=category_breakdown(records, run.include_types, run.exclude_types),
            dry_run=True,
        )
        self._present(report)
        return report

    def cleanup_duplicates(self, run: RunConfig, record_type: str | None = None) -> RunReport:
        """Delete every record that loses its duplicate group's ranking."""
        scope, enumeration = self._enumerate(run)
        include = (record_type,) if record_type else run.include_types
        candidates = filter_records(enumeration.records, include, run.exclude_types)
        groups = resolve_duplicates(candidates)
        logger.info(
            "%d of %d records carry duplicate group keys (%d groups)",
            sum(len(g.members) for g in groups),
            len(candidates),
            len(groups),
        )

        report = RunReport(
            procedure="cleanup-duplicates",
            scope=scope,
            mutation_kind=MutationKind.DELETE,
            enumerated=len(enumeration),
            approximate=enumeration.approximate,
            categories=category_breakdown(enumeration.records, include, run.exclude_types),
            duplicate_groups=groups,
            planned_ids=ids_to_delete(groups),
        )
        prompt = f"\nAre you sure you want to delete {report.planned} duplicate records? (y/N): "
        return self._gate_and_apply(report, run, prompt)

    def delete_records(self, run: RunConfig, procedure: str = "delete-records") -> RunReport:
        """Delete every record in scope that passes the window and category filters."""
        scope, enumeration = self._enumerate(run)
        windowed = filter_by_window(enumeration.records, scope.since)
        if scope.since is not None:
            logger.info(
                "%d of %d records fall inside the %d-week window",
                len(windowed),
                len(enumeration),
                run.weeks,
            )
        targets = filter_records(windowed, run.include_types, run.exclude_types)

        report = RunReport(
            procedure=procedure,
            scope=scope,
            mutation_kind=MutationKind.DELETE,
            enumerated=len(enumeration),
            approximate=enumeration.approximate,
            categories=category_breakdown(windowed, run.include_types, run.exclude_types),
            planned_ids=[r.id for r in targets],
        )
        preserved = len(windowed) - report.planned
        prompt = f"\nAre you sure you want to delete {report.planned} record(s) from '{scope.name}'?"
        if preserved > 0:
            prompt += f"\n   ({preserved} record(s) will be preserved)"
        prompt += "\n   This action cannot be undone! (y/N): "
        return self._gate_and_apply(report, run, prompt)

    def copy_records(self, run: RunConfig) -> CopyReport:
        """Copy every record in the source scope into each target scope.

        Raises:
            ConfigurationError: If no targets are given or a target is the source.
        """
        if not run.target_scopes:
            raise ConfigurationError("At least one target scope is required for a copy")
        if run.scope in run.target_scopes:
            raise ConfigurationError("A copy target must differ from the source scope")

        scope, enumeration = self._enumerate(run)
        records = filter_records(enumeration.records, run.include_types, run.exclude_types)

        fetch_result = None
        if enumeration.approximate:
            # Probe hits carry fields only; upserts need the stored vectors.
            fetched, fetch_result = self._fetch_all(scope, [r.id for r in records], run)
            records = [fetched[r.id] for r in records if r.id in fetched]

        source = RunReport(
            procedure="copy-namespace",
            scope=scope,
            mutation_kind=MutationKind.UPSERT,
            enumerated=len(enumeration),
            approximate=enumeration.approximate,
            categories=category_breakdown(records, run.include_types, run.exclude_types),
            planned_ids=[r.id for r in records],
        )
        report = CopyReport(source=source, fetch_result=fetch_result)

        prompt = (
            f"\nCopy {source.planned} record(s) from '{scope.name}' into "
            f"{len(run.target_scopes)} namespace(s): {', '.join(run.target_scopes)}? (y/N): "
        )
        if not self._confirm(source, run, prompt):
            return report

        by_id = {r.id: r for r in records}
        for target in run.target_scopes:
            logger.info("Copying %d records into %s", source.planned, target)
            plan = MutationPlan(
                scope=Scope(name=target),
                target_ids=source.planned_ids,
                mutation_kind=MutationKind.UPSERT,
                batch_size=run.batch_size,
                inter_batch_delay_ms=run.inter_batch_delay_ms,
                records=by_id,
            )
            report.targets[target] = self.mutator.run(plan)

        report.total = aggregate_results(report.targets.values())
        source.result = report.total
        return report

    def cleanup_scopes(self, run: RunConfig) -> RunReport:
        """Purge every scope whose name starts with the run's scope.

        Used to sweep leftover test namespaces. The run's scope is the name
        prefix; each matching scope is dropped whole with one store call.
        """
        prefix = run.scope
        counts = self.store.list_scopes()
        matching = {name: counts[name] for name in sorted(counts) if name.startswith(prefix)}
        total = sum(matching.values())
        logger.info(
            "%d of %d %s scopes start with '%s' (%d records)",
            len(matching),
            len(counts),
            self.store.name,
            prefix,
            total,
        )

        report = RunReport(
            procedure="cleanup-namespaces",
            scope=Scope(name=prefix),
            mutation_kind=MutationKind.PURGE,
            enumerated=total,
            categories=[
                CategoryCount(
                    category=name,
                    count=count,
                    percentage=round(count / total * 100, 1) if total else 0.0,
                )
                for name, count in matching.items()
            ],
            planned_ids=list(matching),
        )
        prompt = (
            f"\nDelete ALL records in {report.planned} namespace(s) starting with '{prefix}'?"
            "\n   This action cannot be undone! (y/N): "
        )
        return self._gate_and_apply(report, run, prompt)

    def count_remaining(self, scope: Scope, ids: list[str], batch_size: int) -> int:
        """How many of `ids` still exist in the scope."""
        remaining = 0
        for batch in partition(ids, batch_size):
            remaining += len(self.store.fetch(scope, batch))
        return remaining

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _confirm(self, report: RunReport, run: RunConfig, prompt: str) -> bool:
        report.dry_run = run.dry_run
        self._present(report)

        if report.planned == 0:
            logger.info("Nothing to do in %s", report.scope.name)
            return False
        if not self.gate.should_proceed(report.planned, run.mode, prompt):
            if run.dry_run:
                logger.info("DRY RUN: no records were changed (%d planned)", report.planned)
            else:
                report.cancelled = True
                logger.info("Cancelled by user; no records were changed")
            return False

        report.proceeded = True
        return True

    def _gate_and_apply(self, report: RunReport, run: RunConfig, prompt: str) -> RunReport:
        if not self._confirm(report, run, prompt):
            return report

        purge = report.mutation_kind == MutationKind.PURGE
        plan = MutationPlan(
            scope=report.scope,
            target_ids=report.planned_ids,
            mutation_kind=report.mutation_kind,
            batch_size=1 if purge else run.batch_size,
            inter_batch_delay_ms=run.inter_batch_delay_ms,
        )
        report.result = self.mutator.run(plan)

        if run.verbose:
            self._verify(report, run)
        return report

    def _verify(self, report: RunReport, run: RunConfig) -> None:
        """Re-read the store and set `report.remaining`; a failure leaves it None."""
        try:
            if report.mutation_kind == MutationKind.PURGE:
                counts = self.store.list_scopes()
                remaining = sum(counts.get(name, 0) for name in report.planned_ids)
            else:
                remaining = self.count_remaining(report.scope, report.planned_ids, run.batch_size)
        except Exception as e:
            logger.warning("Verification failed, remaining count unknown: %s", e)
            return

        report.remaining = remaining
        if remaining:
            logger.warning("Verification: %d records still remain", remaining)
        else:
            logger.info("Verification: all targeted records are gone")

    def _fetch_all(
        self, scope: Scope, ids: list[str], run: RunConfig
    ) -> tuple[dict[str, Record], BatchResult]:
        fetched: dict[str, Record] = {}
        results: list[BatchResult] = []
        batches = partition(ids, run.batch_size)
        for number, batch in enumerate(batches, start=1):
            try:
                found = self.store.fetch(scope, batch)
            except Exception as e:
                logger.error("Fetch batch %d/%d failed: %s", number, len(batches), e)
                results.append(
                    BatchResult(
                        attempted=len(batch),
                        failed=len(batch),
                        errors=[RecordError(id=i, message=str(e)) for i in batch],
                        batch_number=number,
                    )
                )
            else:
                fetched.update(found)
                missing = [i for i in batch if i not in found]
                results.append(
                    BatchResult(
                        attempted=len(batch),
                        succeeded=len(batch) - len(missing),
                        failed=len(missing),
                        errors=[RecordError(id=i, message="not found on fetch") for i in missing],
                        batch_number=number,
                    )
                )
            if number < len(batches) and run.inter_batch_delay_ms:
                self._sleep(run.inter_batch_delay_ms / 1000)
        return fetched, aggregate_results(results)
