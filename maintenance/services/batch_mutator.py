"""Apply a mutation plan in fixed-size, rate-limited batches."""

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from typing import TypeVar

from maintenance.enums import MutationKind
from maintenance.errors import BatchMutationFailure
from maintenance.models.records import BatchResult, MutationPlan, RecordError, Scope
from maintenance.services.result_aggregator import aggregate_results
from maintenance.stores.base import RemoteStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    """Split into contiguous chunks of `size`; the last chunk may be shorter."""
    if size <= 0:
        raise ValueError("size must be positive")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class BatchMutator:
    """Execute MutationPlans against a RemoteStore, one batch at a time.

    A batch whose bulk call raises is recorded as failed for every id in it
    and the run moves on. Batches run strictly in order with a delay between
    consecutive batches; nothing runs concurrently.
    """

    def __init__(
        self,
        store: RemoteStore,
        *,
        sleep: Callable[[float], None] = time.sleep,
        on_failure: Callable[[str, RecordError], None] | None = None,
    ) -> None:
        self.store = store
        self._sleep = sleep
        self._on_failure = on_failure

    def execute(self, plan: MutationPlan) -> Iterator[BatchResult]:
        """Yield one partial BatchResult per batch.

        The generator is not restartable; calling `execute` again re-runs the
        plan from the first batch.
        """
        batches = partition(plan.target_ids, plan.batch_size)
        total = len(batches)

        for number, batch in enumerate(batches, start=1):
            logger.info(
                "Batch %d/%d: %s %d records in %s",
                number,
                total,
                plan.mutation_kind.value,
                len(batch),
                plan.scope.name,
            )
            result = self._apply(plan, batch, number)
            if result.failed:
                logger.warning(
                    "Batch %d/%d: %d succeeded, %d failed", number, total, result.succeeded, result.failed
                )
                for error in result.errors:
                    if self._on_failure:
                        self._on_failure(plan.scope.name, error)
            yield result

            if number < total and plan.inter_batch_delay_ms:
                self._sleep(plan.inter_batch_delay_ms / 1000)

    def run(self, plan: MutationPlan) -> BatchResult:
        """Execute every batch and return the aggregate."""
        return aggregate_results(self.execute(plan))

    def _apply(self, plan: MutationPlan, batch: list[str], number: int) -> BatchResult:
        try:
            if plan.mutation_kind == MutationKind.DELETE:
                errors = self.store.delete_many(plan.scope, batch)
            elif plan.mutation_kind == MutationKind.PURGE:
                errors = self._purge(batch)
            else:
                errors = self.store.upsert_many(plan.scope, [plan.records[i] for i in batch])
        except BatchMutationFailure as e:
            return self._failed_batch(batch, number, e.message)
        except Exception as e:
            logger.error("Batch %d failed: %s", number, e)
            return self._failed_batch(batch, number, str(e))

        batch_ids = set(batch)
        errors = [e for e in errors if e.id in batch_ids]
        return BatchResult(
            attempted=len(batch),
            succeeded=len(batch) - len(errors),
            failed=len(errors),
            errors=errors,
            batch_number=number,
        )

    def _purge(self, names: list[str]) -> list[RecordError]:
        """Purge each named scope; a failing scope does not stop the others."""
        errors = []
        for name in names:
            try:
                self.store.purge_scope(Scope(name=name))
            except Exception as e:
                logger.error("Purging scope %s failed: %s", name, e)
                errors.append(RecordError(id=name, message=str(e)))
        return errors

    @staticmethod
    def _failed_batch(batch: list[str], number: int, message: str) -> BatchResult:
        return BatchResult(
            attempted=len(batch),
            succeeded=0,
            failed=len(batch),
            errors=[RecordError(id=record_id, message=message) for record_id in batch],
            batch_number=number,
        )
