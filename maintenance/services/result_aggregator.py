"""Combine per-batch results into one report."""

from collections.abc import Iterable

from maintenance.models.records import BatchResult


def aggregate_results(results: Iterable[BatchResult]) -> BatchResult:
    """Sum the counters and concatenate errors in emission order."""
    total = BatchResult()
    for result in results:
        total.attempted += result.attempted
        total.succeeded += result.succeeded
        total.failed += result.failed
        total.errors.extend(result.errors)
    return total
