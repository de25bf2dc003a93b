"""Reconciliation services package."""

from .batch_mutator import BatchMutator, partition
from .confirmation_gate import ConfirmationGate
from .duplicate_resolver import ids_to_delete, ranking_key, resolve_duplicates
from .enumerator import PaginatedEnumerator
from .reconciliation_service import ReconciliationService
from .record_filter import category_breakdown, filter_by_window, filter_records
from .result_aggregator import aggregate_results

__all__ = [
    "BatchMutator",
    "ConfirmationGate",
    "PaginatedEnumerator",
    "ReconciliationService",
    "aggregate_results",
    "category_breakdown",
    "filter_by_window",
    "filter_records",
    "ids_to_delete",
    "partition",
    "ranking_key",
    "resolve_duplicates",
]
