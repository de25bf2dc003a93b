"""Report models produced by maintenance procedures."""

from maintenance.enums import CategoryStatus, MutationKind
from maintenance.models.base import JsonModel
from maintenance.models.records import BatchResult, DuplicateGroup, Scope


class CategoryCount(JsonModel):
    """Number of records in one category, with a few sample ids."""

    category: str
    count: int
    percentage: float
    sample_ids: list[str] = []
    status: CategoryStatus = CategoryStatus.TARGETED


class RunReport(JsonModel):
    """What a run found, what it planned, and what it did.

    A dry run fills everything except `result`, so it previews exactly the
    plan a live run would execute.
    """

    procedure: str
    scope: Scope
    mutation_kind: MutationKind | None = None
    enumerated: int = 0
    approximate: bool = False
    categories: list[CategoryCount] = []
    duplicate_groups: list[DuplicateGroup] = []
    planned_ids: list[str] = []
    dry_run: bool = False
    proceeded: bool = False
    cancelled: bool = False
    result: BatchResult | None = None
    remaining: int | None = None

    @property
    def planned(self) -> int:
        return len(self.planned_ids)

    @property
    def has_failures(self) -> bool:
        return self.result is not None and self.result.failed > 0


class CopyReport(JsonModel):
    """Namespace copy outcome: the source read plus one upsert result per target."""

    source: RunReport
    fetch_result: BatchResult | None = None
    targets: dict[str, BatchResult] = {}
    total: BatchResult | None = None

    @property
    def has_failures(self) -> bool:
        fetch_failed = self.fetch_result is not None and self.fetch_result.failed > 0
        return fetch_failed or (self.total is not None and self.total.failed > 0)
