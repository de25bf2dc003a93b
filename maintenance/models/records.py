"""Domain models for records, duplicate groups, mutation plans and results."""

from datetime import UTC, datetime
from typing import Any

from pydantic import ConfigDict, Field, computed_field, field_validator, model_validator

from maintenance.enums import MutationKind
from maintenance.models.base import JsonModel


class Scope(JsonModel):
    """Bounding key for enumeration and mutation.

    `name` is a namespace for the vector store or a user id for the table.
    `since` narrows the scope to records logged at or after that instant.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    since: datetime | None = None


class RankingMetrics(JsonModel):
    """Tie-break inputs for duplicate resolution; never persisted."""

    model_config = ConfigDict(frozen=True)

    usage_count: int = Field(default=0, ge=0)
    logged_at: datetime | None = None

    @field_validator("logged_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        # Naive and aware timestamps must stay comparable.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Record(JsonModel):
    """A record as returned by a remote store. Read-only to the core."""

    model_config = ConfigDict(frozen=True)

    id: str
    group_key: str | None = None
    ranking_metrics: RankingMetrics = Field(default_factory=RankingMetrics)
    category: str
    payload: Any = Field(default=None, exclude=True)


class RecordError(JsonModel):
    """A single record that a mutation failed to apply."""

    id: str
    message: str


class ListPage(JsonModel):
    """One page of a store listing. `next_cursor` is opaque and passed back unmodified."""

    items: list[Record] = []
    next_cursor: Any = None


class EnumerationResult(JsonModel):
    """All records found in a scope, deduplicated by id in enumeration order."""

    scope: Scope
    records: list[Record] = []
    pages: int = 0
    approximate: bool = False

    def __len__(self) -> int:
        return len(self.records)

    def ids(self) -> list[str]:
        return [r.id for r in self.records]


class DuplicateGroup(JsonModel):
    """Records sharing one group key, ranked best-first.

    `keep` is always members[0] and `to_delete` the remainder.
    """

    group_key: str
    members: list[Record]

    @model_validator(mode="after")
    def _require_duplicates(self) -> "DuplicateGroup":
        if len(self.members) < 2:
            raise ValueError("a duplicate group needs more than one member")
        return self

    @computed_field
    @property
    def keep(self) -> Record:
        return self.members[0]

    @computed_field
    @property
    def to_delete(self) -> list[Record]:
        return self.members[1:]


class MutationPlan(JsonModel):
    """A bulk mutation, built once and consumed once by the batch mutator."""

    scope: Scope
    target_ids: list[str]
    mutation_kind: MutationKind
    batch_size: int = Field(gt=0)
    inter_batch_delay_ms: int = Field(default=0, ge=0)
    # Upserts need the full record for each target id.
    records: dict[str, Record] = Field(default_factory=dict, exclude=True)

    @model_validator(mode="after")
    def _check_targets(self) -> "MutationPlan":
        if len(set(self.target_ids)) != len(self.target_ids):
            raise ValueError("target_ids must not contain duplicates")
        if self.mutation_kind == MutationKind.UPSERT:
            missing = [i for i in self.target_ids if i not in self.records]
            if missing:
                raise ValueError(f"upsert plan is missing records for ids: {missing[:5]}")
        return self

    @property
    def batch_count(self) -> int:
        return -(-len(self.target_ids) // self.batch_size)


class BatchResult(JsonModel):
    """Outcome of one batch, or the aggregate over many."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: list[RecordError] = []
    batch_number: int | None = None

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0

    def failed_ids(self) -> list[str]:
        return [e.id for e in self.errors]
