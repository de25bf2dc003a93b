"""Unit tests for BatchMutator partitioning, pacing, and failure isolation."""

import pytest
from hypothesis import given, settings, strategies as st

from maintenance.enums import MutationKind
from maintenance.errors import BatchMutationFailure
from maintenance.models.records import MutationPlan, Scope
from maintenance.services.batch_mutator import BatchMutator, partition
from tests.fakes import FakeStore, make_record

SCOPE = Scope(name="ns")


def _delete_plan(ids, batch_size=100, delay_ms=1000):
    return MutationPlan(
        scope=SCOPE,
        target_ids=ids,
        mutation_kind=MutationKind.DELETE,
        batch_size=batch_size,
        inter_batch_delay_ms=delay_ms,
    )


class TestPartition:
    def test_last_chunk_is_shorter(self):
        assert partition(list(range(5)), 2) == [[0, 1], [2, 3], [4]]

    def test_empty(self):
        assert partition([], 3) == []

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            partition([1], 0)


class TestBatchMutator:
    def test_250_ids_run_as_three_batches_with_two_delays(self, sleeps):
        ids = [f"id{i}" for i in range(250)]
        store = FakeStore({"ns": [make_record(i) for i in ids]})
        mutator = BatchMutator(store, sleep=sleeps.append)

        result = mutator.run(_delete_plan(ids))

        assert [len(call) for call in store.delete_calls] == [100, 100, 50]
        assert store.delete_calls[0][0] == "id0"
        assert store.delete_calls[2][-1] == "id249"
        assert sleeps == [1.0, 1.0]
        assert (result.attempted, result.succeeded, result.failed) == (250, 250, 0)
        assert store.ids("ns") == []

    def test_execute_yields_one_result_per_batch(self):
        store = FakeStore()
        mutator = BatchMutator(store, sleep=lambda s: None)

        results = list(mutator.execute(_delete_plan(["a", "b", "c"], batch_size=2)))

        assert [r.batch_number for r in results] == [1, 2]
        assert [r.attempted for r in results] == [2, 1]

    def test_failed_batch_marks_every_id_and_run_continues(self, sleeps):
        ids = [f"id{i}" for i in range(6)]
        store = FakeStore({"ns": [make_record(i) for i in ids]})
        store.failing_delete_calls = {2}
        mutator = BatchMutator(store, sleep=sleeps.append)

        result = mutator.run(_delete_plan(ids, batch_size=2, delay_ms=0))

        assert len(store.delete_calls) == 3
        assert result.failed == 2
        assert result.succeeded == 4
        assert result.failed_ids() == ["id2", "id3"]
        assert all("service unavailable" in e.message for e in result.errors)
        assert sleeps == []

    def test_batch_mutation_failure_uses_its_message(self):
        class AllFail(FakeStore):
            def delete_many(self, scope, ids):
                raise BatchMutationFailure(list(ids), "all deletes failed")

        mutator = BatchMutator(AllFail(), sleep=lambda s: None)

        result = mutator.run(_delete_plan(["x", "y"]))

        assert result.failed_ids() == ["x", "y"]
        assert {e.message for e in result.errors} == {"all deletes failed"}

    def test_per_id_errors_are_counted(self):
        store = FakeStore({"ns": [make_record("ok"), make_record("bad")]})
        store.failing_ids = {"bad"}
        failures = []
        mutator = BatchMutator(store, sleep=lambda s: None, on_failure=lambda scope, e: failures.append((scope, e.id)))

        result = mutator.run(_delete_plan(["ok", "bad"]))

        assert (result.succeeded, result.failed) == (1, 1)
        assert failures == [("ns", "bad")]

    def test_upsert_sends_full_records(self):
        records = {r.id: r for r in [make_record("a"), make_record("b")]}
        store = FakeStore()
        plan = MutationPlan(
            scope=Scope(name="target"),
            target_ids=["a", "b"],
            mutation_kind=MutationKind.UPSERT,
            batch_size=1,
            records=records,
        )

        result = BatchMutator(store, sleep=lambda s: None).run(plan)

        assert result.succeeded == 2
        assert store.upsert_calls == [("target", ["a"]), ("target", ["b"])]
        assert store.ids("target") == ["a", "b"]

    def test_empty_plan_does_nothing(self, sleeps):
        store = FakeStore()

        result = BatchMutator(store, sleep=sleeps.append).run(_delete_plan([]))

        assert result.attempted == 0
        assert store.delete_calls == []
        assert sleeps == []

    def test_purge_drops_one_scope_per_batch(self, sleeps):
        store = FakeStore({"user_test_a": [make_record("a")], "user_test_b": [make_record("b")], "keep": [make_record("k")]})
        store.failing_purges = {"user_test_a"}
        plan = MutationPlan(
            scope=Scope(name="user_test_"),
            target_ids=["user_test_a", "user_test_b"],
            mutation_kind=MutationKind.PURGE,
            batch_size=1,
            inter_batch_delay_ms=200,
        )

        result = BatchMutator(store, sleep=sleeps.append).run(plan)

        assert store.purge_calls == ["user_test_a", "user_test_b"]
        assert result.succeeded == 1
        assert [e.id for e in result.errors] == ["user_test_a"]
        assert sorted(store.scopes) == ["keep", "user_test_a"]
        assert sleeps == [0.2]


@given(
    st.integers(min_value=0, max_value=400),
    st.integers(min_value=1, max_value=120),
)
@settings(max_examples=100)
def test_batches_never_exceed_size_and_cover_all_ids(count, batch_size):
    ids = [f"id{i}" for i in range(count)]
    store = FakeStore()
    delays = []

    BatchMutator(store, sleep=delays.append).run(_delete_plan(ids, batch_size=batch_size, delay_ms=5))

    sizes = [len(call) for call in store.delete_calls]
    assert all(size <= batch_size for size in sizes)
    assert sum(sizes) == count
    assert [i for call in store.delete_calls for i in call] == ids
    assert len(delays) == max(len(sizes) - 1, 0)
