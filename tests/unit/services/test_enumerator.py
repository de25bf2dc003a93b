"""Unit tests for PaginatedEnumerator."""

import logging

import pytest

from maintenance.errors import ScopeUnavailable
from maintenance.models.records import ListPage, Scope
from maintenance.services.enumerator import PaginatedEnumerator
from tests.fakes import FakeStore, make_record

SCOPE = Scope(name="ns")


class TestPagedEnumeration:
    def test_follows_cursor_until_exhausted(self, sleeps):
        store = FakeStore({"ns": [make_record(f"r{i}") for i in range(5)]}, page_size=2)
        enumerator = PaginatedEnumerator(store, page_delay_ms=100, sleep=sleeps.append)

        result = enumerator.enumerate(SCOPE)

        assert result.ids() == ["r0", "r1", "r2", "r3", "r4"]
        assert result.pages == 3
        assert store.list_calls == [None, 2, 4]
        assert sleeps == [0.1, 0.1]
        assert result.approximate is False

    def test_empty_first_page_is_not_an_error(self):
        store = FakeStore({"ns": []})

        result = PaginatedEnumerator(store, sleep=lambda s: None).enumerate(SCOPE)

        assert len(result) == 0
        assert result.pages == 1

    def test_overlapping_pages_are_deduplicated(self):
        store = FakeStore({"ns": [make_record("a"), make_record("b"), make_record("c")]}, page_size=2)
        store.page_extras = {2: [make_record("a"), make_record("b")]}

        result = PaginatedEnumerator(store, sleep=lambda s: None).enumerate(SCOPE)

        assert result.ids() == ["a", "b", "c"]

    def test_store_error_becomes_scope_unavailable(self):
        store = FakeStore()
        store.list_error = RuntimeError("connection refused")

        with pytest.raises(ScopeUnavailable) as exc:
            PaginatedEnumerator(store, sleep=lambda s: None).enumerate(SCOPE)

        assert exc.value.scope == "ns"
        assert "connection refused" in exc.value.reason

    def test_scope_unavailable_passes_through(self):
        store = FakeStore()
        store.list_error = ScopeUnavailable("ns", "table does not exist")

        with pytest.raises(ScopeUnavailable, match="table does not exist"):
            PaginatedEnumerator(store, sleep=lambda s: None).enumerate(SCOPE)

    def test_cursor_is_passed_back_unmodified(self):
        class TokenStore(FakeStore):
            seen_cursors: list = []

            def list(self, scope, cursor=None):
                self.seen_cursors.append(cursor)
                if cursor is None:
                    return super().list(scope, None).model_copy(update={"next_cursor": {"sk": "opaque"}})
                return super().list(scope, 2)

        store = TokenStore({"ns": [make_record(f"r{i}") for i in range(4)]}, page_size=2)

        PaginatedEnumerator(store, sleep=lambda s: None).enumerate(SCOPE)

        assert store.seen_cursors == [None, {"sk": "opaque"}]

    def test_falsy_cursor_still_continues(self):
        class ZeroCursorStore(FakeStore):
            def list(self, scope, cursor=None):
                self.list_calls.append(cursor)
                if cursor is None:
                    return ListPage(items=[make_record("a")], next_cursor=0)
                return ListPage(items=[make_record("b")], next_cursor=None)

        store = ZeroCursorStore()

        result = PaginatedEnumerator(store, sleep=lambda s: None).enumerate(SCOPE)

        assert result.ids() == ["a", "b"]
        assert store.list_calls == [None, 0]
        assert result.pages == 2


class TestProbeEnumeration:
    def test_merges_probe_hits_and_flags_approximate(self, caplog):
        store = FakeStore(supports_listing=False)
        store.search_results = {
            "q1": [make_record("a"), make_record("b")],
            "q2": [make_record("b"), make_record("c")],
        }
        enumerator = PaginatedEnumerator(store, probe_queries=["q1", "q2"], sleep=lambda s: None)

        with caplog.at_level(logging.WARNING):
            result = enumerator.enumerate(SCOPE)

        assert result.ids() == ["a", "b", "c"]
        assert result.approximate is True
        assert any("approximating" in r.getMessage() for r in caplog.records)
        assert store.list_calls == []

    def test_failing_probe_is_skipped(self):
        store = FakeStore(supports_listing=False)
        store.search_results = {"ok": [make_record("a")]}
        store.search_errors = {"bad": RuntimeError("timeout")}

        result = PaginatedEnumerator(store, probe_queries=["bad", "ok"]).enumerate(SCOPE)

        assert result.ids() == ["a"]
        assert result.pages == 1

    def test_every_probe_failing_is_fatal(self):
        store = FakeStore(supports_listing=False)
        store.search_errors = {"q": RuntimeError("timeout")}

        with pytest.raises(ScopeUnavailable, match="every probe query failed"):
            PaginatedEnumerator(store, probe_queries=["q"]).enumerate(SCOPE)

    def test_no_probe_queries_is_fatal(self):
        store = FakeStore(supports_listing=False)

        with pytest.raises(ScopeUnavailable):
            PaginatedEnumerator(store).enumerate(SCOPE)

    def test_probe_respects_top_k(self):
        store = FakeStore(supports_listing=False)
        store.search_results = {"q": [make_record(f"r{i}") for i in range(10)]}

        result = PaginatedEnumerator(store, probe_queries=["q"], probe_top_k=3).enumerate(SCOPE)

        assert len(result) == 3
