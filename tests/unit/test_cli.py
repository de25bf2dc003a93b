"""Unit tests for the maintenance CLI entrypoint."""

import json
import logging

import pytest

from maintenance import cli
from maintenance.enums import ConfirmationMode, StoreKind
from tests.fakes import FakeStore, make_record


@pytest.fixture(autouse=True)
def cli_env(tmp_path, monkeypatch):
    """Run from an empty directory with credentials in the environment."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PINECONE_API_KEY", "test-key")
    monkeypatch.setenv("DYNAMODB_TABLE_NAME", "test-table")
    monkeypatch.setattr(cli, "configure_logging", lambda verbose=False: None)


class Harness:
    def __init__(self, store: FakeStore, answer: str = "n") -> None:
        self.store = store
        self.answer = answer
        self.runs = []
        self.prompts = []

    def factory(self, run, config):
        self.runs.append(run)
        return self.store

    def input(self, prompt):
        self.prompts.append(prompt)
        return self.answer

    def main(self, *argv):
        return cli.main(list(argv), input_fn=self.input, sleep=lambda s: None, store_factory=self.factory)


@pytest.fixture
def namespace_store():
    return FakeStore(
        {
            "ns": [
                make_record("u1", category="user"),
                make_record("m1", category="user_memory", group_key="g", usage=1),
                make_record("m2", category="user_memory", group_key="g", usage=3),
            ]
        }
    )


class TestProcedures:
    def test_record_types_is_read_only(self, namespace_store):
        harness = Harness(namespace_store)

        assert harness.main("record-types", "ns", "--store", "dynamodb") == 0
        assert harness.runs[0].store == StoreKind.DYNAMODB
        assert harness.runs[0].mode == ConfirmationMode.DRY_RUN
        assert harness.prompts == []
        assert namespace_store.delete_calls == []

    def test_cleanup_duplicates_auto_confirm(self, namespace_store):
        harness = Harness(namespace_store)

        assert harness.main("cleanup-duplicates", "ns", "--auto-confirm") == 0
        assert namespace_store.ids("ns") == ["u1", "m2"]

    def test_cleanup_duplicates_dry_run(self, namespace_store):
        harness = Harness(namespace_store)

        assert harness.main("cleanup-duplicates", "ns", "--dry-run") == 0
        assert namespace_store.delete_calls == []
        assert harness.prompts == []

    def test_interactive_decline_exits_zero(self, namespace_store):
        harness = Harness(namespace_store, answer="no")

        assert harness.main("delete-namespace-records", "ns", "--exclude-types=user") == 0
        assert len(harness.prompts) == 1
        assert "2 record(s)" in harness.prompts[0]
        assert namespace_store.delete_calls == []

    def test_interactive_accept_deletes(self, namespace_store):
        harness = Harness(namespace_store, answer="yes")

        assert harness.main("delete-namespace-records", "ns", "--include-types=user_memory,user", "--exclude-types=user") == 0
        assert namespace_store.ids("ns") == ["u1"]

    def test_copy_namespace_targets(self, namespace_store):
        harness = Harness(namespace_store)

        code = harness.main("copy-namespace", "ns", "--target", "a", "--target", "b", "--auto-confirm")

        assert code == 0
        assert harness.runs[0].target_scopes == ("a", "b")
        assert namespace_store.ids("a") == ["u1", "m1", "m2"]
        assert namespace_store.ids("b") == ["u1", "m1", "m2"]

    def test_delete_user_records_applies_default_exclusions(self):
        store = FakeStore(
            {"user-1": [make_record("p", category="user"), make_record("s", category="subscription"), make_record("w", category="workout")]}
        )
        harness = Harness(store)

        assert harness.main("delete-user-records", "user-1", "--auto-confirm", "--table=t") == 0
        assert harness.runs[0].exclude_types == ("user", "subscription")
        assert harness.runs[0].batch_size == 25
        assert store.ids("user-1") == ["p", "s"]

    def test_report_file_is_written(self, namespace_store, tmp_path):
        harness = Harness(namespace_store)
        path = tmp_path / "out" / "report.json"

        assert harness.main("cleanup-duplicates", "ns", "--dry-run", "--report-file", str(path)) == 0

        data = json.loads(path.read_text())
        assert data["procedure"] == "cleanup-duplicates"
        assert data["plannedIds"] == ["m1"]
        assert data["dryRun"] is True

    def test_cleanup_duplicates_honours_include_types(self):
        store = FakeStore(
            {
                "ns": [
                    make_record("n1", category="note", group_key="g", usage=1),
                    make_record("n2", category="note", group_key="g", usage=4),
                    make_record("m1", category="user_memory", group_key="h", usage=1),
                    make_record("m2", category="user_memory", group_key="h", usage=4),
                ]
            }
        )

        assert Harness(store).main("cleanup-duplicates", "ns", "--include-types=note", "--auto-confirm") == 0
        assert store.ids("ns") == ["n2", "m1", "m2"]

    def test_record_type_beats_include_types(self):
        store = FakeStore(
            {
                "ns": [
                    make_record("n1", category="note", group_key="g", usage=1),
                    make_record("n2", category="note", group_key="g", usage=4),
                ]
            }
        )

        code = Harness(store).main(
            "cleanup-duplicates", "ns", "--include-types=user_memory", "--record-type=note", "--auto-confirm"
        )

        assert code == 0
        assert store.ids("ns") == ["n2"]

    def test_cleanup_namespaces_uses_default_prefix(self):
        store = FakeStore({"user_test_1": [make_record("a")], "user_test_2": [make_record("b")], "prod": [make_record("p")]})
        harness = Harness(store, answer="y")

        assert harness.main("cleanup-namespaces") == 0
        assert harness.runs[0].scope == "user_test_"
        assert harness.runs[0].inter_batch_delay_ms == 200
        assert "2 namespace(s)" in harness.prompts[0]
        assert list(store.scopes) == ["prod"]

    def test_cleanup_namespaces_custom_prefix_dry_run(self):
        store = FakeStore({"user_test_1": [make_record("a")], "staging_1": [make_record("b")]})
        harness = Harness(store)

        assert harness.main("cleanup-namespaces", "--prefix", "staging_", "--dry-run") == 0
        assert harness.runs[0].scope == "staging_"
        assert store.purge_calls == []

    def test_verification_failure_still_writes_report(self, tmp_path):
        class FlakyFetchStore(FakeStore):
            def fetch(self, scope, ids):
                raise RuntimeError("throttled")

        store = FlakyFetchStore({"ns": [make_record("a"), make_record("b")]})
        path = tmp_path / "report.json"

        code = Harness(store).main(
            "delete-namespace-records", "ns", "--auto-confirm", "--verbose", "--report-file", str(path)
        )

        assert code == 0
        data = json.loads(path.read_text())
        assert data["result"]["succeeded"] == 2
        assert "remaining" not in data
        assert store.ids("ns") == []


class TestExitCodes:
    def test_missing_api_key(self, monkeypatch, namespace_store):
        monkeypatch.delenv("PINECONE_API_KEY")

        assert Harness(namespace_store).main("cleanup-duplicates", "ns", "--dry-run") == 1

    def test_missing_table(self, monkeypatch):
        monkeypatch.delenv("DYNAMODB_TABLE_NAME")

        assert Harness(FakeStore()).main("delete-user-records", "user-1", "--dry-run") == 1

    def test_scope_unavailable(self):
        store = FakeStore()
        store.list_error = RuntimeError("namespace missing")

        assert Harness(store).main("delete-namespace-records", "ns", "--auto-confirm") == 1

    def test_delete_partial_failure_is_strict_by_default(self, namespace_store):
        namespace_store.failing_ids = {"m1"}

        assert Harness(namespace_store).main("delete-namespace-records", "ns", "--auto-confirm") == 1

    def test_cleanup_partial_failure_needs_strict(self, namespace_store):
        namespace_store.failing_delete_calls = {1}

        assert Harness(namespace_store).main("cleanup-duplicates", "ns", "--auto-confirm") == 0

    def test_cleanup_partial_failure_with_strict(self, namespace_store):
        namespace_store.failing_delete_calls = {1}

        assert Harness(namespace_store).main("cleanup-duplicates", "ns", "--auto-confirm", "--strict") == 1

    def test_copy_into_source_is_a_configuration_error(self, namespace_store):
        assert Harness(namespace_store).main("copy-namespace", "ns", "--target", "ns", "--auto-confirm") == 1

    @pytest.mark.parametrize(
        "argv",
        [
            ("delete-user-records", "user-1", "--weeks=0", "--dry-run"),
            ("delete-namespace-records", "ns", "--batch-size=0", "--dry-run"),
        ],
    )
    def test_out_of_range_option_is_a_configuration_error(self, argv, caplog):
        with caplog.at_level(logging.ERROR, logger="maintenance.cli"):
            assert Harness(FakeStore()).main(*argv) == 1

        assert "Configuration error" in caplog.text
        assert "Fatal error" not in caplog.text

    def test_empty_namespace_prefix_is_rejected(self):
        store = FakeStore({"user_test_1": [make_record("a")]})

        assert Harness(store).main("cleanup-namespaces", "--prefix=", "--auto-confirm") == 1
        assert store.purge_calls == []

    def test_failed_namespace_purge_exits_non_zero(self):
        store = FakeStore({"user_test_1": [make_record("a")]})
        store.failing_purges = {"user_test_1"}

        assert Harness(store).main("cleanup-namespaces", "--auto-confirm") == 1

    def test_dry_run_and_auto_confirm_conflict(self):
        with pytest.raises(SystemExit) as exc:
            Harness(FakeStore()).main("cleanup-duplicates", "ns", "--dry-run", "--auto-confirm")

        assert exc.value.code == 2


def test_comma_list_strips_blanks():
    assert cli._comma_list(" a, b,,c ") == ("a", "b", "c")
