"""Tests for the bne command line."""
import pytest
from click.testing import CliRunner

from bne.cli import CliState, main
from bne.config import Settings
from bne.errors import AccountingServiceError
from bne.storage import ProcessingStore
from bne.types import UnitReference

from conftest import FakeAccounting, FakeExtractor


@pytest.fixture
def settings(tmp_path, corpus_dir):
    return Settings(db_path=tmp_path / "cli.db", corpus_dir=corpus_dir)


@pytest.fixture
def run(settings, extractor):
    def invoke(*args, extractor=extractor, accounting=None, input=None):
        state = CliState(settings, extractor=extractor, accounting=accounting or FakeAccounting(0))
        return CliRunner().invoke(main, list(args), obj=state, input=input)
    return invoke


def processed(settings, *refs):
    store = ProcessingStore(settings.db_path)
    store.create_tables()
    return [store.is_processed(r) for r in refs]


def test_collections_lists_progress(run):
    run("process", "juan", "1")

    result = run("collections")

    assert result.exit_code == 0
    assert "juan" in result.output
    assert "3/8" in result.output
    assert "0/2" in result.output


def test_groups(run):
    run("process", "juan", "1")

    result = run("groups", "juan")

    assert result.exit_code == 0
    assert "3/3" in result.output
    assert "0/5" in result.output


def test_groups_unknown_book(run):
    assert run("groups", "hechos").exit_code == 3


def test_units_shows_status_and_names(run):
    run("process", "juan", "1", "2")

    result = run("units", "juan", "1")

    assert result.exit_code == 0
    assert "Jesús (person), Jerusalén (place)" in result.output
    assert "pending" in result.output


def test_process_group(run, settings, extractor):
    result = run("process", "juan", "1")

    assert result.exit_code == 0, result.output
    assert len(extractor.calls) == 1
    assert processed(settings, *(UnitReference("juan", 1, n) for n in (1, 2, 3))) == [True] * 3


def test_process_collection(run, settings):
    result = run("process", "juan")

    assert result.exit_code == 0, result.output
    assert "8/8" in result.output


def test_process_single_unit_is_idempotent(run, extractor):
    first = run("process", "juan", "1", "2")
    second = run("process", "juan", "1", "2")

    assert first.exit_code == second.exit_code == 0
    assert "processed" in first.output
    assert "Jerusalén (place)" in first.output
    assert "already processed" in second.output
    assert len(extractor.calls) == 1


def test_process_force(run, extractor):
    run("process", "juan", "1", "2")

    result = run("process", "juan", "1", "2", "--force", "--provider", "ollama")

    assert result.exit_code == 0
    assert len(extractor.calls) == 2
    assert extractor.calls[-1][2] == "ollama"


def test_process_rejects_unknown_provider(run):
    assert run("process", "juan", "1", "--provider", "mistral").exit_code == 2


@pytest.mark.parametrize("args", [("hechos",), ("juan", "9"), ("juan", "1", "99"), ("juan", "1", "0")])
def test_process_not_found(run, args):
    assert run("process", *args).exit_code == 3


def test_process_service_error(run, settings):
    failing = FakeExtractor(fail_on={"Jesús subió a Jerusalén"})

    result = run("process", "juan", "1", "2", extractor=failing)

    assert result.exit_code == 5
    assert processed(settings, UnitReference("juan", 1, 2)) == [False]


def test_sweep_with_failures_exits_with_service_error(run, settings):
    failing = FakeExtractor(fail_on={"Jesús subió a Jerusalén"})

    result = run("process", "juan", "1", extractor=failing)

    assert result.exit_code == 5
    assert processed(settings, *(UnitReference("juan", 1, n) for n in (1, 2, 3))) == [True, False, True]


def test_process_budget_exceeded(run, settings, extractor):
    result = run("process", "juan", "1", accounting=FakeAccounting(3_000_000))

    assert result.exit_code == 4
    assert extractor.calls == []
    assert processed(settings, UnitReference("juan", 1, 1)) == [False]


def test_single_unit_budget_exceeded(run, extractor):
    result = run("process", "juan", "1", "2", accounting=FakeAccounting(3_000_000))

    assert result.exit_code == 4
    assert extractor.calls == []


def test_accounting_outage_does_not_block(run, extractor):
    result = run("process", "juan", "1", accounting=FakeAccounting(AccountingServiceError(None, "timeout")))

    assert result.exit_code == 0
    assert len(extractor.calls) == 1


class TestNamesCommands:
    @pytest.fixture(autouse=True)
    def populated(self, run):
        run("process", "juan", "1", "2")

    def test_list(self, run):
        result = run("names", "list")
        assert "Jesús" in result.output
        assert "Jerusalén" in result.output

    def test_list_filters(self, run):
        result = run("names", "list", "--type", "place", "--contains", "JERU")
        assert "Jerusalén" in result.output
        assert "Jesús" not in result.output

    def test_list_empty(self, run):
        assert "No names found." in run("names", "list", "--contains", "zzz").output

    def test_refs(self, run):
        result = run("names", "refs", "Jesús")
        assert "juan 1:2" in result.output

    def test_delete_with_yes(self, run, settings):
        result = run("names", "delete", "Jesús", "--yes")

        assert result.exit_code == 0
        assert "Deleted 1 record(s)" in result.output
        assert "No verses found" in run("names", "refs", "Jesús").output
        assert processed(settings, UnitReference("juan", 1, 2)) == [True]

    def test_delete_declined(self, run):
        result = run("names", "delete", "Jesús", input="n\n")

        assert result.exit_code == 1
        assert "juan 1:2" in run("names", "refs", "Jesús").output

    def test_delete_unknown(self, run):
        assert "No records found" in run("names", "delete", "Goliat", "--yes").output


class TestUsageCommand:
    def test_ok(self, run):
        result = run("usage", accounting=FakeAccounting(1_000))

        assert result.exit_code == 0
        assert "1,000" in result.output
        assert "Status:      OK" in result.output

    def test_warning(self, run):
        result = run("usage", accounting=FakeAccounting(2_400_000))
        assert "WARNING" in result.output

    def test_limit(self, run):
        result = run("usage", accounting=FakeAccounting(2_500_000))
        assert "LIMIT REACHED" in result.output

    def test_accounting_error(self, run):
        result = run("usage", accounting=FakeAccounting(AccountingServiceError(401, "bad admin key")))
        assert result.exit_code == 6

    def test_disabled_without_admin_key(self, settings):
        result = CliRunner().invoke(main, ["usage"], obj=CliState(settings))

        assert result.exit_code == 0
        assert "disabled" in result.output


def test_global_options_override_settings(tmp_path, corpus_dir, extractor):
    state = CliState(Settings(), extractor=extractor, accounting=FakeAccounting(0))
    db = tmp_path / "other.db"
    log_file = tmp_path / "logs" / "run.log"

    result = CliRunner().invoke(
        main,
        ["--db", str(db), "--corpus-dir", str(corpus_dir), "--log-file", str(log_file), "process", "juan", "1"],
        obj=state,
    )

    assert result.exit_code == 0, result.output
    assert db.exists()
    assert "RUN SUMMARY" in log_file.read_text(encoding="utf-8")


def test_state_closes_http_clients_it_built(settings):
    settings.provider = "ollama"
    settings.openai_admin_key = "sk-admin-test"
    state = CliState(settings)
    extractor = state.build_extractor()
    accounting = state.build_accounting()

    state.close()

    assert extractor.provider._client.is_closed
    assert accounting._client.is_closed


def test_invocation_closes_built_clients_and_keeps_injected(settings):
    settings.provider = "ollama"
    injected = FakeAccounting(0)
    state = CliState(settings, accounting=injected)
    extractor = state.build_extractor()

    result = CliRunner().invoke(main, ["groups", "juan"], obj=state)

    assert result.exit_code == 0
    assert extractor.provider._client.is_closed
    assert state.accounting is injected
