"""Operator CLI for the Bible names extractor.

Usage:
    bne collections
    bne groups juan
    bne units juan 1
    bne process juan 1 --provider ollama
    bne process juan 1 5 --force
    bne names list --type place --contains jeru
    bne names refs Pedro
    bne names delete Pedro --yes
    bne usage

Exit codes:
    0    success
    3    book, chapter or verse not found
    4    daily token limit reached (work done so far is kept)
    5    extraction service error or failed verses
    6    usage endpoint error (``bne usage``)
    130  cancelled by SIGINT / SIGTERM
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import click

from bne.config import PROVIDERS, Settings
from bne.corpus import CollectionInfo, JsonCorpus
from bne.errors import AccountingServiceError, ExtractionServiceError, UnitNotFound
from bne.extraction import BatchOrchestrator, ExtractionClient, NameExtractor, UnitProcessor
from bne.shared.llm import LLMError, get_provider
from bne.shared.logger import RunLogger
from bne.storage import ProcessingStore
from bne.types import GroupProgress, UnitProgress, UnitReference
from bne.usage import (
    AccountingClient,
    NullAccountingClient,
    UsageBudgetTracker,
    create_accounting_client,
)

EXIT_OK = 0
EXIT_NOT_FOUND = 3
EXIT_BUDGET_EXCEEDED = 4
EXIT_SERVICE_ERROR = 5
EXIT_ACCOUNTING_ERROR = 6
EXIT_CANCELLED = 130


@dataclass
class CliState:
    """Collaborators shared by every command of one invocation.

    ``extractor`` and ``accounting`` are built from settings unless they were
    supplied up front.
    """

    settings: Settings
    extractor: NameExtractor | None = None
    accounting: AccountingClient | None = None
    log: RunLogger | None = None
    _owned: list[Any] = field(default_factory=list, init=False, repr=False)

    def store(self) -> ProcessingStore:
        store = ProcessingStore(self.settings.db_path)
        store.create_tables()
        return store

    def corpus(self) -> JsonCorpus:
        return JsonCorpus(self.settings.corpus_dir, excluded=self.settings.excluded_collections)

    def build_extractor(self) -> NameExtractor:
        if self.extractor is None:
            settings = self.settings
            self.extractor = ExtractionClient(
                get_provider(settings.provider, settings),
                provider_factory=lambda name: get_provider(name, settings),
            )
            self._owned.append(self.extractor)
        return self.extractor

    def build_accounting(self) -> AccountingClient:
        if self.accounting is None:
            self.accounting = create_accounting_client(self.settings)
            self._owned.append(self.accounting)
        return self.accounting

    def budget(self) -> UsageBudgetTracker:
        return UsageBudgetTracker(
            self.build_accounting(),
            warning_threshold=self.settings.warning_threshold,
            limit_threshold=self.settings.limit_threshold,
        )

    def close(self) -> None:
        """Close the HTTP clients built by this state; injected ones are left open."""
        while self._owned:
            self._owned.pop().close()


def _ref(state: CliState, book: str, chapter: int, verse: int) -> UnitReference:
    return UnitReference(book, chapter, verse, state.settings.corpus_version)


def _collection_refs(state: CliState, corpus: JsonCorpus, info: CollectionInfo) -> list[UnitReference]:
    return [
        _ref(state, info.key, chapter, verse)
        for chapter in range(1, info.group_count + 1)
        for verse in range(1, corpus.count_units_in_group(info.key, chapter) + 1)
    ]


def _require_collection(corpus: JsonCorpus, book: str) -> CollectionInfo:
    info = corpus.get_collection(book)
    if info is None:
        click.echo(f"Error: unknown book {book!r}", err=True)
        sys.exit(EXIT_NOT_FOUND)
    return info


def _pct(done: int, total: int) -> str:
    return f"{done * 100 / total:5.1f}%" if total else "  0.0%"


def _format_names(names: list[Any]) -> str:
    return ", ".join(f"{n.name} ({n.type})" for n in names)


@contextmanager
def _cancel_on_signal(orchestrator: BatchOrchestrator, log: RunLogger) -> Iterator[None]:
    """Route SIGINT / SIGTERM to the orchestrator for the duration of a sweep."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(sig: int, frame: Any) -> None:
        log.warn(f"Received signal {sig}, stopping after the current verse...")
        orchestrator.cancel()

    previous = {s: signal.signal(s, handler) for s in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for s, h in previous.items():
            signal.signal(s, h)


def _refresh_budget(budget: UsageBudgetTracker, log: RunLogger) -> None:
    try:
        budget.refresh()
    except AccountingServiceError as e:
        log.warn(f"Usage API unavailable, continuing without a fresh snapshot: {e}")


@click.group()
@click.option("--db", "db_path", type=click.Path(path_type=Path), help="SQLite database (env BNE_DB_PATH)")
@click.option(
    "--corpus-dir",
    type=click.Path(path_type=Path, file_okay=False),
    help="Directory with _index.json and <book>.json (env BNE_CORPUS_DIR)",
)
@click.option("--log-file", type=click.Path(path_type=Path), help="Persist the run log (env BNE_LOG_FILE)")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.pass_context
def main(
    ctx: click.Context,
    db_path: Path | None,
    corpus_dir: Path | None,
    log_file: Path | None,
    verbose: bool,
) -> None:
    """Extract person and place names from a Spanish Bible, verse by verse."""
    state = ctx.obj if isinstance(ctx.obj, CliState) else CliState(Settings.from_environment())
    if db_path:
        state.settings.db_path = db_path
    if corpus_dir:
        state.settings.corpus_dir = corpus_dir
    if log_file:
        state.settings.log_file = log_file

    level = logging.DEBUG if verbose else logging.INFO
    log = RunLogger(state.settings.log_file, min_level=level)
    log.attach("bne", level)
    state.log = log
    ctx.obj = state

    def _close() -> None:
        state.close()
        log.detach("bne")
        log.close()

    ctx.call_on_close(_close)


@main.command()
@click.pass_obj
def collections(state: CliState) -> None:
    """List books with their processing progress."""
    corpus = state.corpus()
    store = state.store()
    infos = corpus.list_collections()
    if not infos:
        click.echo(f"No books found in {state.settings.corpus_dir}")
        return

    click.echo(f"{'Book':<16}{'Name':<24}{'Processed':>14}{'':>8}")
    for info in infos:
        refs = _collection_refs(state, corpus, info)
        done = store.count_processed(refs)
        click.echo(f"{info.key:<16}{info.display_name:<24}{f'{done}/{len(refs)}':>14}{_pct(done, len(refs)):>8}")


@main.command()
@click.argument("book")
@click.pass_obj
def groups(state: CliState, book: str) -> None:
    """List the chapters of BOOK with their processing progress."""
    corpus = state.corpus()
    store = state.store()
    info = _require_collection(corpus, book)

    click.echo(f"{info.display_name} ({info.key})")
    for chapter in range(1, info.group_count + 1):
        count = corpus.count_units_in_group(book, chapter)
        done = store.count_processed(_ref(state, book, chapter, v) for v in range(1, count + 1))
        click.echo(f"  {chapter:>3}  {f'{done}/{count}':>9} {_pct(done, count)}")


@main.command()
@click.argument("book")
@click.argument("chapter", type=int)
@click.pass_obj
def units(state: CliState, book: str, chapter: int) -> None:
    """List the verses of BOOK CHAPTER with their status and names."""
    corpus = state.corpus()
    store = state.store()
    _require_collection(corpus, book)
    verses = corpus.list_group_units(book, chapter)
    if not verses:
        click.echo(f"Error: {book} {chapter} not found", err=True)
        sys.exit(EXIT_NOT_FOUND)

    refs = [_ref(state, book, chapter, v.unit_number) for v in verses]
    done = store.processed_keys(refs)
    names = store.names_for_units(refs)
    for verse, ref in zip(verses, refs):
        if ref.key not in done:
            status = "pending"
        else:
            status = _format_names(names.get(ref.key, [])) or "(no names)"
        click.echo(f"  {verse.unit_number:>3}  {status}")


@main.command()
@click.argument("book")
@click.argument("chapter", type=int, required=False)
@click.argument("verse", type=int, required=False)
@click.option("--force", is_flag=True, help="Discard stored results and extract again")
@click.option("--provider", type=click.Choice(PROVIDERS), help="Use another LLM provider for this run")
@click.pass_obj
def process(
    state: CliState,
    book: str,
    chapter: int | None,
    verse: int | None,
    force: bool,
    provider: str | None,
) -> None:
    """Process a verse, a chapter or a whole book.

    Re-running the same command resumes where the last run stopped.
    """
    log = state.log
    try:
        state.settings.validate()
    except ValueError as e:
        raise click.UsageError(str(e))

    corpus = state.corpus()
    store = state.store()
    _require_collection(corpus, book)
    if chapter is not None and (chapter < 1 or corpus.count_units_in_group(book, chapter) == 0):
        click.echo(f"Error: {book} {chapter} not found", err=True)
        sys.exit(EXIT_NOT_FOUND)
    if verse is not None and verse < 1:
        click.echo(f"Error: {book} {chapter}:{verse} not found", err=True)
        sys.exit(EXIT_NOT_FOUND)

    try:
        extractor = state.build_extractor()
    except LLMError as e:
        click.echo(f"Error: cannot configure LLM provider: {e}", err=True)
        sys.exit(EXIT_SERVICE_ERROR)

    budget = state.budget()
    _refresh_budget(budget, log)
    processor = UnitProcessor(store, extractor, corpus)

    if verse is not None:
        sys.exit(_process_single(log, processor, budget, _ref(state, book, chapter, verse), force, provider))

    orchestrator = BatchOrchestrator(
        processor, budget, corpus, store,
        refresh_every=state.settings.refresh_every,
        corpus_version=state.settings.corpus_version,
    )

    def on_progress(event: UnitProgress | GroupProgress) -> None:
        if isinstance(event, UnitProgress):
            if event.failure:
                label = f"{event.reference} FAILED: {event.failure.message}"
            elif event.outcome and event.outcome.skipped:
                label = f"{event.reference} skipped"
            else:
                names = event.outcome.names if event.outcome else []
                label = f"{event.reference} {_format_names(names) or '-'}"
            log.progress(event.index, event.total, label)
        else:
            log.info(
                f"Chapter {event.group_number}/{event.group_total}: "
                f"{event.group_processed}/{event.group_units} | "
                f"{event.collection_key}: {event.collection_processed}/{event.collection_units} "
                f"({event.collection_percentage}%)"
            )

    with _cancel_on_signal(orchestrator, log):
        if chapter is not None:
            log.section(f"{book} {chapter}")
            result = orchestrator.sweep_group(
                book, chapter, force_reprocess=force, provider_override=provider, on_progress=on_progress,
            )
            newly, failures = result.newly_processed, result.failures
            log.count("verses_skipped", result.skipped)
            log.count("names_found", result.names_found)
        else:
            log.section(f"{book}")
            result = orchestrator.sweep_collection(
                book, force_reprocess=force, provider_override=provider, on_progress=on_progress,
            )
            newly, failures = result.newly_processed, result.failures
            log.count("verses_skipped", sum(g.skipped for g in result.groups))
            log.count("names_found", sum(g.names_found for g in result.groups))

    log.count("verses_processed", newly)
    log.count("verses_failed", len(failures))
    for warning in result.warnings:
        log.warn(warning)
    log.metric("progress", f"{result.processed_units}/{result.total_units} ({result.percentage}%)")
    log.summary()

    if result.cancelled:
        log.warn("Cancelled; re-run the same command to resume")
        sys.exit(EXIT_CANCELLED)
    if result.stopped_by_limit:
        log.warn(f"Daily token limit reached ({budget.current_total():,} tokens); resume tomorrow")
        sys.exit(EXIT_BUDGET_EXCEEDED)
    if failures:
        log.error(f"{len(failures)} verse(s) failed and remain pending")
        sys.exit(EXIT_SERVICE_ERROR)


def _process_single(
    log: RunLogger,
    processor: UnitProcessor,
    budget: UsageBudgetTracker,
    ref: UnitReference,
    force: bool,
    provider: str | None,
) -> int:
    if (force or not processor.store.is_processed(ref)) and not budget.can_proceed():
        log.warn(f"Daily token limit reached ({budget.current_total():,} tokens); {ref} not processed")
        return EXIT_BUDGET_EXCEEDED
    try:
        outcome = processor.process_unit(ref, force_reprocess=force, provider_override=provider)
    except UnitNotFound as e:
        click.echo(f"Error: {e}", err=True)
        return EXIT_NOT_FOUND
    except ExtractionServiceError as e:
        click.echo(f"Error: extraction failed for {ref}: {e}", err=True)
        return EXIT_SERVICE_ERROR

    if outcome.already_processed:
        state = "already processed"
    elif outcome.skipped:
        state = "skipped (no proper names)"
    else:
        state = "processed"
    click.echo(f"{ref}: {state}")
    for name in outcome.names:
        click.echo(f"  {name.name} ({name.type})")
    return EXIT_OK


@main.group()
def names() -> None:
    """Browse and curate extracted names."""


@names.command("list")
@click.option("--type", "name_type", type=click.Choice(["person", "place"]), help="Only this type")
@click.option("--contains", help="Case-insensitive substring filter")
@click.pass_obj
def names_list(state: CliState, name_type: str | None, contains: str | None) -> None:
    """List distinct names."""
    found = state.store().list_distinct_names(name_type=name_type, contains=contains)
    if not found:
        click.echo("No names found.")
        return
    for name in found:
        click.echo(f"{name.type:<8}{name.name}")
    click.echo(f"\n{len(found)} name(s)")


@names.command("refs")
@click.argument("name")
@click.pass_obj
def names_refs(state: CliState, name: str) -> None:
    """List the verses where NAME was extracted."""
    refs = state.store().list_units_for_name(name)
    if not refs:
        click.echo(f"No verses found for {name!r}.")
        return
    for ref in refs:
        click.echo(f"{ref.collection_key} {ref.group_number}:{ref.unit_number}")


@names.command("delete")
@click.argument("name")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def names_delete(state: CliState, name: str, yes: bool) -> None:
    """Delete every record of NAME. Verses stay processed."""
    store = state.store()
    count = len(store.list_units_for_name(name))
    if count == 0:
        click.echo(f"No records found for {name!r}.")
        return
    if not yes:
        click.confirm(f"Delete {name!r} from {count} verse(s)?", abort=True)
    deleted = store.delete_name(name)
    click.echo(f"Deleted {deleted} record(s) of {name!r}.")


@main.command()
@click.pass_obj
def usage(state: CliState) -> None:
    """Show today's token usage against the budget."""
    accounting = state.build_accounting()
    if isinstance(accounting, NullAccountingClient):
        click.echo("Budget tracking disabled (OPENAI_ADMIN_KEY not set).")
        return

    budget = state.budget()
    try:
        snapshot = budget.refresh()
    except AccountingServiceError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ACCOUNTING_ERROR)

    if budget.is_at_limit():
        status = "LIMIT REACHED"
    elif budget.is_at_warning():
        status = "WARNING"
    else:
        status = "OK"

    click.echo(f"Date (UTC):  {snapshot.as_of_date.isoformat()}")
    click.echo(f"Input:       {snapshot.input_units:,}")
    click.echo(f"Output:      {snapshot.output_units:,}")
    click.echo(f"Total:       {snapshot.total_units:,} / {budget.limit_threshold:,} ({_pct(snapshot.total_units, budget.limit_threshold).strip()})")
    click.echo(f"Requests:    {snapshot.request_count:,}")
    click.echo(f"Warning at:  {budget.warning_threshold:,}")
    click.echo(f"Status:      {status}")


if __name__ == "__main__":
    main()
