"""Sequential chapter and book sweeps with budget gating.

Each verse is checked for cancellation and then against the budget before
it is processed. A stopped sweep leaves the remaining verses unprocessed,
so re-running the same command resumes where the last run stopped.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from bne.config import DEFAULT_REFRESH_EVERY
from bne.corpus import Corpus
from bne.errors import AccountingServiceError, ExtractionServiceError, UnitNotFound
from bne.storage import ProcessingStore
from bne.types import (
    DEFAULT_CORPUS_VERSION,
    CollectionSweepResult,
    GroupProgress,
    GroupSweepResult,
    UnitFailure,
    UnitProgress,
    UnitReference,
)
from bne.usage import UsageBudgetTracker

from .processor import UnitProcessor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UnitProgress | GroupProgress], None]


class BatchOrchestrator:
    """Sweeps the pending verses of a chapter or book under the usage budget."""

    def __init__(
        self,
        processor: UnitProcessor,
        budget: UsageBudgetTracker,
        corpus: Corpus,
        store: ProcessingStore,
        refresh_every: int = DEFAULT_REFRESH_EVERY,
        corpus_version: str = DEFAULT_CORPUS_VERSION,
    ) -> None:
        if refresh_every < 1:
            raise ValueError(f"refresh_every must be >= 1, got {refresh_every}")
        self.processor = processor
        self.budget = budget
        self.corpus = corpus
        self.store = store
        self.refresh_every = refresh_every
        self.corpus_version = corpus_version
        self._cancel = threading.Event()
        # Counted across every sweep of this run.
        self._newly_processed = 0

    def cancel(self) -> None:
        """Ask the running sweep to stop before its next unit."""
        self._cancel.set()

    def _ref(self, collection_key: str, group_number: int, unit_number: int) -> UnitReference:
        return UnitReference(collection_key, group_number, unit_number, self.corpus_version)

    def _refresh_budget(self, warnings: list[str]) -> None:
        try:
            self.budget.refresh()
        except AccountingServiceError as e:
            warnings.append(f"Budget refresh failed: {e}")

    def _group_refs(self, collection_key: str, group_number: int) -> list[UnitReference]:
        count = self.corpus.count_units_in_group(collection_key, group_number)
        return [self._ref(collection_key, group_number, n) for n in range(1, count + 1)]

    def sweep_group(
        self,
        collection_key: str,
        group_number: int,
        *,
        force_reprocess: bool = False,
        provider_override: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> GroupSweepResult:
        """Process every pending verse of one chapter in ascending order.

        Returns:
            GroupSweepResult whose ``outcome`` is ``completed``,
            ``stopped_by_limit`` or ``cancelled``.
        """
        units = self.corpus.list_group_units(collection_key, group_number)
        result = GroupSweepResult(collection_key, group_number, total_units=len(units))
        if not units:
            logger.warning("[Sweep] %s %d has no units", collection_key, group_number)
            return result

        refs = [self._ref(collection_key, group_number, u.unit_number) for u in units]
        done = set() if force_reprocess else self.store.processed_keys(refs)
        texts = {u.unit_number: u.text for u in units}
        pending = [r for r in refs if r.key not in done]
        result.pending_units = len(pending)
        logger.info(
            "[Sweep] %s %d: %d/%d pending",
            collection_key, group_number, len(pending), len(units),
        )

        for index, ref in enumerate(pending, start=1):
            if self._cancel.is_set():
                logger.info("[Sweep] Cancelled before %s", ref)
                result.outcome = "cancelled"
                break
            if not self.budget.can_proceed():
                logger.warning(
                    "[Sweep] Daily limit reached (%d tokens), stopping before %s",
                    self.budget.current_total(), ref,
                )
                result.outcome = "stopped_by_limit"
                self._refresh_budget(result.warnings)
                break

            text = texts.get(ref.unit_number) or None
            context = None
            if ref.unit_number > 1:
                context = texts.get(ref.unit_number - 1) or None
            progress = UnitProgress(ref, index, len(pending))
            try:
                outcome = self.processor.process(
                    ref, text, context,
                    force_reprocess=force_reprocess,
                    provider_override=provider_override,
                )
            except (UnitNotFound, ExtractionServiceError) as e:
                logger.error("[Sweep] %s failed: %s", ref, e)
                progress.failure = UnitFailure(ref, type(e).__name__, str(e))
                result.failures.append(progress.failure)
            else:
                progress.outcome = outcome
                if outcome.newly_processed:
                    result.newly_processed += 1
                    result.names_found += len(outcome.names)
                    if outcome.skipped:
                        result.skipped += 1
                    self._newly_processed += 1
                    if self._newly_processed % self.refresh_every == 0:
                        self._refresh_budget(result.warnings)

            if on_progress:
                on_progress(progress)

        result.processed_units = self.store.count_processed(refs)
        logger.info(
            "[Sweep] %s %d %s: %d new (%d skipped), %d names, %d failed",
            collection_key, group_number, result.outcome, result.newly_processed,
            result.skipped, result.names_found, len(result.failures),
        )
        return result

    def sweep_collection(
        self,
        collection_key: str,
        *,
        force_reprocess: bool = False,
        provider_override: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> CollectionSweepResult:
        """Sweep every chapter of a book, stopping at the first stopped chapter."""
        info = self.corpus.get_collection(collection_key)
        if info is None:
            raise KeyError(f"Unknown collection: {collection_key}")

        group_refs = {
            g: self._group_refs(collection_key, g) for g in range(1, info.group_count + 1)
        }
        processed = {g: self.store.count_processed(refs) for g, refs in group_refs.items()}
        result = CollectionSweepResult(
            collection_key,
            total_units=sum(len(refs) for refs in group_refs.values()),
            processed_units=sum(processed.values()),
        )

        for group_number, refs in group_refs.items():
            if self._cancel.is_set():
                result.outcome = "cancelled"
                break
            if not self.budget.can_proceed():
                result.outcome = "stopped_by_limit"
                self._refresh_budget(result.warnings)
                break

            group = self.sweep_group(
                collection_key, group_number,
                force_reprocess=force_reprocess,
                provider_override=provider_override,
                on_progress=on_progress,
            )
            result.groups.append(group)
            result.warnings.extend(group.warnings)

            processed[group_number] = group.processed_units
            result.processed_units = sum(processed.values())
            if on_progress:
                on_progress(GroupProgress(
                    collection_key=collection_key,
                    group_number=group_number,
                    group_total=info.group_count,
                    group_processed=group.processed_units,
                    group_units=len(refs),
                    collection_processed=result.processed_units,
                    collection_units=result.total_units,
                    finished=group_number == info.group_count and group.outcome == "completed",
                ))

            if group.outcome != "completed":
                result.outcome = group.outcome
                break

        logger.info(
            "[Sweep] %s %s: %d/%d processed (%d%%)",
            collection_key, result.outcome, result.processed_units,
            result.total_units, result.percentage,
        )
        return result
