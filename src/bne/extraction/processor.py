"""Per-verse processing: cache check, heuristic skip, extraction, commit.

States: Unprocessed -> (SkippedByFilter | Extracted) -> Committed, or Failed
(the verse stays Unprocessed and can be retried by the operator).
"""

from __future__ import annotations

import logging

from bne.corpus import Corpus
from bne.errors import AlreadyProcessed, UnitNotFound
from bne.storage import ProcessingStore
from bne.types import ExtractedName, ProcessOutcome, UnitReference

from .client import NameExtractor
from .heuristic import has_extraction_potential

logger = logging.getLogger(__name__)


class UnitProcessor:
    """Processes one verse at most once, committing its names atomically."""

    def __init__(
        self,
        store: ProcessingStore,
        extractor: NameExtractor,
        corpus: Corpus | None = None,
    ) -> None:
        self.store = store
        self.extractor = extractor
        self.corpus = corpus

    def process(
        self,
        ref: UnitReference,
        text: str | None,
        context: str | None = None,
        force_reprocess: bool = False,
        provider_override: str | None = None,
    ) -> ProcessOutcome:
        """Process one verse at most once.

        Args:
            ref: Verse to process.
            text: Verse text; ``None`` when the corpus has no such verse.
            context: Preceding verse text, used only to disambiguate.
            force_reprocess: Drop stored results and extract again.
            provider_override: Use another configured provider for this call.

        Returns:
            ProcessOutcome with the committed (or cached) names.

        Raises:
            UnitNotFound: ``text`` is missing; nothing was written.
            ExtractionServiceError: The service failed; nothing was written.
        """
        if force_reprocess:
            if text is None:
                raise UnitNotFound(ref)
            self.store.clear(ref)
            logger.debug("[Process] Cleared %s for reprocessing", ref)
        elif self.store.is_processed(ref):
            return ProcessOutcome(ref, self.store.get_names(ref), already_processed=True)

        if text is None:
            raise UnitNotFound(ref)

        if not has_extraction_potential(text):
            outcome = self._commit(ref, [], skipped=True)
            if not outcome.already_processed:
                logger.info("[Skip] %s: no proper names detected (no LLM call)", ref)
            return outcome

        names = self.extractor.extract(text, context, provider_override)
        outcome = self._commit(ref, names, skipped=False)
        if not outcome.already_processed:
            logger.info(
                "[Extract] %s: %s",
                ref, ", ".join(f"{n.name} ({n.type})" for n in names) or "no names",
            )
        return outcome

    def _commit(self, ref: UnitReference, names: list[ExtractedName], skipped: bool) -> ProcessOutcome:
        try:
            self.store.commit(ref, names)
        except AlreadyProcessed:
            # Another run committed first; its result stands.
            logger.warning("[Process] %s was committed concurrently, keeping stored result", ref)
            return ProcessOutcome(ref, self.store.get_names(ref), already_processed=True)
        return ProcessOutcome(ref, names, skipped=skipped)

    def process_unit(
        self,
        ref: UnitReference,
        force_reprocess: bool = False,
        provider_override: str | None = None,
    ) -> ProcessOutcome:
        """Resolve text and preceding context from the corpus, then process."""
        if self.corpus is None:
            raise RuntimeError("UnitProcessor.process_unit needs a corpus")

        if not force_reprocess and self.store.is_processed(ref):
            return ProcessOutcome(ref, self.store.get_names(ref), already_processed=True)

        text = self.corpus.get_unit_text(ref.collection_key, ref.group_number, ref.unit_number)
        context = None
        previous = ref.preceding()
        if text is not None and previous is not None:
            context = self.corpus.get_unit_text(
                previous.collection_key, previous.group_number, previous.unit_number
            )
        return self.process(ref, text, context, force_reprocess, provider_override)
