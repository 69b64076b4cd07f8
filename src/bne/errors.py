"""Pipeline exceptions.

Budget exhaustion has no exception: a sweep that hits the limit returns a
result with ``outcome == "stopped_by_limit"``.
"""

from __future__ import annotations

from bne.types import UnitReference


class BneError(Exception):
    """Base exception for the extraction pipeline."""
    pass


class UnitNotFound(BneError):
    """Raised when the unit text cannot be resolved from the corpus."""

    def __init__(self, reference: UnitReference) -> None:
        super().__init__(f"Unit not found in corpus: {reference.key}")
        self.reference = reference


class ExtractionServiceError(BneError):
    """Raised on transport, auth or model failure of the extraction service."""
    pass


class ExtractionParseError(BneError):
    """Raised when the service answered but the payload cannot be parsed."""
    pass


class AlreadyProcessed(BneError):
    """Raised by the store when a unit already has a processed row."""

    def __init__(self, reference: UnitReference) -> None:
        super().__init__(f"Unit already processed: {reference.key}")
        self.reference = reference


class AccountingServiceError(BneError):
    """Raised when the usage accounting endpoint cannot be read."""

    def __init__(self, status: int | None, body: str) -> None:
        label = f"HTTP {status}" if status is not None else "transport error"
        super().__init__(f"Usage API error ({label}): {body[:300]}")
        self.status = status
        self.body = body
