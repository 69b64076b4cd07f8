"""Domain types shared across the extraction pipeline.

Flow of data:
    UnitReference -> ProcessOutcome (per unit) -> GroupSweepResult -> CollectionSweepResult

References are immutable and double as the primary key in the store, so
anything that identifies a verse goes through ``UnitReference.key``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal

NameType = Literal["person", "place"]
NAME_TYPES: tuple[str, ...] = ("person", "place")

DEFAULT_CORPUS_VERSION = "rv1960"


@dataclass(frozen=True, order=True)
class UnitReference:
    """Composite identifier of a single verse.

    Stringified as ``<collection>-<group>-<unit>-<version>``. Collection keys
    use underscores (``1_samuel``) and never contain a hyphen.
    """

    collection_key: str
    group_number: int
    unit_number: int
    corpus_version: str = DEFAULT_CORPUS_VERSION

    def __post_init__(self) -> None:
        if "-" in self.collection_key:
            raise ValueError(f"Collection key may not contain '-': {self.collection_key!r}")
        if not self.corpus_version or "-" in self.corpus_version:
            raise ValueError(f"Corpus version must be non-empty without '-': {self.corpus_version!r}")
        if self.group_number < 1 or self.unit_number < 1:
            raise ValueError(
                f"Group and unit numbers are 1-based, got {self.group_number}:{self.unit_number}"
            )

    @property
    def key(self) -> str:
        return f"{self.collection_key}-{self.group_number}-{self.unit_number}-{self.corpus_version}"

    @classmethod
    def parse(cls, key: str) -> "UnitReference":
        parts = key.rsplit("-", 3)
        if len(parts) != 4:
            raise ValueError(f"Malformed unit reference: {key!r}")
        collection_key, group, unit, version = parts
        return cls(collection_key, int(group), int(unit), version)

    def preceding(self) -> "UnitReference | None":
        """Previous unit in the same group, or None for the first one."""
        if self.unit_number <= 1:
            return None
        return UnitReference(
            self.collection_key, self.group_number, self.unit_number - 1, self.corpus_version
        )

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class ExtractedName:
    """A normalized (name, type) pair."""

    name: str
    type: NameType = "person"


@dataclass(frozen=True)
class BudgetSnapshot:
    """Usage consumed since the start of the current UTC day."""

    as_of_date: date
    input_units: int = 0
    output_units: int = 0
    request_count: int = 0

    @property
    def total_units(self) -> int:
        return self.input_units + self.output_units


@dataclass
class ProcessOutcome:
    """Result of processing one unit."""

    reference: UnitReference
    names: list[ExtractedName] = field(default_factory=list)
    already_processed: bool = False
    skipped: bool = False

    @property
    def newly_processed(self) -> bool:
        return not self.already_processed


SweepOutcome = Literal["completed", "stopped_by_limit", "cancelled"]


@dataclass
class UnitFailure:
    """A unit whose processing failed and stays unprocessed."""

    reference: UnitReference
    error_type: str
    message: str


@dataclass
class UnitProgress:
    """Emitted after every unit of a group sweep."""

    reference: UnitReference
    index: int
    total: int
    outcome: ProcessOutcome | None = None
    failure: UnitFailure | None = None


@dataclass
class GroupProgress:
    """Emitted at group boundaries of a collection sweep."""

    collection_key: str
    group_number: int
    group_total: int
    group_processed: int
    group_units: int
    collection_processed: int
    collection_units: int
    finished: bool = False

    @property
    def collection_percentage(self) -> int:
        return round(self.collection_processed * 100 / self.collection_units) if self.collection_units else 0


@dataclass
class GroupSweepResult:
    collection_key: str
    group_number: int
    total_units: int = 0
    pending_units: int = 0
    newly_processed: int = 0
    skipped: int = 0
    names_found: int = 0
    processed_units: int = 0
    outcome: SweepOutcome = "completed"
    failures: list[UnitFailure] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def stopped_by_limit(self) -> bool:
        return self.outcome == "stopped_by_limit"

    @property
    def cancelled(self) -> bool:
        return self.outcome == "cancelled"

    @property
    def percentage(self) -> int:
        return round(self.processed_units * 100 / self.total_units) if self.total_units else 0


@dataclass
class CollectionSweepResult:
    collection_key: str
    total_units: int = 0
    processed_units: int = 0
    groups: list[GroupSweepResult] = field(default_factory=list)
    outcome: SweepOutcome = "completed"
    warnings: list[str] = field(default_factory=list)

    @property
    def stopped_by_limit(self) -> bool:
        return self.outcome == "stopped_by_limit"

    @property
    def cancelled(self) -> bool:
        return self.outcome == "cancelled"

    @property
    def newly_processed(self) -> int:
        return sum(g.newly_processed for g in self.groups)

    @property
    def failures(self) -> list[UnitFailure]:
        return [f for g in self.groups for f in g.failures]

    @property
    def percentage(self) -> int:
        return round(self.processed_units * 100 / self.total_units) if self.total_units else 0
