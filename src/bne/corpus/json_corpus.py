"""Read-only Bible corpus backed by JSON files.

Layout of ``data_dir``:
    _index.json   list of book metadata objects
                  (key, title, shortTitle, abbr, testament, category,
                   number, chapters, verses)
    <key>.json    list of chapters, each a list of verse strings

Chapters and verses are 1-based for callers and 0-based in the files.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

INDEX_FILE = "_index.json"


@dataclass(frozen=True)
class CollectionInfo:
    """Book metadata."""

    key: str
    display_name: str
    group_count: int
    unit_count: int
    number: int = 0
    testament: str = ""
    abbreviation: str = ""
    category: str = ""


@dataclass(frozen=True)
class CorpusUnit:
    unit_number: int
    text: str


@runtime_checkable
class Corpus(Protocol):
    """Read-only access to books, chapters and verses."""

    def list_collections(self) -> list[CollectionInfo]:
        ...

    def get_collection(self, collection_key: str) -> CollectionInfo | None:
        ...

    def list_group_units(self, collection_key: str, group_number: int) -> list[CorpusUnit]:
        ...

    def get_unit_text(self, collection_key: str, group_number: int, unit_number: int) -> str | None:
        ...

    def count_units_in_group(self, collection_key: str, group_number: int) -> int:
        ...


def _to_info(entry: dict[str, Any]) -> CollectionInfo:
    return CollectionInfo(
        key=entry["key"],
        display_name=entry.get("title") or entry.get("shortTitle") or entry["key"],
        group_count=int(entry.get("chapters", 0)),
        unit_count=int(entry.get("verses", 0)),
        number=int(entry.get("number", 0)),
        testament=entry.get("testament", ""),
        abbreviation=entry.get("abbr", ""),
        category=entry.get("category", ""),
    )


class JsonCorpus:
    """Corpus reading ``_index.json`` and one JSON file per book.

    Book files are parsed once and cached. Missing books, chapters or verses
    come back as ``None`` / ``0`` / ``[]``; malformed JSON raises.
    """

    def __init__(self, data_dir: str | Path, excluded: tuple[str, ...] = ()) -> None:
        self.data_dir = Path(data_dir)
        self.excluded = frozenset(excluded)
        self._index: list[CollectionInfo] | None = None
        self._books: dict[str, list[list[str]] | None] = {}

    def list_collections(self) -> list[CollectionInfo]:
        if self._index is None:
            index_path = self.data_dir / INDEX_FILE
            if not index_path.exists():
                logger.warning("[Corpus] Index not found: %s", index_path)
                return []
            entries = json.loads(index_path.read_text(encoding="utf-8"))
            self._index = [_to_info(e) for e in entries if e.get("key") not in self.excluded]
        return list(self._index)

    def get_collection(self, collection_key: str) -> CollectionInfo | None:
        for info in self.list_collections():
            if info.key == collection_key:
                return info
        return None

    def _load_book(self, collection_key: str) -> list[list[str]] | None:
        if collection_key in self.excluded:
            return None
        if collection_key not in self._books:
            book_path = self.data_dir / f"{collection_key}.json"
            if not book_path.is_file():
                self._books[collection_key] = None
            else:
                self._books[collection_key] = json.loads(book_path.read_text(encoding="utf-8"))
        return self._books[collection_key]

    def _chapter(self, collection_key: str, group_number: int) -> list[str] | None:
        book = self._load_book(collection_key)
        if book is None or group_number < 1 or group_number > len(book):
            return None
        return book[group_number - 1]

    def list_group_units(self, collection_key: str, group_number: int) -> list[CorpusUnit]:
        chapter = self._chapter(collection_key, group_number)
        if not chapter:
            return []
        return [CorpusUnit(unit_number=i + 1, text=text) for i, text in enumerate(chapter)]

    def get_unit_text(self, collection_key: str, group_number: int, unit_number: int) -> str | None:
        chapter = self._chapter(collection_key, group_number)
        if chapter is None or unit_number < 1 or unit_number > len(chapter):
            return None
        return chapter[unit_number - 1] or None

    def count_units_in_group(self, collection_key: str, group_number: int) -> int:
        chapter = self._chapter(collection_key, group_number)
        return len(chapter) if chapter else 0
