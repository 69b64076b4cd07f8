"""SQLite persistence of processed verses and their extracted names.

The existence of a ``processed_units`` row is the only idempotency signal.
Every public method runs in its own transaction: committed on normal exit,
rolled back on any exception, connection always closed.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from bne.errors import AlreadyProcessed
from bne.types import NAME_TYPES, ExtractedName, UnitReference

logger = logging.getLogger(__name__)

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on old builds.
_IN_BATCH = 500


def _batched(keys: Sequence[str]) -> Iterable[Sequence[str]]:
    for i in range(0, len(keys), _IN_BATCH):
        yield keys[i:i + _IN_BATCH]


def _row_to_name(row: sqlite3.Row) -> ExtractedName:
    name_type = row["type"] if row["type"] in NAME_TYPES else "person"
    return ExtractedName(name=row["name"], type=name_type)


class ProcessingStore:
    """SQLite store of processed verses and their extracted names."""

    def __init__(self, db_path: str | Path, timeout: float = 30.0) -> None:
        self.db_path = str(db_path)
        self.timeout = timeout

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def create_tables(self) -> None:
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS processed_units (
                    id TEXT PRIMARY KEY,
                    processed_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS extracted_names (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    unit_reference TEXT NOT NULL REFERENCES processed_units(id)
                );
            """)
            self._run_migrations(conn)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_names_unit ON extracted_names(unit_reference)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_names_name ON extracted_names(name)")

    def _run_migrations(self, conn) -> None:
        self._migrate_add_column(conn, "extracted_names", "type", "TEXT DEFAULT 'person'")

    def _migrate_add_column(self, conn, table: str, column: str, col_type: str) -> None:
        """Add column to table if it doesn't exist (idempotent migration)."""
        cursor = conn.execute(f"PRAGMA table_info({table})")
        columns = [row[1] for row in cursor.fetchall()]
        if column not in columns:
            logger.info("[Store] Adding column %s.%s", table, column)
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}")

    # -- single unit --------------------------------------------------------

    def is_processed(self, ref: UnitReference) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM processed_units WHERE id = ?", (ref.key,)
            ).fetchone()
        return row is not None

    def get_processed_at(self, ref: UnitReference) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT processed_at FROM processed_units WHERE id = ?", (ref.key,)
            ).fetchone()
        return row["processed_at"] if row else None

    def get_names(self, ref: UnitReference) -> list[ExtractedName]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT name, type FROM extracted_names WHERE unit_reference = ? ORDER BY id",
                (ref.key,),
            ).fetchall()
        return [_row_to_name(row) for row in rows]

    def commit(
        self,
        ref: UnitReference,
        names: Iterable[ExtractedName],
        processed_at: datetime | None = None,
    ) -> None:
        """Insert the processed row and all name rows atomically.

        Raises:
            AlreadyProcessed: If ``ref`` already has a processed row.
        """
        stamp = (processed_at or datetime.now(timezone.utc)).isoformat()
        rows = [(n.name, n.type, ref.key) for n in names]
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO processed_units (id, processed_at) VALUES (?, ?)",
                    (ref.key, stamp),
                )
                conn.executemany(
                    "INSERT INTO extracted_names (name, type, unit_reference) VALUES (?, ?, ?)",
                    rows,
                )
        except sqlite3.IntegrityError as e:
            if "processed_units" in str(e):
                raise AlreadyProcessed(ref) from e
            raise

    def clear(self, ref: UnitReference) -> None:
        """Delete the processed row and its names; no-op when absent."""
        with self._connect() as conn:
            conn.execute("DELETE FROM extracted_names WHERE unit_reference = ?", (ref.key,))
            conn.execute("DELETE FROM processed_units WHERE id = ?", (ref.key,))

    # -- batched look-ups ---------------------------------------------------

    def processed_keys(self, refs: Iterable[UnitReference]) -> set[str]:
        keys = [r.key for r in refs]
        found: set[str] = set()
        with self._connect() as conn:
            for batch in _batched(keys):
                placeholders = ",".join("?" * len(batch))
                rows = conn.execute(
                    f"SELECT id FROM processed_units WHERE id IN ({placeholders})", batch
                ).fetchall()
                found.update(row["id"] for row in rows)
        return found

    def count_processed(self, refs: Iterable[UnitReference]) -> int:
        return len(self.processed_keys(refs))

    def names_for_units(self, refs: Iterable[UnitReference]) -> dict[str, list[ExtractedName]]:
        keys = [r.key for r in refs]
        result: dict[str, list[ExtractedName]] = {}
        with self._connect() as conn:
            for batch in _batched(keys):
                placeholders = ",".join("?" * len(batch))
                rows = conn.execute(
                    f"SELECT name, type, unit_reference FROM extracted_names "
                    f"WHERE unit_reference IN ({placeholders}) ORDER BY id",
                    batch,
                ).fetchall()
                for row in rows:
                    result.setdefault(row["unit_reference"], []).append(_row_to_name(row))
        return result

    # -- name index ---------------------------------------------------------

    def list_distinct_names(
        self,
        name_type: str | None = None,
        contains: str | None = None,
    ) -> list[ExtractedName]:
        clauses: list[str] = []
        params: list[str] = []
        if name_type:
            clauses.append("COALESCE(type, 'person') = ?")
            params.append(name_type)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT DISTINCT name, COALESCE(type, 'person') AS type "
                f"FROM extracted_names {where} ORDER BY type, name",
                params,
            ).fetchall()
        names = [_row_to_name(row) for row in rows]
        if contains:
            # SQLite lower() is ASCII-only; accented names need casefold().
            needle = contains.casefold()
            names = [n for n in names if needle in n.name.casefold()]
        return names

    def list_units_for_name(self, name: str) -> list[UnitReference]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT unit_reference FROM extracted_names WHERE name = ? "
                "GROUP BY unit_reference ORDER BY MIN(id)",
                (name,),
            ).fetchall()
        return [UnitReference.parse(row["unit_reference"]) for row in rows]

    def delete_name(self, name: str) -> int:
        """Remove every record of ``name`` across units and types.

        Processed rows are left alone: the verses stay processed.
        """
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM extracted_names WHERE name = ?", (name,))
            deleted = cursor.rowcount
        logger.info("[Store] Deleted %d record(s) of %r", deleted, name)
        return deleted
