"""Versioned, grouped snapshot storage per property.

Every observation of a URL is a row; rows sharing a ``url`` form a group
ordered newest first. Merges only ever append: earlier versions stay as
history and are never rewritten, except that ``top_level_count`` of the
run being merged is restamped so one run ends with one value.

Usage:
    from sitesnap.snapshot.store import SnapshotStore

    store = SnapshotStore("data/sitesnap.db")
    store.index.add("acme", "https://acme.com")
    result = store.merge("acme", records)

    for group in store.groups("acme"):
        print(group.url, group.latest.title, len(group.history))
"""

import csv
import json
import logging
import sqlite3
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, TextIO, Union

from sitesnap.core.errors import InvalidInputError, InvalidRecord, StorageError
from sitesnap.core.models import TOP_LEVEL, UrlRecord, utc_now
from sitesnap.scrape.normalizer import normalize

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

# Header used for CSV export, in persisted row order
EXPORT_HEADER = [
    "url",
    "title",
    "description",
    "headerTags",
    "version",
    "timestamp",
    "topLevelCount",
    "level",
    "likeCount",
    "targetLikes",
]

_SELECT_ROW = (
    "SELECT url, title, description, header_tags, version, timestamp, "
    "top_level_count, level, like_count, target_likes FROM snapshot_rows"
)


@dataclass
class SnapshotGroup:
    """All versions of one URL, newest first."""

    url: str
    versions: List[UrlRecord]

    @property
    def latest(self) -> UrlRecord:
        return self.versions[0]

    @property
    def history(self) -> List[UrlRecord]:
        return self.versions[1:]


@dataclass
class SnapshotRow:
    """Display row: history entries are shown collapsed under the latest one."""

    record: UrlRecord
    collapsed: bool


@dataclass
class MergeResult:
    """Outcome of merging one batch into a property snapshot."""

    property: str
    new_groups: List[str] = field(default_factory=list)
    new_versions: List[str] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)
    rejected: List[InvalidRecord] = field(default_factory=list)
    top_level_count: int = 0

    @property
    def merged(self) -> int:
        return len(self.new_groups) + len(self.new_versions)

    def to_dict(self) -> Dict:
        return {
            "property": self.property,
            "new_groups": self.new_groups,
            "new_versions": self.new_versions,
            "duplicates": self.duplicates,
            "rejected": [error.to_dict() for error in self.rejected],
            "top_level_count": self.top_level_count,
        }


@dataclass
class PropertyEntry:
    name: str
    base_url: str
    created_at: datetime
    last_updated: Optional[datetime] = None

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "base_url": self.base_url,
            "created_at": self.created_at.isoformat(),
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }


def _validate(record) -> None:
    """Raise InvalidRecord if a record lacks its key fields."""
    url = getattr(record, "url", None)
    if not isinstance(url, str) or not url.strip():
        raise InvalidRecord("url", record)
    if not getattr(record, "version", None):
        raise InvalidRecord("version", record)
    if not isinstance(getattr(record, "timestamp", None), datetime):
        raise InvalidRecord("timestamp", record)


def _in_utc(record: UrlRecord) -> UrlRecord:
    """Copy of ``record`` with its timestamp in UTC; naive timestamps are taken as UTC."""
    timestamp = record.timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    else:
        timestamp = timestamp.astimezone(timezone.utc)
    return replace(record, timestamp=timestamp)


def _record_from_db(row: tuple) -> UrlRecord:
    values = list(row)
    # like_count / target_likes are stored as JSON scalars
    values[8] = json.loads(values[8])
    values[9] = json.loads(values[9])
    return UrlRecord.from_row(values)


class SnapshotStore:
    """SQLite-backed snapshot store with single-writer merges.

    Attributes:
        db_path: Path to SQLite database (":memory:" for an in-process store)
        index: PropertyIndex sharing this store's connection
    """

    def __init__(self, db_path: Union[str, Path] = "data/sitesnap.db"):
        """Initialize the snapshot store.

        Args:
            db_path: Path to database file

        Raises:
            StorageError: If the database cannot be opened
        """
        self.db_path = str(db_path)
        self._lock = threading.RLock()
        try:
            if self.db_path != MEMORY_DB:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            if self.db_path != MEMORY_DB:
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._create_tables()
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Cannot open snapshot store at {self.db_path}: {e}") from e

        self.index = PropertyIndex(self)

    def _create_tables(self):
        """Create database tables."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS snapshot_rows (
                property TEXT NOT NULL,
                url TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                header_tags TEXT NOT NULL DEFAULT '{}',
                version TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                top_level_count INTEGER NOT NULL DEFAULT 0,
                level INTEGER NOT NULL,
                like_count TEXT NOT NULL,   -- JSON scalar
                target_likes TEXT NOT NULL, -- JSON scalar
                PRIMARY KEY (property, url, version)
            );

            CREATE INDEX IF NOT EXISTS idx_rows_property_version
            ON snapshot_rows(property, version);

            CREATE TABLE IF NOT EXISTS properties (
                name TEXT PRIMARY KEY,
                base_url TEXT NOT NULL,
                created_at TEXT NOT NULL,
                last_updated TEXT
            );
        """)
        self._conn.commit()

    def merge(self, property_name: str, batch: Iterable[UrlRecord]) -> MergeResult:
        """
        Merge a batch of records into a property's snapshot.

        New URLs start a group; known URLs get a new head version. A record
        whose (url, version) is already stored belongs to the same run and is
        skipped, so merging the same batch twice changes nothing. Invalid
        records are rejected individually.

        Args:
            property_name: Property the records belong to
            batch: Records from one ingestion run

        Returns:
            MergeResult

        Raises:
            StorageError: If the database write fails
        """
        result = MergeResult(property=property_name)

        with self._lock:
            try:
                with self._conn:
                    known = self._known_versions(property_name)
                    accepted: List[UrlRecord] = []

                    for record in batch:
                        try:
                            _validate(record)
                        except InvalidRecord as e:
                            logger.warning(f"Rejected record for {property_name}: {e.message}")
                            result.rejected.append(e)
                            continue
                        record = _in_utc(record)

                        versions = known.get(record.url)
                        if versions is not None and record.version in versions:
                            logger.debug(f"{record.url} already has {record.version}, skipping")
                            result.duplicates.append(record.url)
                            continue

                        self._insert(property_name, record)
                        accepted.append(record)
                        if versions is None:
                            known[record.url] = {record.version}
                            result.new_groups.append(record.url)
                        else:
                            versions.add(record.version)
                            result.new_versions.append(record.url)

                    count = self._count_top_level(property_name)
                    self._stamp_top_level(property_name, {r.version for r in accepted}, count)
                    result.top_level_count = count
            except sqlite3.Error as e:
                raise StorageError(f"Merge into {property_name} failed: {e}") from e

        logger.info(
            f"Merged {result.merged} records into {property_name} "
            f"({len(result.new_groups)} new URLs, {len(result.new_versions)} new versions, "
            f"{len(result.duplicates)} duplicates, {len(result.rejected)} rejected)"
        )
        return result

    def _known_versions(self, property_name: str) -> Dict[str, Set[str]]:
        known: Dict[str, Set[str]] = {}
        rows = self._conn.execute(
            "SELECT url, version FROM snapshot_rows WHERE property = ?", (property_name,)
        ).fetchall()
        for url, version in rows:
            known.setdefault(url, set()).add(version)
        return known

    def _insert(self, property_name: str, record: UrlRecord):
        row = record.to_row()
        row[8] = json.dumps(row[8])
        row[9] = json.dumps(row[9])
        self._conn.execute(
            """
            INSERT INTO snapshot_rows (
                property, url, title, description, header_tags, version,
                timestamp, top_level_count, level, like_count, target_likes
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [property_name, *row],
        )

    def _count_top_level(self, property_name: str) -> int:
        # Timestamps are stored as UTC ISO strings, so MAX() picks the newest version
        (count,) = self._conn.execute(
            """
            SELECT COUNT(DISTINCT r.url) FROM snapshot_rows r
            WHERE r.property = ? AND r.level = ?
              AND r.timestamp = (
                  SELECT MAX(timestamp) FROM snapshot_rows
                  WHERE property = r.property AND url = r.url
              )
            """,
            (property_name, TOP_LEVEL),
        ).fetchone()
        return count

    def _stamp_top_level(self, property_name: str, versions: Set[str], count: int):
        for version in versions:
            self._conn.execute(
                "UPDATE snapshot_rows SET top_level_count = ? WHERE property = ? AND version = ?",
                (count, property_name, version),
            )

    def groups(self, property_name: str) -> List[SnapshotGroup]:
        """All groups of a property, by URL ascending, versions newest first."""
        return self._read_groups(property_name, "property = ?", (property_name,))

    def group(self, property_name: str, url: str) -> Optional[SnapshotGroup]:
        """The group for one URL (exact match after normalization), or None."""
        found = self._read_groups(property_name, "property = ? AND url = ?", (property_name, normalize(url)))
        return found[0] if found else None

    def _read_groups(self, property_name: str, where: str, params: Sequence) -> List[SnapshotGroup]:
        with self._lock:
            try:
                rows = self._conn.execute(f"{_SELECT_ROW} WHERE {where}", params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Reading {property_name} failed: {e}") from e

        grouped: Dict[str, List[UrlRecord]] = {}
        for row in rows:
            record = _record_from_db(row)
            grouped.setdefault(record.url, []).append(record)

        return [
            SnapshotGroup(url=url, versions=sorted(versions, key=lambda r: r.timestamp, reverse=True))
            for url, versions in sorted(grouped.items())
        ]

    def latest(self, property_name: str) -> List[UrlRecord]:
        """Newest version of every URL."""
        return [group.latest for group in self.groups(property_name)]

    def rows(self, property_name: str, include_history: bool = True) -> List[SnapshotRow]:
        """Flattened display view; history entries are tagged collapsed."""
        view = []
        for group in self.groups(property_name):
            view.append(SnapshotRow(record=group.latest, collapsed=False))
            if include_history:
                view.extend(SnapshotRow(record=record, collapsed=True) for record in group.history)
        return view

    def top_level_count(self, property_name: str) -> int:
        """Level-1 URLs currently known for a property."""
        with self._lock:
            return self._count_top_level(property_name)

    def count(self, property_name: str) -> int:
        """Number of stored rows (all versions) for a property."""
        with self._lock:
            (total,) = self._conn.execute(
                "SELECT COUNT(*) FROM snapshot_rows WHERE property = ?", (property_name,)
            ).fetchone()
        return total

    def export_csv(self, property_name: str, stream: TextIO, include_history: bool = True) -> int:
        """
        Write a property's rows as CSV in persisted row order.

        Returns:
            Number of data rows written
        """
        writer = csv.writer(stream)
        writer.writerow(EXPORT_HEADER)
        written = 0
        for row in self.rows(property_name, include_history=include_history):
            writer.writerow(row.record.to_row())
            written += 1
        return written

    def delete_property(self, property_name: str) -> int:
        """Drop every row of a property. Returns the number of rows deleted."""
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(
                        "DELETE FROM snapshot_rows WHERE property = ?", (property_name,)
                    )
            except sqlite3.Error as e:
                raise StorageError(f"Deleting {property_name} failed: {e}") from e
        return cursor.rowcount

    def close(self):
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "SnapshotStore":
        return self

    def __exit__(self, *exc_info):
        self.close()


class PropertyIndex:
    """Tracked properties and when each was last ingested."""

    def __init__(self, store: SnapshotStore):
        self._store = store

    def add(self, name: str, base_url: str) -> PropertyEntry:
        """
        Track a property.

        Adding an existing property with the same base URL is a no-op.

        Raises:
            InvalidInputError: If the name is empty or already used for another base URL
            MalformedUrl: If base_url is invalid
        """
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("name", "property name cannot be empty")
        base_url = normalize(base_url)

        existing = self.get(name)
        if existing is not None:
            if existing.base_url != base_url:
                raise InvalidInputError(
                    "base_url", f"property '{name}' already tracks {existing.base_url}"
                )
            return existing

        entry = PropertyEntry(name=name, base_url=base_url, created_at=utc_now())
        with self._store._lock:
            with self._store._conn:
                self._store._conn.execute(
                    "INSERT INTO properties (name, base_url, created_at, last_updated) VALUES (?, ?, ?, NULL)",
                    (entry.name, entry.base_url, entry.created_at.isoformat()),
                )
        logger.info(f"Tracking property {name} at {base_url}")
        return entry

    def get(self, name: str) -> Optional[PropertyEntry]:
        with self._store._lock:
            row = self._store._conn.execute(
                "SELECT name, base_url, created_at, last_updated FROM properties WHERE name = ?",
                (name,),
            ).fetchone()
        return self._entry(row) if row else None

    def list(self) -> List[PropertyEntry]:
        with self._store._lock:
            rows = self._store._conn.execute(
                "SELECT name, base_url, created_at, last_updated FROM properties ORDER BY name"
            ).fetchall()
        return [self._entry(row) for row in rows]

    def touch(self, name: str, when: Optional[datetime] = None) -> PropertyEntry:
        """Record a completed ingestion run."""
        when = when or utc_now()
        with self._store._lock:
            with self._store._conn:
                cursor = self._store._conn.execute(
                    "UPDATE properties SET last_updated = ? WHERE name = ?",
                    (when.isoformat(), name),
                )
        if cursor.rowcount == 0:
            raise InvalidInputError("name", f"unknown property '{name}'")
        return self.get(name)

    def remove(self, name: str) -> bool:
        """Stop tracking a property and drop its snapshot."""
        deleted = self._store.delete_property(name)
        with self._store._lock:
            with self._store._conn:
                cursor = self._store._conn.execute("DELETE FROM properties WHERE name = ?", (name,))
        logger.info(f"Removed property {name} ({deleted} rows)")
        return cursor.rowcount > 0

    @staticmethod
    def _entry(row: tuple) -> PropertyEntry:
        name, base_url, created_at, last_updated = row
        return PropertyEntry(
            name=name,
            base_url=base_url,
            created_at=datetime.fromisoformat(created_at),
            last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
        )
