"""Local SQLite ledger of worklog entries."""

import sqlite3
from datetime import datetime

from models import WorklogEntry
from utils import to_local

SCHEMA = """
CREATE TABLE IF NOT EXISTS worklogs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    start_datetime TEXT NOT NULL,
    end_datetime TEXT NOT NULL,
    billable INTEGER NOT NULL CHECK(billable >= 0),
    description TEXT NOT NULL,
    project TEXT NOT NULL,
    activity TEXT NOT NULL,
    skill TEXT NOT NULL,
    source_format TEXT NOT NULL,
    source_mapper TEXT NOT NULL DEFAULT '',
    source_file TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(start_datetime, end_datetime, billable, description, project, activity, skill, source_file)
)
"""

COLUMNS = (
    "id, start_datetime, end_datetime, billable, description, project, activity, skill, "
    "source_format, source_mapper, source_file"
)


def _row_to_entry(row: sqlite3.Row) -> WorklogEntry:
    return WorklogEntry(
        id=row["id"],
        start=to_local(datetime.fromisoformat(row["start_datetime"])),
        end=to_local(datetime.fromisoformat(row["end_datetime"])),
        billable=row["billable"],
        description=row["description"],
        project=row["project"],
        activity=row["activity"],
        skill=row["skill"],
        source_format=row["source_format"],
        source_mapper=row["source_mapper"],
        source_file=row["source_file"],
    )


class StorageError(Exception):
    """A ledger write failed."""

    def __init__(self, message: str, worklog_id: int | None = None):
        super().__init__(message)
        self.worklog_id = worklog_id


class WorklogStore:
    """SQLite-backed worklog storage."""

    def __init__(self, path: str):
        self.path = path
        self.conn = sqlite3.connect(path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute(SCHEMA)
        self.conn.commit()

    def __enter__(self) -> "WorklogStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self.conn.close()

    def insert_worklogs(self, entries: list[WorklogEntry]) -> int:
        """Insert entries, ignoring exact duplicates. Returns rows inserted."""
        inserted = 0
        with self.conn:
            for e in entries:
                cur = self.conn.execute(
                    """
                    INSERT OR IGNORE INTO worklogs (
                        start_datetime, end_datetime, billable, description, project,
                        activity, skill, source_format, source_mapper, source_file
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        e.start.isoformat(),
                        e.end.isoformat(),
                        e.billable,
                        e.description,
                        e.project,
                        e.activity,
                        e.skill,
                        e.source_format,
                        e.source_mapper,
                        e.source_file,
                    ),
                )
                inserted += cur.rowcount
        return inserted

    def list_worklogs(self) -> list[WorklogEntry]:
        rows = self.conn.execute(f"SELECT {COLUMNS} FROM worklogs ORDER BY start_datetime, id").fetchall()
        return [_row_to_entry(row) for row in rows]

    def get_worklog(self, worklog_id: int) -> WorklogEntry | None:
        row = self.conn.execute(f"SELECT {COLUMNS} FROM worklogs WHERE id = ?", (worklog_id,)).fetchone()
        return _row_to_entry(row) if row else None

    def update_worklog_times(self, entries: list[WorklogEntry]) -> int:
        """Update only start/end of the given entries in one transaction.

        Raises:
            StorageError: an update was rejected; nothing is written
        """
        updated = 0
        with self.conn:
            for e in entries:
                if not e.id or e.id <= 0:
                    continue
                try:
                    cur = self.conn.execute(
                        "UPDATE worklogs SET start_datetime = ?, end_datetime = ? WHERE id = ?",
                        (e.start.isoformat(), e.end.isoformat(), e.id),
                    )
                except sqlite3.Error as err:
                    raise StorageError(f"persist reconciled worklog id={e.id}: {err}", e.id) from err
                updated += cur.rowcount
        return updated
