"""SQLite tab store adapter.

Implements the core TabStorePort with a small SQLite database so grouping
can run (and be inspected) outside a browser. Semantics follow the browser
tab-group model: a group with no member tabs stops existing, and pinning a
tab detaches it from its group.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from core.errors import SnapshotStaleness, StoreOperationFailure
from core.models import LiveGroup, Tab

NEW_GROUP_COLOR = "grey"


class SQLiteTabStore:
    """Thin SQLite wrapper that satisfies the TabStorePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - tabs: open tabs and their current group membership
        - tab_groups: titled, colored clusters of tabs
        """

        with self._connect() as conn:
            # Fields:
            # - id: store-assigned tab id, stable while the tab is open
            # - group_id: NULL when the tab is ungrouped
            # - pinned: pinned tabs are never members of a group
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tabs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL DEFAULT '',
                    url TEXT,
                    group_id INTEGER,
                    pinned INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tab_groups (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL DEFAULT '',
                    color TEXT NOT NULL
                )
                """
            )

    @staticmethod
    def _row_to_tab(row: sqlite3.Row) -> Tab:
        return Tab(
            id=int(row["id"]),
            title=row["title"],
            url=row["url"],
            group_id=row["group_id"],
            pinned=bool(row["pinned"]),
        )

    def add_tab(self, title: str, url: Optional[str]) -> int:
        """Open a new ungrouped tab and return its id."""

        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO tabs (title, url, created_at) VALUES (?, ?, ?)",
                (title, url, datetime.now(timezone.utc).isoformat()),
            )
            return int(cur.lastrowid)

    def remove_tab(self, tab_id: int) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM tabs WHERE id = ?", (tab_id,))
            self._prune_empty_groups(conn)

    def query_tabs(self) -> List[Tab]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM tabs ORDER BY id").fetchall()
        return [self._row_to_tab(row) for row in rows]

    def query_tabs_after(self, last_tab_id: int) -> List[Tab]:
        """Return tabs opened after ``last_tab_id`` (ids only grow)."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tabs WHERE id > ? ORDER BY id",
                (last_tab_id,),
            ).fetchall()
        return [self._row_to_tab(row) for row in rows]

    def query_tabs_in_group(self, group_id: int) -> List[Tab]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tabs WHERE group_id = ? ORDER BY id",
                (group_id,),
            ).fetchall()
        return [self._row_to_tab(row) for row in rows]

    def query_groups(self) -> List[LiveGroup]:
        with self._connect() as conn:
            groups = conn.execute("SELECT * FROM tab_groups ORDER BY id").fetchall()
            members = conn.execute(
                "SELECT id, group_id FROM tabs WHERE group_id IS NOT NULL"
            ).fetchall()

        by_group: dict[int, set[int]] = {}
        for row in members:
            by_group.setdefault(int(row["group_id"]), set()).add(int(row["id"]))

        return [
            LiveGroup(
                id=int(row["id"]),
                title=row["title"],
                color=row["color"],
                member_tab_ids=frozenset(by_group.get(int(row["id"]), set())),
            )
            for row in groups
        ]

    def group_tabs(self, tab_ids: List[int], group_id: Optional[int] = None) -> int:
        """Move tabs into ``group_id``, or into a new group when it is None."""

        if not tab_ids:
            raise StoreOperationFailure("No tabs to group")

        with self._connect() as conn:
            self._require_tabs(conn, tab_ids)
            if group_id is None:
                cur = conn.execute(
                    "INSERT INTO tab_groups (color) VALUES (?)",
                    (NEW_GROUP_COLOR,),
                )
                group_id = int(cur.lastrowid)
            elif not self._group_exists(conn, group_id):
                raise SnapshotStaleness(f"No group with id: {group_id}")

            conn.executemany(
                "UPDATE tabs SET group_id = ?, pinned = 0 WHERE id = ?",
                [(group_id, tab_id) for tab_id in tab_ids],
            )
            self._prune_empty_groups(conn)
        return group_id

    def update_group(self, group_id: int, *, title: str, color: str) -> None:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE tab_groups SET title = ?, color = ? WHERE id = ?",
                (title, color, group_id),
            )
            if cur.rowcount == 0:
                raise SnapshotStaleness(f"No group with id: {group_id}")

    def ungroup(self, tab_ids: List[int]) -> None:
        if not tab_ids:
            return
        with self._connect() as conn:
            self._require_tabs(conn, tab_ids)
            conn.executemany(
                "UPDATE tabs SET group_id = NULL WHERE id = ?",
                [(tab_id,) for tab_id in tab_ids],
            )
            self._prune_empty_groups(conn)

    def update_tab(self, tab_id: int, *, pinned: bool) -> None:
        with self._connect() as conn:
            self._require_tabs(conn, [tab_id])
            if pinned:
                conn.execute(
                    "UPDATE tabs SET pinned = 1, group_id = NULL WHERE id = ?",
                    (tab_id,),
                )
                self._prune_empty_groups(conn)
            else:
                conn.execute("UPDATE tabs SET pinned = 0 WHERE id = ?", (tab_id,))

    @staticmethod
    def _require_tabs(conn: sqlite3.Connection, tab_ids: List[int]) -> None:
        placeholders = ",".join("?" for _ in tab_ids)
        rows = conn.execute(
            f"SELECT id FROM tabs WHERE id IN ({placeholders})",
            list(tab_ids),
        ).fetchall()
        missing = set(tab_ids) - {int(row["id"]) for row in rows}
        if missing:
            raise SnapshotStaleness(f"No tab with id: {sorted(missing)}")

    @staticmethod
    def _group_exists(conn: sqlite3.Connection, group_id: int) -> bool:
        row = conn.execute("SELECT 1 FROM tab_groups WHERE id = ?", (group_id,)).fetchone()
        return row is not None

    @staticmethod
    def _prune_empty_groups(conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            DELETE FROM tab_groups
            WHERE id NOT IN (SELECT DISTINCT group_id FROM tabs WHERE group_id IS NOT NULL)
            """
        )
