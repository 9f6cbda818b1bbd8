# symptom_mem/storage/sqlite_store.py

import json
import os
import sqlite3
from datetime import datetime, timezone

from ..models import MemoryKind, MemoryModel


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


class SqliteStore:
    """
    SQLite-based store for MemoryModel.

    Records are never deleted: deactivate() flips is_active and every query
    except list_by_user(active_only=False) skips inactive rows.
    """

    def __init__(self, path: str = "~/.symptom_mem/memories.db") -> None:
        if path == ":memory:":
            self.path = path
        else:
            self.path = os.path.expanduser(path)
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS memories (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                kind TEXT NOT NULL,
                symptom TEXT,
                context TEXT NOT NULL,
                notes TEXT,
                occurrence_count INTEGER,
                success_count INTEGER,
                failure_count INTEGER,
                last_occurrence TEXT,
                specific_dates TEXT,
                confidence REAL,
                user_confirmed INTEGER,
                user_denied INTEGER,
                is_active INTEGER,
                created_date TEXT,
                last_updated TEXT,
                last_shown_date TEXT,
                consecutive_ignores INTEGER,
                cooldown_until TEXT
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT
            );
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_mem_user ON memories(user_id);")
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_mem_user_kind_active ON memories(user_id, kind, is_active);"
        )
        self.conn.commit()

    @staticmethod
    def _row_to_model(row: sqlite3.Row) -> MemoryModel:
        return MemoryModel(
            id=row["id"],
            user_id=row["user_id"],
            context=json.loads(row["context"]),
            notes=row["notes"],
            occurrence_count=row["occurrence_count"],
            success_count=row["success_count"],
            failure_count=row["failure_count"],
            last_occurrence=_parse_dt(row["last_occurrence"]),
            specific_dates=[_parse_dt(d) for d in json.loads(row["specific_dates"] or "[]")],
            confidence=row["confidence"] if row["confidence"] is not None else float("nan"),
            user_confirmed=bool(row["user_confirmed"]),
            user_denied=bool(row["user_denied"]),
            is_active=bool(row["is_active"]),
            created_date=_parse_dt(row["created_date"]),
            last_updated=_parse_dt(row["last_updated"]),
            last_shown_date=_parse_dt(row["last_shown_date"]),
            consecutive_ignores=row["consecutive_ignores"] or 0,
            cooldown_until=_parse_dt(row["cooldown_until"]),
        )

    def _write(self, mem: MemoryModel) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            INSERT OR REPLACE INTO memories (
                id,
                user_id,
                kind,
                symptom,
                context,
                notes,
                occurrence_count,
                success_count,
                failure_count,
                last_occurrence,
                specific_dates,
                confidence,
                user_confirmed,
                user_denied,
                is_active,
                created_date,
                last_updated,
                last_shown_date,
                consecutive_ignores,
                cooldown_until
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                mem.id,
                mem.user_id,
                mem.kind.value,
                mem.symptom,
                mem.context.model_dump_json(),
                mem.notes,
                mem.occurrence_count,
                mem.success_count,
                mem.failure_count,
                _dt(mem.last_occurrence),
                json.dumps([_dt(d) for d in mem.specific_dates]),
                mem.confidence,
                int(mem.user_confirmed),
                int(mem.user_denied),
                int(mem.is_active),
                _dt(mem.created_date),
                _dt(mem.last_updated),
                _dt(mem.last_shown_date),
                mem.consecutive_ignores,
                _dt(mem.cooldown_until),
            ),
        )
        self.conn.commit()

    def create(self, mem: MemoryModel) -> None:
        self._write(mem)

    def update(self, mem: MemoryModel) -> None:
        self._write(mem)

    def get(self, mem_id: str) -> MemoryModel | None:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM memories WHERE id = ? LIMIT 1;", (mem_id,))
        row = cur.fetchone()
        if row is None:
            return None
        return self._row_to_model(row)

    def deactivate(self, mem_id: str, when: datetime | None = None) -> None:
        """Flip is_active off. ``when`` stamps last_updated (naive UTC, defaults to now)."""
        when = when or datetime.now(timezone.utc).replace(tzinfo=None)
        cur = self.conn.cursor()
        cur.execute(
            "UPDATE memories SET is_active = 0, last_updated = ? WHERE id = ?;",
            (when.isoformat(), mem_id),
        )
        self.conn.commit()

    def query_active(
        self,
        user_id: str,
        kinds: list[MemoryKind] | None = None,
        symptom: str | None = None,
    ) -> list[MemoryModel]:
        sql = "SELECT * FROM memories WHERE user_id = ? AND is_active = 1"
        params: list = [user_id]
        if kinds:
            sql += f" AND kind IN ({','.join('?' for _ in kinds)})"
            params.extend(k.value for k in kinds)
        if symptom is not None:
            sql += " AND lower(symptom) = lower(?)"
            params.append(symptom)
        sql += " ORDER BY datetime(created_date) ASC, id ASC;"

        cur = self.conn.cursor()
        cur.execute(sql, params)
        return [self._row_to_model(r) for r in cur.fetchall()]

    def list_by_user(self, user_id: str, active_only: bool = True) -> list[MemoryModel]:
        if active_only:
            return self.query_active(user_id)
        cur = self.conn.cursor()
        cur.execute(
            """
            SELECT * FROM memories
            WHERE user_id = ?
            ORDER BY datetime(created_date) ASC, id ASC;
            """,
            (user_id,),
        )
        return [self._row_to_model(r) for r in cur.fetchall()]

    # ------------------------------------------------------------------ #
    # Meta (maintenance bookkeeping)
    # ------------------------------------------------------------------ #

    def get_meta(self, key: str) -> str | None:
        cur = self.conn.cursor()
        cur.execute("SELECT value FROM meta WHERE key = ?;", (key,))
        row = cur.fetchone()
        return row["value"] if row else None

    def set_meta(self, key: str, value: str) -> None:
        cur = self.conn.cursor()
        cur.execute("INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?);", (key, value))
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()
