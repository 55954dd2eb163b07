"""SQLite-backed ledger of harvest runs, key events and downloads."""

from __future__ import annotations

import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

EVENT_TABLES = ("key_events", "download_events", "action_events")


class BrowserEventLogger:
    """Persist harvest activity into SQLite."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def start(self) -> None:
        with self._lock:
            if self._conn is not None:
                return
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False, timeout=10)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA busy_timeout=5000;")
            self._conn = conn
            self._init_schema()

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.close()
            except Exception:
                pass
            self._conn = None

    def init_run(self, run_id: str, start_url: str, download_dir: str) -> None:
        self._safe_execute(
            """
            INSERT OR REPLACE INTO harvest_runs (
                run_id, start_url, download_dir, started_at, status, items, error
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(run_id or ""),
                str(start_url or ""),
                str(download_dir or ""),
                float(time.time()),
                "running",
                0,
                None,
            ),
        )

    def complete_run(self, run_id: str, status: str, items: int = 0, error: Optional[str] = None) -> None:
        self._safe_execute(
            """
            UPDATE harvest_runs
               SET ended_at = ?, status = ?, items = ?, error = ?
             WHERE run_id = ?
            """,
            (
                float(time.time()),
                str(status or "unknown"),
                int(items or 0),
                str(error) if error else None,
                str(run_id or ""),
            ),
        )

    def log_key_event(self, payload: Dict[str, Any]) -> None:
        self._insert_event("key_events", payload)

    def log_download_event(self, payload: Dict[str, Any]) -> None:
        self._insert_event("download_events", payload)

    def log_action_event(self, payload: Dict[str, Any]) -> None:
        self._insert_event("action_events", payload)

    def fetch_events(self, table: str, run_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return decoded payloads of one event table, oldest first."""
        if table not in EVENT_TABLES:
            raise ValueError(f"Unknown event table: {table}")
        sql = f"SELECT payload_json FROM {table}"
        params: tuple[Any, ...] = ()
        if run_id is not None:
            sql += " WHERE run_id = ?"
            params = (str(run_id),)
        sql += " ORDER BY id"
        with self._lock:
            if self._conn is None:
                self.start()
            rows = self._conn.execute(sql, params).fetchall()
        return [json.loads(row[0]) for row in rows]

    def fetch_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            if self._conn is None:
                self.start()
            cursor = self._conn.execute(
                "SELECT run_id, start_url, download_dir, started_at, ended_at, status, items, error"
                " FROM harvest_runs WHERE run_id = ?",
                (str(run_id),),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            columns = [c[0] for c in cursor.description]
        return dict(zip(columns, row))

    def _init_schema(self) -> None:
        self._safe_execute(
            """
            CREATE TABLE IF NOT EXISTS harvest_runs (
                run_id TEXT PRIMARY KEY,
                start_url TEXT,
                download_dir TEXT,
                started_at REAL,
                ended_at REAL,
                status TEXT,
                items INTEGER,
                error TEXT
            )
            """
        )

        for table in EVENT_TABLES:
            self._safe_execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    run_id TEXT,
                    ts REAL,
                    event_type TEXT,
                    payload_json TEXT
                )
                """
            )
            self._safe_execute(
                f"CREATE INDEX IF NOT EXISTS idx_{table}_run_id ON {table}(run_id)"
            )

    def _insert_event(self, table: str, payload: Dict[str, Any]) -> None:
        p = payload if isinstance(payload, dict) else {}
        run_id = str(p.get("run_id") or "")
        event_type = str(p.get("event_type") or "")
        ts = p.get("ts")
        try:
            ts_val = float(ts if ts is not None else time.time())
        except Exception:
            ts_val = float(time.time())
        try:
            payload_json = json.dumps(p, ensure_ascii=False, default=str)
        except Exception:
            payload_json = json.dumps({"_error": "payload_not_serializable"}, ensure_ascii=False)
        self._safe_execute(
            f"""
            INSERT INTO {table} (run_id, ts, event_type, payload_json)
            VALUES (?, ?, ?, ?)
            """,
            (run_id, ts_val, event_type, payload_json),
        )

    def _safe_execute(self, sql: str, params: tuple[Any, ...] = ()) -> None:
        with self._lock:
            try:
                if self._conn is None:
                    self.start()
                if self._conn is None:
                    return
                self._conn.execute(sql, params)
                self._conn.commit()
            except Exception:
                # Best-effort ledger: never raise back into the download loop.
                return
