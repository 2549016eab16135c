"""
SQLite History Repository

Architectural Intent:
- Append-only deployment history log using SQLite (stdlib, zero external deps)
- One row per deployment result, one row per host phase transition
- Implements DeploymentHistoryPort; the coordinator writes once per deployment
  and then discards its per-host state

Design Decisions:
- Single database file at configurable path
- Auto-creates tables on first use
- Thread-safe via sqlite3's check_same_thread=False
- Timestamps stored as ISO 8601 strings
- No UPDATE or DELETE statements: rows are never rewritten
"""

from __future__ import annotations
import sqlite3
import json
import logging
from datetime import datetime, UTC
from typing import Optional, Sequence

from keel.domain.entities.deployment_result import DeploymentResult
from keel.domain.entities.host_deployment import HostDeploymentState
from keel.domain.ports.history_port import DeploymentHistoryPort

logger = logging.getLogger(__name__)


class SQLiteHistoryRepository(DeploymentHistoryPort):
    """Persistent deployment history using SQLite."""

    def __init__(self, db_path: str = "keel-history.db"):
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        """Open database connection and create tables."""
        self._conn = sqlite3.connect(
            self._db_path,
            check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.row_factory = sqlite3.Row
        self._create_tables()
        logger.info("History repository connected: %s", self._db_path)

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _create_tables(self) -> None:
        """Create tables if they don't exist."""
        assert self._conn is not None
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS deployments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                deployment_id TEXT NOT NULL,
                artifact_reference TEXT NOT NULL,
                overall_status TEXT NOT NULL,
                finished_at TEXT NOT NULL,
                result TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS host_transitions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                deployment_id TEXT NOT NULL,
                host_id TEXT NOT NULL,
                seq INTEGER NOT NULL,
                phase TEXT NOT NULL,
                outcome TEXT NOT NULL,
                hook TEXT,
                detail TEXT DEFAULT '',
                at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_deployments_id ON deployments(deployment_id);
            CREATE INDEX IF NOT EXISTS idx_transitions_host ON host_transitions(host_id);
            CREATE INDEX IF NOT EXISTS idx_transitions_deployment
                ON host_transitions(deployment_id);
        """)

    def append(
        self, result: DeploymentResult, hosts: Sequence[HostDeploymentState]
    ) -> None:
        """Append one finished deployment and every host's transitions."""
        assert self._conn is not None
        with self._conn:
            self._conn.execute(
                """INSERT INTO deployments
                   (deployment_id, artifact_reference, overall_status, finished_at, result)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    result.deployment_id,
                    result.artifact_reference,
                    result.overall_status.value,
                    datetime.now(UTC).isoformat(),
                    json.dumps(result.to_dict()),
                ),
            )
            rows = [
                (
                    result.deployment_id,
                    state.host_id,
                    seq,
                    t.phase,
                    t.outcome.value,
                    t.hook,
                    t.detail,
                    t.at,
                )
                for state in hosts
                for seq, t in enumerate(state.history)
            ]
            self._conn.executemany(
                """INSERT INTO host_transitions
                   (deployment_id, host_id, seq, phase, outcome, hook, detail, at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                rows,
            )
        logger.debug(
            "Recorded deployment %s (%d transitions)", result.deployment_id, len(rows)
        )

    def list_deployments(self, limit: int = 20) -> list[dict]:
        """Most recent deployments first."""
        assert self._conn is not None
        rows = self._conn.execute(
            "SELECT * FROM deployments ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_result(self, deployment_id: str) -> Optional[dict]:
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT result FROM deployments WHERE deployment_id = ? ORDER BY id DESC LIMIT 1",
            (deployment_id,),
        ).fetchone()
        return json.loads(row["result"]) if row else None

    def host_history(
        self,
        host_id: str,
        deployment_id: Optional[str] = None,
        limit: int = 200,
    ) -> list[dict]:
        """Transitions for a host in recording order, optionally for one deployment."""
        assert self._conn is not None
        if deployment_id:
            rows = self._conn.execute(
                """SELECT * FROM host_transitions
                   WHERE host_id = ? AND deployment_id = ?
                   ORDER BY id LIMIT ?""",
                (host_id, deployment_id, limit),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM host_transitions WHERE host_id = ? ORDER BY id LIMIT ?",
                (host_id, limit),
            ).fetchall()
        return [dict(r) for r in rows]
