"""
SQLite-backed storage for audit entries.

Entries are only ever inserted. Reads come back in insertion order.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from .models import AuditLogEntry

logger = logging.getLogger(__name__)


class AuditStore:
	"""Durable append-only audit log."""

	def __init__(self, db_path: str = ""):
		if not db_path:
			from ..config import get_config
			db_path = str(get_config().audit_db_path)
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self._ensure_table()

	def _ensure_table(self) -> None:
		"""Create the audit_entries table if it doesn't exist."""
		with sqlite3.connect(str(self.db_path)) as conn:
			conn.execute("""
				CREATE TABLE IF NOT EXISTS audit_entries (
					seq INTEGER PRIMARY KEY AUTOINCREMENT,
					id TEXT NOT NULL UNIQUE,
					session_id TEXT NOT NULL,
					timestamp TEXT NOT NULL,
					action TEXT NOT NULL,
					result TEXT NOT NULL,
					data TEXT NOT NULL
				)
			""")
			conn.execute("""
				CREATE INDEX IF NOT EXISTS idx_audit_session ON audit_entries(session_id)
			""")

	def _connect(self) -> sqlite3.Connection:
		conn = sqlite3.connect(str(self.db_path))
		conn.row_factory = sqlite3.Row
		return conn

	def append(self, entry: AuditLogEntry) -> None:
		"""Insert an entry."""
		self.append_many([entry])

	def append_many(self, entries: list[AuditLogEntry]) -> None:
		"""Insert entries in order, all or nothing."""
		with self._connect() as conn:
			conn.executemany(
				"""
				INSERT INTO audit_entries (id, session_id, timestamp, action, result, data)
				VALUES (?, ?, ?, ?, ?, ?)
				""",
				[
					(
						entry.id,
						entry.session_id,
						entry.timestamp.isoformat(),
						entry.action,
						entry.result.value,
						entry.model_dump_json(),
					)
					for entry in entries
				],
			)

	def load(self, session_id: Optional[str] = None) -> list[AuditLogEntry]:
		"""Entries in insertion order, optionally for one session."""
		query = "SELECT id, data FROM audit_entries"
		params: list[str] = []
		if session_id:
			query += " WHERE session_id = ?"
			params.append(session_id)
		query += " ORDER BY seq"

		with self._connect() as conn:
			rows = conn.execute(query, params).fetchall()

		entries = []
		for row in rows:
			try:
				entries.append(AuditLogEntry.model_validate_json(row["data"]))
			except ValueError as e:
				logger.error(f"Skipping unreadable audit entry {row['id']}: {e}")
		return entries

	def session_ids(self) -> list[str]:
		with self._connect() as conn:
			rows = conn.execute(
				"SELECT session_id FROM audit_entries GROUP BY session_id ORDER BY MIN(seq)"
			).fetchall()
		return [row["session_id"] for row in rows]

	def count(self) -> int:
		with self._connect() as conn:
			return conn.execute("SELECT COUNT(*) FROM audit_entries").fetchone()[0]
