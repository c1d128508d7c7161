"""
Session Persistence - SQLite-backed durable storage for sessions.

Each session is stored as a single JSON document keyed by id. Writes are
upserts, so saving the same session twice is harmless.
"""

import logging
from pathlib import Path
from typing import Optional

import aiosqlite
from pydantic import ValidationError

from .models import Session

logger = logging.getLogger(__name__)


class SessionPersistence:
	"""
	Durable session storage.

	Usage:
		persistence = SessionPersistence("data/sessions.db")
		await persistence.init()
		await persistence.save_session(session)
		sessions = await persistence.load_all_sessions()
	"""

	def __init__(self, db_path: str):
		"""Initialize the session persistence."""
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self._db: Optional[aiosqlite.Connection] = None

	async def init(self):
		"""Initialize the database schema."""
		self._db = await aiosqlite.connect(str(self.db_path))
		self._db.row_factory = aiosqlite.Row

		await self._db.execute("""
			CREATE TABLE IF NOT EXISTS sessions (
				id TEXT PRIMARY KEY,
				user_id TEXT,
				status TEXT NOT NULL,
				data TEXT NOT NULL,
				created_at TEXT NOT NULL,
				updated_at TEXT NOT NULL
			)
		""")

		await self._db.execute("""
			CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id)
		""")

		await self._db.commit()
		logger.info(f"Session persistence initialized: {self.db_path}")

	async def close(self):
		"""Close the database connection."""
		if self._db:
			await self._db.close()
			self._db = None

	async def save_session(self, session: Session) -> None:
		"""
		Insert or replace a session.

		Args:
			session: Session to write
		"""
		if not self._db:
			await self.init()

		await self._db.execute(
			"""
			INSERT INTO sessions (id, user_id, status, data, created_at, updated_at)
			VALUES (?, ?, ?, ?, ?, ?)
			ON CONFLICT(id) DO UPDATE SET
				user_id = excluded.user_id,
				status = excluded.status,
				data = excluded.data,
				updated_at = excluded.updated_at
			""",
			(
				session.id,
				session.user_id,
				session.status.value,
				session.model_dump_json(),
				session.created_at.isoformat(),
				session.last_activity_at.isoformat(),
			)
		)
		await self._db.commit()
		logger.debug(f"Saved session {session.id} ({session.status.value})")

	async def load_all_sessions(self) -> list[Session]:
		"""
		Load every stored session.

		Rows that no longer validate are logged and skipped.

		Returns:
			Sessions ordered by creation time
		"""
		if not self._db:
			await self.init()

		sessions = []
		async with self._db.execute(
			"SELECT id, data FROM sessions ORDER BY created_at"
		) as cursor:
			async for row in cursor:
				try:
					sessions.append(Session.model_validate_json(row["data"]))
				except ValidationError as e:
					logger.error(f"Skipping unreadable session {row['id']}: {e}")

		logger.info(f"Loaded {len(sessions)} sessions from {self.db_path}")
		return sessions

	async def delete_session(self, session_id: str) -> bool:
		"""
		Delete a stored session.

		Returns:
			True if a row was removed
		"""
		if not self._db:
			await self.init()

		cursor = await self._db.execute(
			"DELETE FROM sessions WHERE id = ?",
			(session_id,)
		)
		await self._db.commit()
		return cursor.rowcount > 0
