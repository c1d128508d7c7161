"""
Session Store - in-memory sessions with write-behind persistence.

Features:
- All persisted sessions are loaded before the store serves anything
- Mutations hit memory immediately and mark the session dirty
- A background task flushes dirty sessions on a fixed interval
- Failed writes are re-marked dirty and retried on the next tick
- stop() lets an in-flight flush finish, then drains the remaining dirty sessions
"""

import asyncio
import logging
import threading
from typing import Optional

from ..errors import SessionNotFoundError
from .models import MessageRole, Session
from .persistence import SessionPersistence

logger = logging.getLogger(__name__)


class SessionStore:
	"""
	Authoritative in-memory session cache backed by SessionPersistence.

	Usage:
		store = SessionStore(SessionPersistence("data/sessions.db"))
		await store.start()

		session = store.create_session(user_id="alice")
		session.project_name = "my-service"
		store.mark_dirty(session.id)

		await store.stop()
	"""

	def __init__(self, persistence: SessionPersistence, flush_interval: float = 5.0):
		"""
		Initialize the session store.

		Args:
			persistence: Durable backend used by the flush task
			flush_interval: Seconds between flush ticks
		"""
		self.persistence = persistence
		self.flush_interval = flush_interval
		self._sessions: dict[str, Session] = {}
		self._dirty: set[str] = set()
		self._dirty_lock = threading.Lock()
		self._session_locks: dict[str, asyncio.Lock] = {}
		self._flush_task: Optional[asyncio.Task] = None
		self._stopping = asyncio.Event()

	@property
	def running(self) -> bool:
		return self._flush_task is not None and not self._flush_task.done()

	async def start(self) -> None:
		"""Load persisted sessions, then schedule the flush task."""
		for session in await self.persistence.load_all_sessions():
			self._sessions[session.id] = session
		logger.info(f"Session store loaded {len(self._sessions)} sessions")

		if not self.running:
			self._stopping.clear()
			self._flush_task = asyncio.create_task(self._flush_loop())

	async def stop(self) -> None:
		"""
		Stop the flush task and run a final flush that completes even if the caller is cancelled.

		The task is signalled rather than cancelled, so a flush that is already
		writing runs to the end before the final drain.
		"""
		if self._flush_task is not None:
			self._stopping.set()
			try:
				await asyncio.shield(self._flush_task)
			finally:
				self._flush_task = None

		await asyncio.shield(self.flush_dirty())
		logger.info("Session store stopped")

	async def _flush_loop(self) -> None:
		while True:
			try:
				await asyncio.wait_for(self._stopping.wait(), timeout=self.flush_interval)
				return
			except asyncio.TimeoutError:
				pass
			try:
				await self.flush_dirty()
			except Exception as e:
				logger.error(f"Flush tick failed: {e}")

	async def flush_dirty(self) -> int:
		"""
		Write every dirty session once.

		Sessions not yet written when the flush is cancelled are marked dirty
		again, so an interrupted flush loses nothing.

		Returns:
			Number of sessions written successfully
		"""
		with self._dirty_lock:
			pending = list(self._dirty)
			self._dirty.clear()

		unsaved = set(pending)
		saved = 0
		try:
			for session_id in pending:
				session = self._sessions.get(session_id)
				if session is None:
					# Removed since it was marked
					unsaved.discard(session_id)
					continue
				try:
					await self.persistence.save_session(session)
					saved += 1
				except Exception as e:
					logger.warning(f"Failed to persist session {session_id}, will retry: {e}")
					self.mark_dirty(session_id)
				unsaved.discard(session_id)
		finally:
			if unsaved:
				with self._dirty_lock:
					self._dirty.update(unsaved)

		if pending:
			logger.debug(f"Flushed {saved}/{len(pending)} dirty sessions")
		return saved

	def mark_dirty(self, session_id: str) -> None:
		"""Queue a session for the next flush."""
		with self._dirty_lock:
			self._dirty.add(session_id)

	def is_dirty(self, session_id: str) -> bool:
		with self._dirty_lock:
			return session_id in self._dirty

	def dirty_ids(self) -> set[str]:
		with self._dirty_lock:
			return set(self._dirty)

	def lock_for(self, session_id: str) -> asyncio.Lock:
		"""Per-session lock serialising mutating operations on one session."""
		lock = self._session_locks.get(session_id)
		if lock is None:
			lock = asyncio.Lock()
			self._session_locks[session_id] = lock
		return lock

	def create_session(self, user_id: Optional[str] = None) -> Session:
		"""Create a session in intake."""
		session = Session(user_id=user_id)
		self._sessions[session.id] = session
		self.mark_dirty(session.id)
		logger.info(f"Created session {session.id}" + (f" for {user_id}" if user_id else ""))
		return session

	def get_session(self, session_id: str) -> Optional[Session]:
		return self._sessions.get(session_id)

	def require_session(self, session_id: str) -> Session:
		"""
		Get a session or raise.

		Raises:
			SessionNotFoundError: If no session has this id
		"""
		session = self._sessions.get(session_id)
		if session is None:
			raise SessionNotFoundError(f"Session not found: {session_id}")
		return session

	def list_sessions(self) -> list[Session]:
		"""All sessions, most recently active first."""
		return sorted(self._sessions.values(), key=lambda s: s.last_activity_at, reverse=True)

	def list_sessions_by_user(self, user_id: str) -> list[Session]:
		return [s for s in self.list_sessions() if s.user_id == user_id]

	def update(self, session: Session) -> None:
		"""Store a (possibly replaced) session object and mark it dirty."""
		self._sessions[session.id] = session
		self.mark_dirty(session.id)

	def append_message(self, session_id: str, role: MessageRole, content: str) -> Session:
		"""Append a message to a session and mark it dirty."""
		session = self.require_session(session_id)
		session.add_message(role, content)
		self.mark_dirty(session_id)
		return session

	async def remove_session(self, session_id: str) -> bool:
		"""
		Remove a session from memory and durable storage.

		Returns:
			True if the session existed
		"""
		existed = self._sessions.pop(session_id, None) is not None
		with self._dirty_lock:
			self._dirty.discard(session_id)
		lock = self._session_locks.get(session_id)
		if lock is not None and not lock.locked():
			del self._session_locks[session_id]
		await self.persistence.delete_session(session_id)
		if existed:
			logger.info(f"Removed session {session_id}")
		return existed

	def __len__(self) -> int:
		return len(self._sessions)
