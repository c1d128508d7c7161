"""
Audit Trail - append-only, session-scoped action log with export.

Every entry is kept in memory per session (insertion order), mirrored to the
"scaffold_orchestrator.audit" logger, and optionally written to an
AuditStore so the trail survives restarts. Store writes made from inside
the event loop are queued and run on a worker thread; flush() waits for them.
"""

import asyncio
import csv
import io
import json
import logging
import threading
from typing import Any, Optional

from pydantic import TypeAdapter

from .models import ActionResult, AuditLogEntry, ExecutionPhase
from .store import AuditStore

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("scaffold_orchestrator.audit")

CSV_HEADER = [
	"Id",
	"Timestamp",
	"SessionId",
	"AgentId",
	"Action",
	"Phase",
	"Result",
	"Detail",
	"DurationMs",
]

EXPORT_FORMATS = ("json", "csv")

_entries_adapter = TypeAdapter(list[AuditLogEntry])


class AuditTrail:
	"""
	Session-scoped audit log.

	Usage:
		trail = AuditTrail(store=AuditStore("data/audit.db"))
		trail.log_action(session.id, "plan.created", ExecutionPhase.PLANNING, ActionResult.SUCCESS, "3 steps")
		csv_text = trail.export_logs(session.id, "csv")
	"""

	def __init__(self, store: Optional[AuditStore] = None, agent_id: Optional[str] = None):
		"""
		Initialize the audit trail.

		Args:
			store: Optional durable backend; existing entries are loaded from it
			agent_id: Default agent id stamped on entries created via log_action
		"""
		self.store = store
		self.agent_id = agent_id
		self._entries: dict[str, list[AuditLogEntry]] = {}
		self._lock = threading.Lock()
		self._write_lock = threading.Lock()
		self._pending: list[AuditLogEntry] = []
		self._writer: Optional[asyncio.Task] = None

		if store is not None:
			for entry in store.load():
				self._entries.setdefault(entry.session_id, []).append(entry)

	def set_agent_id(self, agent_id: Optional[str]) -> None:
		self.agent_id = agent_id

	def log(self, entry: AuditLogEntry) -> AuditLogEntry:
		"""
		Append an entry.

		Inside a running event loop the durable write is queued and done on a
		worker thread; without one it happens before this returns.
		"""
		with self._lock:
			self._entries.setdefault(entry.session_id, []).append(entry)
			if self.store is not None:
				self._pending.append(entry)
		if self.store is not None:
			self._schedule_write()

		duration = f" ({entry.duration_ms:.0f}ms)" if entry.duration_ms is not None else ""
		message = (
			f"[{entry.session_id}] {entry.phase.value} {entry.action} -> {entry.result.value}"
			f"{duration}: {entry.detail}"
		)
		if entry.result == ActionResult.FAILURE:
			audit_logger.warning(message)
		else:
			audit_logger.info(message)
		return entry

	def pending_count(self) -> int:
		"""Entries accepted but not yet in the store."""
		with self._lock:
			return len(self._pending)

	def _schedule_write(self) -> None:
		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			self._write_pending()
			return
		if self._writer is None or self._writer.done():
			self._writer = loop.create_task(self._drain())

	def _write_pending(self) -> int:
		"""Write queued entries in order. On failure they stay queued."""
		with self._write_lock:
			with self._lock:
				batch = list(self._pending)
			if not batch:
				return 0
			self.store.append_many(batch)
			with self._lock:
				del self._pending[:len(batch)]
			return len(batch)

	async def _drain(self) -> None:
		while self.pending_count():
			try:
				await asyncio.to_thread(self._write_pending)
			except Exception as e:
				logger.error(f"Audit write failed, {self.pending_count()} entries still queued: {e}")
				return

	async def flush(self) -> None:
		"""
		Wait until every accepted entry is in the store.

		Raises:
			Exception: Whatever the store raised for the final write
		"""
		if self.store is None:
			return
		writer, self._writer = self._writer, None
		if writer is not None:
			await asyncio.shield(writer)
		await asyncio.to_thread(self._write_pending)

	def log_action(
		self,
		session_id: str,
		action: str,
		phase: ExecutionPhase,
		result: ActionResult,
		detail: str = "",
		parameters: Optional[dict[str, Any]] = None,
		duration_ms: Optional[float] = None,
	) -> AuditLogEntry:
		"""
		Build and append an entry.

		Args:
			session_id: Session the action belongs to
			action: Dotted action name (e.g., "scm.create_repository")
			phase: Workflow phase
			result: Outcome
			detail: Free text
			parameters: Arbitrary key/value context
			duration_ms: Optional elapsed time

		Returns:
			The stored entry
		"""
		entry = AuditLogEntry(
			session_id=session_id,
			agent_id=self.agent_id,
			action=action,
			phase=phase,
			result=result,
			detail=detail,
			duration_ms=duration_ms,
			parameters=parameters or {},
		)
		return self.log(entry)

	def get_session_logs(self, session_id: str) -> list[AuditLogEntry]:
		"""Entries for a session in insertion order."""
		with self._lock:
			return list(self._entries.get(session_id, []))

	def session_ids(self) -> list[str]:
		with self._lock:
			return list(self._entries)

	def export_logs(self, session_id: str, fmt: str = "json") -> str:
		"""
		Export a session's entries.

		Args:
			session_id: Session to export
			fmt: "json" or "csv"

		Returns:
			The serialized entries

		Raises:
			ValueError: If the format is not supported
		"""
		fmt = fmt.lower()
		if fmt not in EXPORT_FORMATS:
			raise ValueError(f"Unsupported export format: {fmt} (expected one of {', '.join(EXPORT_FORMATS)})")

		entries = self.get_session_logs(session_id)
		if fmt == "json":
			return export_json(entries)
		return export_csv(entries)


def export_json(entries: list[AuditLogEntry]) -> str:
	return json.dumps([e.model_dump(mode="json") for e in entries], indent=2)


def parse_json_export(text: str) -> list[AuditLogEntry]:
	"""Read entries back from export_json output."""
	return _entries_adapter.validate_json(text)


def export_csv(entries: list[AuditLogEntry]) -> str:
	"""RFC 4180 CSV with one record per entry."""
	buffer = io.StringIO()
	writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
	writer.writerow(CSV_HEADER)
	for e in entries:
		writer.writerow([
			e.id,
			e.timestamp.isoformat(),
			e.session_id,
			e.agent_id or "",
			e.action,
			e.phase.value,
			e.result.value,
			e.detail,
			"" if e.duration_ms is None else repr(e.duration_ms),
		])
	return buffer.getvalue()


def parse_csv_export(text: str) -> list[dict[str, str]]:
	"""Read export_csv output into one dict per record, keyed by header."""
	reader = csv.DictReader(io.StringIO(text, newline=""))
	return [dict(row) for row in reader]
