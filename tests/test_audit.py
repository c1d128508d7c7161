"""Tests for the audit trail, its SQLite store and exports."""

import asyncio
import json
import logging
import sqlite3
import threading
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from scaffold_orchestrator.audit.models import ActionResult, AuditLogEntry, ExecutionPhase
from scaffold_orchestrator.audit.store import AuditStore
from scaffold_orchestrator.audit.trail import (
	CSV_HEADER,
	AuditTrail,
	export_csv,
	parse_csv_export,
	parse_json_export,
)
from scaffold_orchestrator.runtime import Runtime

from .helpers import make_config


@pytest.fixture
def trail(tmp_path: Path) -> AuditTrail:
	return AuditTrail(store=AuditStore(str(tmp_path / "audit.db")), agent_id="test-agent")


class TestAuditTrail:
	"""Append, query and persistence."""

	def test_entries_are_session_scoped_and_ordered(self, trail: AuditTrail):
		for i in range(3):
			trail.log_action("s1", f"action.{i}", ExecutionPhase.PLANNING, ActionResult.SUCCESS)
		trail.log_action("s2", "other", ExecutionPhase.INTAKE, ActionResult.FAILURE, "boom")

		s1 = trail.get_session_logs("s1")
		assert [e.action for e in s1] == ["action.0", "action.1", "action.2"]
		assert all(e.agent_id == "test-agent" for e in s1)
		assert [e.action for e in trail.get_session_logs("s2")] == ["other"]
		assert trail.get_session_logs("unknown") == []
		assert set(trail.session_ids()) == {"s1", "s2"}

	def test_returned_list_is_a_copy(self, trail: AuditTrail):
		trail.log_action("s1", "a", ExecutionPhase.PLANNING, ActionResult.SUCCESS)
		trail.get_session_logs("s1").clear()
		assert len(trail.get_session_logs("s1")) == 1

	def test_entries_are_immutable(self, trail: AuditTrail):
		entry = trail.log_action("s1", "a", ExecutionPhase.PLANNING, ActionResult.SUCCESS)
		with pytest.raises(Exception):
			entry.action = "changed"

	def test_entries_survive_restart(self, tmp_path: Path):
		db = str(tmp_path / "audit.db")
		first = AuditTrail(store=AuditStore(db))
		first.log_action("s1", "a", ExecutionPhase.EXECUTION, ActionResult.SUCCESS, duration_ms=12.5)
		first.log_action("s1", "b", ExecutionPhase.DELIVERY, ActionResult.SKIPPED, parameters={"step": 7})

		second = AuditTrail(store=AuditStore(db))
		entries = second.get_session_logs("s1")
		assert [e.action for e in entries] == ["a", "b"]
		assert entries[0].duration_ms == 12.5
		assert entries[1].parameters == {"step": 7}
		assert AuditStore(db).count() == 2

	def test_failures_are_logged_as_warnings(self, trail: AuditTrail, caplog):
		with caplog.at_level(logging.INFO, logger="scaffold_orchestrator.audit"):
			trail.log_action("s1", "scm.push", ExecutionPhase.EXECUTION, ActionResult.FAILURE, "denied")
		record = next(r for r in caplog.records if r.name == "scaffold_orchestrator.audit")
		assert record.levelno == logging.WARNING
		assert "scm.push" in record.getMessage()


class TestExports:
	"""JSON and CSV export."""

	def test_json_export_round_trips(self, trail: AuditTrail):
		trail.log_action("s1", "plan.create", ExecutionPhase.PLANNING, ActionResult.SUCCESS, "ok", {"steps": 6})
		exported = trail.export_logs("s1", "json")
		assert json.loads(exported)[0]["action"] == "plan.create"
		entries = parse_json_export(exported)
		assert entries == trail.get_session_logs("s1")

	def test_csv_escapes_commas_quotes_and_newlines(self):
		detail = 'He said "hi", then\nleft'
		entry = AuditLogEntry(
			session_id="s1",
			action="note",
			phase=ExecutionPhase.INTAKE,
			result=ActionResult.SUCCESS,
			detail=detail,
			duration_ms=3.25,
		)
		text = export_csv([entry])
		assert text.startswith(",".join(CSV_HEADER) + "\r\n")

		rows = parse_csv_export(text)
		assert len(rows) == 1
		assert rows[0]["Detail"] == detail
		assert rows[0]["DurationMs"] == "3.25"
		assert rows[0]["AgentId"] == ""

	def test_csv_export_of_empty_session_has_header_only(self, trail: AuditTrail):
		text = trail.export_logs("nobody", "CSV")
		assert parse_csv_export(text) == []
		assert text.strip() == ",".join(CSV_HEADER)

	def test_unknown_format_raises(self, trail: AuditTrail):
		with pytest.raises(ValueError):
			trail.export_logs("s1", "xml")


class TestWritesFromTheEventLoop:
	"""Store writes queued off the event loop."""

	@pytest.mark.asyncio
	async def test_writes_run_on_a_worker_thread(self, trail: AuditTrail):
		loop_thread = threading.get_ident()
		threads = []
		real_append_many = trail.store.append_many

		def recording_append_many(entries):
			threads.append(threading.get_ident())
			real_append_many(entries)

		with patch.object(trail.store, "append_many", side_effect=recording_append_many):
			for i in range(5):
				trail.log_action("s1", f"step.{i}", ExecutionPhase.EXECUTION, ActionResult.SUCCESS)
			assert len(trail.get_session_logs("s1")) == 5
			await trail.flush()

		assert threads
		assert loop_thread not in threads
		assert trail.pending_count() == 0
		assert [e.action for e in trail.store.load("s1")] == [f"step.{i}" for i in range(5)]

	@pytest.mark.asyncio
	async def test_slow_store_does_not_block_the_loop(self, trail: AuditTrail):
		real_append_many = trail.store.append_many

		def slow_append_many(entries):
			time.sleep(0.2)
			real_append_many(entries)

		with patch.object(trail.store, "append_many", side_effect=slow_append_many):
			started = time.perf_counter()
			trail.log_action("s1", "scm.push", ExecutionPhase.EXECUTION, ActionResult.SUCCESS)
			await asyncio.sleep(0)
			assert time.perf_counter() - started < 0.1
			await trail.flush()

		assert trail.store.count() == 1

	@pytest.mark.asyncio
	async def test_failed_write_stays_queued(self, trail: AuditTrail, caplog):
		with patch.object(trail.store, "append_many", side_effect=sqlite3.OperationalError("database is locked")):
			trail.log_action("s1", "a", ExecutionPhase.PLANNING, ActionResult.SUCCESS)
			with caplog.at_level(logging.ERROR), pytest.raises(sqlite3.OperationalError):
				await trail.flush()
			assert trail.pending_count() == 1
			assert "database is locked" in caplog.text

		await trail.flush()
		assert trail.pending_count() == 0
		assert [e.action for e in trail.store.load("s1")] == ["a"]

	@pytest.mark.asyncio
	async def test_runtime_stop_drains_queued_entries(self, tmp_path: Path):
		config = make_config(tmp_path)
		rt = Runtime(config)
		await rt.start()
		session = rt.agent.create_session()
		rt.audit.log_action(session.id, "note", ExecutionPhase.INTAKE, ActionResult.SUCCESS, "last entry")
		await rt.stop()

		assert rt.audit.pending_count() == 0
		stored = AuditStore(str(config.audit_db_path)).load(session.id)
		assert stored[-1].detail == "last entry"
