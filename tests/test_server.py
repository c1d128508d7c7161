"""Tests for server startup and tool registration."""

from pathlib import Path
from unittest.mock import patch

import pytest

from scaffold_orchestrator.sessions.persistence import SessionPersistence

from .helpers import make_config


def test_server_imports():
	"""Server module should import without errors."""
	from scaffold_orchestrator.server import mcp
	assert mcp is not None


def test_server_tool_names():
	"""Server should register every session, policy, audit and module tool."""
	from scaffold_orchestrator.server import mcp
	tool_names = set(mcp._tool_manager._tools.keys())

	expected = {
		"create_scaffold_session", "send_scaffold_message", "approve_scaffold_plan",
		"reject_scaffold_plan", "get_scaffold_session", "list_scaffold_sessions",
		"delete_scaffold_session",
		"list_policies", "check_requirements", "reload_policies",
		"get_audit_log", "export_audit_log",
		"list_modules", "preview_modules",
	}

	missing = expected - tool_names
	assert not missing, f"Missing tools: {missing}"


@pytest.mark.asyncio
async def test_lifespan_stops_runtime_and_flushes(tmp_path: Path):
	"""Sessions changed just before the server exits are on disk afterwards."""
	from scaffold_orchestrator import runtime as runtime_module
	from scaffold_orchestrator import server

	config = make_config(tmp_path, flush_interval=3600)
	with patch.object(server, "config", config):
		async with server.lifespan(server.mcp):
			rt = await runtime_module.get_runtime()
			assert rt.started
			session = rt.agent.create_session("alice")
			session.project_name = "last-second"
			rt.store.mark_dirty(session.id)

	assert runtime_module._runtime is None
	assert not rt.started

	persistence = SessionPersistence(str(config.sessions_db_path))
	await persistence.init()
	try:
		loaded = await persistence.load_all_sessions()
	finally:
		await persistence.close()
	assert [(s.id, s.project_name) for s in loaded] == [(session.id, "last-second")]
