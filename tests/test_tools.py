"""Tests for the MCP tool functions."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from scaffold_orchestrator.runtime import Runtime
from scaffold_orchestrator.tools import register_all_tools

from .helpers import capture_tools, make_config

TOOL_MODULES = ("sessions", "policy", "audit", "modules")
REQUIREMENTS = json.dumps({"project_name": "my-service", "language": "python"})


@pytest.fixture
async def runtime(tmp_path: Path):
	rt = Runtime(make_config(tmp_path))
	await rt.start()
	yield rt
	await rt.stop()


@pytest.fixture
def tools(runtime):
	"""All tools, with get_runtime patched to return the test runtime."""
	patchers = [
		patch(f"scaffold_orchestrator.tools.{name}.get_runtime", AsyncMock(return_value=runtime))
		for name in TOOL_MODULES
	]
	for p in patchers:
		p.start()
	yield capture_tools(runtime.config, register_all_tools)
	for p in patchers:
		p.stop()


async def call(tools: dict, name: str, **kwargs) -> dict:
	return json.loads(await tools[name](**kwargs))


def test_all_tools_registered(tools):
	assert set(tools) == {
		"create_scaffold_session",
		"send_scaffold_message",
		"approve_scaffold_plan",
		"reject_scaffold_plan",
		"get_scaffold_session",
		"list_scaffold_sessions",
		"delete_scaffold_session",
		"list_policies",
		"check_requirements",
		"reload_policies",
		"get_audit_log",
		"export_audit_log",
		"list_modules",
		"preview_modules",
	}


class TestSessionTools:
	"""Session lifecycle through the tools."""

	@pytest.mark.asyncio
	async def test_full_lifecycle(self, tools):
		created = await call(tools, "create_scaffold_session", user_id="alice")
		assert created["success"]
		session_id = created["session"]["id"]
		assert created["session"]["status"] == "intake"

		planned = await call(tools, "send_scaffold_message", session_id=session_id, message=REQUIREMENTS)
		assert planned["session"]["status"] == "awaiting_approval"
		assert planned["session"]["plan"].startswith("# Plan for my-service")
		assert planned["session"]["progress"]["completed_steps"] == 0

		approved = await call(tools, "approve_scaffold_plan", session_id=session_id)
		assert approved["success"]
		state = approved["session"]
		assert state["status"] == "completed"
		assert state["progress"]["percent_complete"] == 100.0
		assert state["delivery"]["success"]
		assert state["reply"].startswith("Repository ready!")

	@pytest.mark.asyncio
	async def test_reject_with_feedback(self, tools):
		session_id = (await call(tools, "create_scaffold_session"))["session"]["id"]
		await call(tools, "send_scaffold_message", session_id=session_id, message=REQUIREMENTS)

		rejected = await call(tools, "reject_scaffold_plan", session_id=session_id)
		assert rejected["session"]["status"] == "planning"

	@pytest.mark.asyncio
	async def test_approve_in_wrong_state_returns_error(self, tools):
		session_id = (await call(tools, "create_scaffold_session"))["session"]["id"]
		result = await call(tools, "approve_scaffold_plan", session_id=session_id)
		assert not result["success"]
		assert "intake -> executing" in result["error"]

	@pytest.mark.asyncio
	async def test_unknown_session(self, tools):
		for name in ("send_scaffold_message", "get_scaffold_session", "delete_scaffold_session"):
			kwargs = {"session_id": "missing"}
			if name == "send_scaffold_message":
				kwargs["message"] = "hi"
			result = await call(tools, name, **kwargs)
			assert not result["success"], name
			assert "missing" in result["error"]

	@pytest.mark.asyncio
	async def test_list_filter_and_delete(self, tools):
		a = (await call(tools, "create_scaffold_session", user_id="alice"))["session"]["id"]
		await call(tools, "create_scaffold_session", user_id="bob")

		assert (await call(tools, "list_scaffold_sessions"))["count"] == 2
		mine = await call(tools, "list_scaffold_sessions", user_id="alice")
		assert [s["id"] for s in mine["sessions"]] == [a]

		assert (await call(tools, "delete_scaffold_session", session_id=a))["success"]
		assert (await call(tools, "list_scaffold_sessions"))["count"] == 1
		assert not (await call(tools, "get_scaffold_session", session_id=a))["success"]


class TestPolicyTools:
	"""Policy catalog tools."""

	@pytest.mark.asyncio
	async def test_list_policies(self, tools):
		result = await call(tools, "list_policies")
		ids = [p["id"] for p in result["policies"]]
		assert "naming-convention" in ids
		assert result["count"] == len(ids)

	@pytest.mark.asyncio
	async def test_check_requirements(self, tools):
		ok = await call(tools, "check_requirements", requirements_json=REQUIREMENTS)
		assert ok["success"] and ok["passed"]

		bad = await call(tools, "check_requirements", requirements_json=json.dumps({"project_name": "Bad Name"}))
		assert not bad["passed"]
		failed = [r["policy_id"] for r in bad["results"] if not r["passed"]]
		assert failed == ["naming-convention"]

		invalid = await call(tools, "check_requirements", requirements_json="{}")
		assert not invalid["success"]

	@pytest.mark.asyncio
	async def test_reload_policies(self, tools, runtime, tmp_path: Path):
		path = tmp_path / "policies.json"
		path.write_text(json.dumps([{"id": "require-readme", "name": "README"}]))

		result = await call(tools, "reload_policies", path=str(path))
		assert result == {"success": True, "count": 1, "path": str(path)}
		assert [p.id for p in runtime.policy_engine.get_policies()] == ["require-readme"]

	@pytest.mark.asyncio
	async def test_reload_failure_keeps_catalog(self, tools, runtime, tmp_path: Path):
		before = runtime.policy_engine.get_policies()
		path = tmp_path / "broken.yaml"
		path.write_text("policies: [")

		result = await call(tools, "reload_policies", path=str(path))
		assert not result["success"]
		assert runtime.policy_engine.get_policies() == before

	@pytest.mark.asyncio
	async def test_reload_without_path(self, tools):
		result = await call(tools, "reload_policies")
		assert result["error"] == "No policy file given or configured"


class TestAuditTools:
	"""Audit log tools."""

	@pytest.mark.asyncio
	async def test_get_and_export(self, tools):
		session_id = (await call(tools, "create_scaffold_session"))["session"]["id"]
		await call(tools, "send_scaffold_message", session_id=session_id, message=REQUIREMENTS)

		log = await call(tools, "get_audit_log", session_id=session_id)
		assert log["count"] == 6
		assert log["entries"][0]["action"] == "session.created"

		latest = await call(tools, "get_audit_log", session_id=session_id, limit=2)
		assert [e["action"] for e in latest["entries"]] == ["plan.create", "session.transition"]

		exported = await call(tools, "export_audit_log", session_id=session_id, fmt="csv")
		assert exported["format"] == "csv"
		assert exported["content"].splitlines()[0].startswith("Id,Timestamp,SessionId")

	@pytest.mark.asyncio
	async def test_export_unknown_format(self, tools):
		result = await call(tools, "export_audit_log", session_id="x", fmt="xml")
		assert not result["success"]


class TestModuleTools:
	"""Module catalog tools."""

	@pytest.mark.asyncio
	async def test_list_modules_in_order(self, tools):
		result = await call(tools, "list_modules")
		orders = [m["order"] for m in result["modules"]]
		assert orders == sorted(orders)
		assert not any(m["disabled"] for m in result["modules"])

	@pytest.mark.asyncio
	async def test_preview_modules(self, tools, runtime):
		plain = await call(tools, "preview_modules", requirements_json=REQUIREMENTS)
		assert "api-contract" not in plain["modules"]

		api = json.dumps({"project_name": "my-api", "is_api_project": True})
		result = await call(tools, "preview_modules", requirements_json=api)
		assert result["modules"][-2:] == ["api-contract", "runbook"]
		assert not any(runtime.config.workspace_dir.iterdir())
