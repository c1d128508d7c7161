"""Tests for the web dashboard API endpoints."""

import csv
import io
import json
from pathlib import Path

import pytest

from scaffold_orchestrator.runtime import Runtime

from .helpers import make_config

try:
	from starlette.testclient import TestClient

	from scaffold_orchestrator.web.app import build_app

	HAS_WEB = True
except ImportError:
	HAS_WEB = False

pytestmark = pytest.mark.skipif(not HAS_WEB, reason="web dependencies not installed")

REQUIREMENTS = json.dumps({"project_name": "my-service", "language": "python"})


@pytest.fixture
def runtime(tmp_path: Path) -> Runtime:
	return Runtime(make_config(tmp_path, flush_interval=60))


@pytest.fixture
def client(runtime: Runtime):
	"""Test client; the app's lifespan starts and stops the runtime."""
	with TestClient(build_app(runtime=runtime)) as c:
		yield c


def create_session(client, user_id: str = "alice") -> str:
	resp = client.post("/api/sessions", json={"user_id": user_id})
	assert resp.status_code == 201
	return resp.json()["id"]


def test_index_serves_dashboard(client):
	resp = client.get("/")
	assert resp.status_code == 200
	assert "Scaffold Orchestrator" in resp.text


def test_lifespan_starts_and_stops_runtime(runtime: Runtime):
	with TestClient(build_app(runtime=runtime)):
		assert runtime.started
	assert not runtime.started


class TestSessionEndpoints:
	"""Session lifecycle over HTTP."""

	def test_create_and_list(self, client):
		session_id = create_session(client)
		create_session(client, user_id="bob")

		all_sessions = client.get("/api/sessions").json()
		assert len(all_sessions) == 2

		mine = client.get("/api/sessions", params={"user_id": "alice"}).json()
		assert [s["id"] for s in mine] == [session_id]
		assert mine[0]["status"] == "intake"

	def test_message_approve_and_detail(self, client):
		session_id = create_session(client)

		resp = client.post(f"/api/sessions/{session_id}/messages", json={"content": REQUIREMENTS})
		assert resp.status_code == 200
		assert resp.json()["status"] == "awaiting_approval"

		resp = client.post(f"/api/sessions/{session_id}/approval", json={"approved": True})
		assert resp.status_code == 200
		assert resp.json()["status"] == "completed"

		detail = client.get(f"/api/sessions/{session_id}").json()
		assert detail["delivery"]["success"]
		assert [m["role"] for m in detail["messages"]][:2] == ["user", "assistant"]
		assert detail["messages"][-1]["content"].startswith("Repository ready!")

	def test_reject_with_feedback(self, client):
		session_id = create_session(client)
		client.post(f"/api/sessions/{session_id}/messages", json={"content": REQUIREMENTS})

		resp = client.post(f"/api/sessions/{session_id}/approval", json={"approved": False})
		assert resp.json()["status"] == "planning"

	def test_unknown_session_is_404(self, client):
		assert client.get("/api/sessions/missing").status_code == 404
		assert client.post("/api/sessions/missing/messages", json={"content": "hi"}).status_code == 404
		assert client.post("/api/sessions/missing/approval", json={"approved": True}).status_code == 404

	def test_approval_in_wrong_state_is_409(self, client):
		session_id = create_session(client)
		resp = client.post(f"/api/sessions/{session_id}/approval", json={"approved": True})
		assert resp.status_code == 409
		assert "intake" in resp.json()["error"]

	def test_bad_bodies_are_400(self, client):
		session_id = create_session(client)
		assert client.post(f"/api/sessions/{session_id}/messages", json={}).status_code == 400
		assert client.post(f"/api/sessions/{session_id}/messages", content=b"{nope").status_code == 400
		assert client.post(f"/api/sessions/{session_id}/approval", json={"approved": "yes"}).status_code == 400
		assert client.post("/api/sessions", json=[1, 2]).status_code == 400


class TestAuditEndpoint:
	"""Audit export over HTTP."""

	def test_json_and_csv(self, client):
		session_id = create_session(client)
		client.post(f"/api/sessions/{session_id}/messages", json={"content": REQUIREMENTS})

		entries = client.get(f"/api/sessions/{session_id}/audit").json()
		assert entries[0]["action"] == "session.created"

		resp = client.get(f"/api/sessions/{session_id}/audit", params={"format": "csv"})
		assert resp.headers["content-type"].startswith("text/csv")
		rows = list(csv.reader(io.StringIO(resp.text)))
		assert len(rows) == len(entries) + 1

	def test_unknown_format_is_400(self, client):
		resp = client.get("/api/sessions/x/audit", params={"format": "xml"})
		assert resp.status_code == 400


def test_catalog_endpoints(client):
	policies = client.get("/api/policies").json()
	assert "naming-convention" in [p["id"] for p in policies]

	modules = client.get("/api/modules").json()
	assert [m["order"] for m in modules] == sorted(m["order"] for m in modules)
