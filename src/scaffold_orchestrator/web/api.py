"""JSON API endpoints for the web dashboard."""

from __future__ import annotations

import json

from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from ..errors import InvalidTransitionError, PlanNotFoundError, SessionNotFoundError
from ..runtime import Runtime
from ..tools.sessions import session_state, session_summary
from .templates import DASHBOARD_HTML


def get_runtime(request: Request) -> Runtime:
	"""Get the Runtime from app state."""
	return request.app.state.runtime


def _error(status_code: int, message: str) -> JSONResponse:
	return JSONResponse({"error": message}, status_code=status_code)


async def _json_body(request: Request) -> dict:
	raw = await request.body()
	if not raw:
		return {}
	try:
		data = json.loads(raw)
	except json.JSONDecodeError as e:
		raise ValueError(f"Invalid JSON body: {e}") from e
	if not isinstance(data, dict):
		raise ValueError("JSON body must be an object")
	return data


async def index(request: Request) -> HTMLResponse:
	"""Serve the dashboard HTML page."""
	return HTMLResponse(DASHBOARD_HTML)


async def api_sessions(request: Request) -> JSONResponse:
	"""Session list, most recently active first."""
	runtime = get_runtime(request)
	user_id = request.query_params.get("user_id")
	sessions = runtime.store.list_sessions_by_user(user_id) if user_id else runtime.store.list_sessions()
	return JSONResponse([session_summary(s) for s in sessions])


async def api_create_session(request: Request) -> JSONResponse:
	"""Start a session."""
	runtime = get_runtime(request)
	try:
		body = await _json_body(request)
	except ValueError as e:
		return _error(400, str(e))
	session = runtime.agent.create_session(body.get("user_id"))
	return JSONResponse(session_summary(session), status_code=201)


async def api_session_detail(request: Request) -> JSONResponse:
	"""Full state for one session, including messages."""
	runtime = get_runtime(request)
	session = runtime.store.get_session(request.path_params["id"])
	if session is None:
		return _error(404, f"Session not found: {request.path_params['id']}")
	state = session_state(session)
	state["messages"] = [m.model_dump(mode="json") for m in session.messages]
	return JSONResponse(state)


async def api_send_message(request: Request) -> JSONResponse:
	"""Send a user message to a session."""
	runtime = get_runtime(request)
	try:
		body = await _json_body(request)
	except ValueError as e:
		return _error(400, str(e))
	content = body.get("content")
	if not isinstance(content, str) or not content.strip():
		return _error(400, "Field 'content' is required")

	try:
		session = await runtime.agent.process_message(request.path_params["id"], content)
	except SessionNotFoundError as e:
		return _error(404, str(e))
	return JSONResponse(session_state(session))


async def api_approve(request: Request) -> JSONResponse:
	"""Approve or reject the pending plan. Body: {"approved": bool, "feedback": str}."""
	runtime = get_runtime(request)
	try:
		body = await _json_body(request)
	except ValueError as e:
		return _error(400, str(e))
	approved = body.get("approved")
	if not isinstance(approved, bool):
		return _error(400, "Field 'approved' must be true or false")

	try:
		session = await runtime.agent.handle_approval(
			request.path_params["id"], approved=approved, feedback=body.get("feedback"),
		)
	except SessionNotFoundError as e:
		return _error(404, str(e))
	except (InvalidTransitionError, PlanNotFoundError) as e:
		return _error(409, str(e))
	return JSONResponse(session_state(session))


async def api_session_audit(request: Request) -> Response:
	"""Audit log export for a session (?format=json|csv)."""
	runtime = get_runtime(request)
	fmt = request.query_params.get("format", "json")
	try:
		content = runtime.audit.export_logs(request.path_params["id"], fmt)
	except ValueError as e:
		return _error(400, str(e))
	if fmt.lower() == "csv":
		return PlainTextResponse(content, media_type="text/csv")
	return Response(content, media_type="application/json")


async def api_policies(request: Request) -> JSONResponse:
	"""Active policy catalog."""
	runtime = get_runtime(request)
	return JSONResponse([p.model_dump(mode="json") for p in runtime.policy_engine.get_policies()])


async def api_modules(request: Request) -> JSONResponse:
	"""Registered modules in run order."""
	runtime = get_runtime(request)
	orchestrator = runtime.orchestrator
	return JSONResponse([
		{
			"id": m.id,
			"display_name": m.display_name,
			"order": m.order,
			"disabled": m.id.lower() in orchestrator.disabled_modules,
		}
		for m in sorted(orchestrator.modules, key=lambda m: m.order)
	])
