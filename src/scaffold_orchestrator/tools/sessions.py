"""Scaffolding session tools."""

import json

from mcp.server.fastmcp import FastMCP

from ..config import Config
from ..errors import ScaffoldError
from ..runtime import get_runtime
from ..sessions.models import Session


def session_summary(session: Session) -> dict:
	"""Compact view of a session for listings."""
	return {
		"id": session.id,
		"user_id": session.user_id,
		"project_name": session.project_name,
		"status": session.status.value,
		"created_at": session.created_at.isoformat(),
		"last_activity_at": session.last_activity_at.isoformat(),
		"message_count": len(session.messages),
		"plan_id": session.plan.id if session.plan else None,
	}


def session_state(session: Session) -> dict:
	"""Session status plus the latest assistant reply, plan and delivery."""
	last_reply = next((m.content for m in reversed(session.messages) if m.role.value == "assistant"), None)
	state = session_summary(session)
	state["reply"] = last_reply
	state["plan"] = session.plan.to_markdown() if session.plan else None
	state["progress"] = session.plan.get_progress() if session.plan else None
	state["delivery"] = session.delivery_result.model_dump(mode="json") if session.delivery_result else None
	return state


def register_session_tools(mcp: FastMCP, config: Config) -> None:
	"""Register session lifecycle tools."""

	@mcp.tool()
	async def create_scaffold_session(user_id: str = "") -> str:
		"""
		Start a new scaffolding session in the intake phase.

		Args:
			user_id: Optional id of the requesting user
		"""
		runtime = await get_runtime(config)
		session = runtime.agent.create_session(user_id or None)
		return json.dumps({"success": True, "session": session_summary(session)}, indent=2)

	@mcp.tool()
	async def send_scaffold_message(session_id: str, message: str) -> str:
		"""
		Send a user message to a session.

		During intake and planning the message goes to the assistant; once it
		has the project requirements a plan is built and the session waits
		for approval.

		Args:
			session_id: Session ID
			message: User message (free text, or a JSON object of requirements)
		"""
		runtime = await get_runtime(config)
		try:
			session = await runtime.agent.process_message(session_id, message)
		except ScaffoldError as e:
			return json.dumps({"success": False, "error": str(e)})
		return json.dumps({"success": True, "session": session_state(session)}, indent=2)

	@mcp.tool()
	async def approve_scaffold_plan(session_id: str) -> str:
		"""
		Approve the pending plan and run it to delivery.

		Args:
			session_id: Session ID (must be awaiting approval)
		"""
		runtime = await get_runtime(config)
		try:
			session = await runtime.agent.handle_approval(session_id, approved=True)
		except ScaffoldError as e:
			return json.dumps({"success": False, "error": str(e)})
		return json.dumps({"success": True, "session": session_state(session)}, indent=2)

	@mcp.tool()
	async def reject_scaffold_plan(session_id: str, feedback: str = "") -> str:
		"""
		Reject the pending plan and return the session to planning.

		Args:
			session_id: Session ID (must be awaiting approval)
			feedback: Optional changes to make; sent to the assistant
		"""
		runtime = await get_runtime(config)
		try:
			session = await runtime.agent.handle_approval(session_id, approved=False, feedback=feedback or None)
		except ScaffoldError as e:
			return json.dumps({"success": False, "error": str(e)})
		return json.dumps({"success": True, "session": session_state(session)}, indent=2)

	@mcp.tool()
	async def get_scaffold_session(session_id: str) -> str:
		"""
		Get a session's status, latest reply, plan and delivery result.

		Args:
			session_id: Session ID
		"""
		runtime = await get_runtime(config)
		session = runtime.store.get_session(session_id)
		if session is None:
			return json.dumps({"success": False, "error": f"Session not found: {session_id}"})
		return json.dumps({"success": True, "session": session_state(session)}, indent=2)

	@mcp.tool()
	async def list_scaffold_sessions(user_id: str = "") -> str:
		"""
		List sessions, most recently active first.

		Args:
			user_id: Only sessions for this user (empty = all)
		"""
		runtime = await get_runtime(config)
		sessions = runtime.store.list_sessions_by_user(user_id) if user_id else runtime.store.list_sessions()
		return json.dumps({
			"success": True,
			"count": len(sessions),
			"sessions": [session_summary(s) for s in sessions],
		}, indent=2)

	@mcp.tool()
	async def delete_scaffold_session(session_id: str) -> str:
		"""
		Delete a session from memory and storage. Its audit log is kept.

		Args:
			session_id: Session ID
		"""
		runtime = await get_runtime(config)
		existed = await runtime.store.remove_session(session_id)
		if not existed:
			return json.dumps({"success": False, "error": f"Session not found: {session_id}"})
		return json.dumps({"success": True, "session_id": session_id})
