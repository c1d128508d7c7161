"""Audit trail tools."""

import json

from mcp.server.fastmcp import FastMCP

from ..config import Config
from ..runtime import get_runtime


def register_audit_tools(mcp: FastMCP, config: Config) -> None:
	"""Register audit tools."""

	@mcp.tool()
	async def get_audit_log(session_id: str, limit: int = 100) -> str:
		"""
		Get the most recent audit entries for a session.

		Args:
			session_id: Session ID
			limit: Maximum entries to return, newest last (default: 100)
		"""
		runtime = await get_runtime(config)
		entries = runtime.audit.get_session_logs(session_id)
		if limit > 0:
			entries = entries[-limit:]
		return json.dumps({
			"session_id": session_id,
			"count": len(entries),
			"entries": [e.model_dump(mode="json") for e in entries],
		}, indent=2)

	@mcp.tool()
	async def export_audit_log(session_id: str, fmt: str = "json") -> str:
		"""
		Export a session's full audit log.

		Args:
			session_id: Session ID
			fmt: "json" or "csv"
		"""
		runtime = await get_runtime(config)
		try:
			content = runtime.audit.export_logs(session_id, fmt)
		except ValueError as e:
			return json.dumps({"success": False, "error": str(e)})
		return json.dumps({"success": True, "format": fmt.lower(), "content": content})
