"""MCP tool registration - modular tool definitions."""

import logging

from mcp.server.fastmcp import FastMCP

from ..config import Config
from .audit import register_audit_tools
from .modules import register_module_tools
from .policy import register_policy_tools
from .sessions import register_session_tools

logger = logging.getLogger(__name__)


def register_all_tools(mcp: FastMCP, config: Config) -> None:
	"""Register all MCP tools."""
	register_session_tools(mcp, config)
	register_policy_tools(mcp, config)
	register_audit_tools(mcp, config)
	register_module_tools(mcp, config)
	logger.debug("Registered session, policy, audit and module tools")
