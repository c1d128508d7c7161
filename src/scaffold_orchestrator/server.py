"""scaffold-orchestrator MCP server."""

import contextlib
from typing import AsyncIterator

from mcp.server.fastmcp import FastMCP

from .config import load_config
from .runtime import get_runtime, shutdown_runtime
from .tools import register_all_tools


@contextlib.asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:
	"""Start the runtime with the server and drain dirty sessions when it exits."""
	await get_runtime(config)
	try:
		yield
	finally:
		await shutdown_runtime()


config = load_config()
mcp = FastMCP("scaffold-orchestrator", lifespan=lifespan)
register_all_tools(mcp, config)
