"""Starlette app with route assembly."""

from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator, Optional

from starlette.applications import Starlette
from starlette.routing import Route

from ..config import Config, get_config
from ..runtime import Runtime
from .api import (
	api_approve,
	api_create_session,
	api_modules,
	api_policies,
	api_send_message,
	api_session_audit,
	api_session_detail,
	api_sessions,
	index,
)

logger = logging.getLogger(__name__)


def build_app(config: Optional[Config] = None, runtime: Optional[Runtime] = None) -> Starlette:
	"""
	Build and return the Starlette ASGI app.

	The runtime is started and stopped with the app's lifespan.

	Args:
		config: Configuration used when no runtime is given
		runtime: Pre-built runtime (tests inject their own)
	"""
	runtime = runtime or Runtime(config or get_config())

	@contextlib.asynccontextmanager
	async def lifespan(app: Starlette) -> AsyncIterator[None]:
		await runtime.start()
		try:
			yield
		finally:
			await runtime.stop()

	routes = [
		Route("/", index),
		Route("/api/sessions", api_sessions, methods=["GET"]),
		Route("/api/sessions", api_create_session, methods=["POST"]),
		Route("/api/sessions/{id}", api_session_detail, methods=["GET"]),
		Route("/api/sessions/{id}/messages", api_send_message, methods=["POST"]),
		Route("/api/sessions/{id}/approval", api_approve, methods=["POST"]),
		Route("/api/sessions/{id}/audit", api_session_audit, methods=["GET"]),
		Route("/api/policies", api_policies),
		Route("/api/modules", api_modules),
	]

	app = Starlette(routes=routes, lifespan=lifespan)
	app.state.runtime = runtime
	return app
