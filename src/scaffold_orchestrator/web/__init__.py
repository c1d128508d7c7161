"""Web API and dashboard for scaffolding sessions."""

from __future__ import annotations

import logging
import webbrowser
from typing import Optional

from ..config import Config

logger = logging.getLogger(__name__)


def create_app(config: Optional[Config] = None) -> object:
	"""Create the Starlette ASGI application."""
	from .app import build_app

	return build_app(config=config)


def run_web_dashboard(
	port: int = 8420,
	host: str = "127.0.0.1",
	config: Optional[Config] = None,
	open_browser: bool = True,
) -> None:
	"""Run the web dashboard server until interrupted."""
	import uvicorn

	app = create_app(config=config)

	if open_browser:
		import threading

		def _open():
			import time
			time.sleep(0.8)
			webbrowser.open(f"http://localhost:{port}")

		threading.Thread(target=_open, daemon=True).start()

	logger.info(f"Dashboard running at http://{host}:{port}")
	print(f"Dashboard running at http://{host}:{port}")
	print("Press Ctrl+C to stop.")
	uvicorn.run(app, host=host, port=port, log_level="warning")
