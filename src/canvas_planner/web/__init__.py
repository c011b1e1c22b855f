"""HTTP API for canvas persistence, sharing, slots and events."""

from __future__ import annotations

from typing import Optional

from ..config import Config


def create_app(config: Optional[Config] = None) -> object:
	"""Create the Starlette ASGI application."""
	from .app import build_app

	return build_app(config=config)


def run_web_server(host: str = "127.0.0.1", port: int = 8430, config: Optional[Config] = None) -> None:
	"""Run the API server with uvicorn."""
	import uvicorn

	app = create_app(config=config)
	print(f"Canvas API running at http://{host}:{port}")
	print("Press Ctrl+C to stop.")
	uvicorn.run(app, host=host, port=port, log_level="warning")
