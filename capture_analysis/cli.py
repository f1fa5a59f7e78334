from __future__ import annotations

import argparse
import json
import logging
from typing import Optional, Sequence

import anyio
import uvicorn
from mcp.server.stdio import stdio_server

from capture_analysis.internal_core.config import CaptureConfig, load_config
from capture_analysis.transport import SERVER_NAME, create_session_server

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def client_config_snippet(port: int) -> str:
    return json.dumps(
        {"mcpServers": {SERVER_NAME: {"url": f"http://localhost:{port}/mcp"}}},
        indent=2,
    )


async def _serve_stdio() -> None:
    server = create_session_server(SERVER_NAME)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def _serve_http(config: CaptureConfig, port: int) -> None:
    from capture_analysis.api.main import app

    host = config.bind_host
    logger.info("http_server_starting host=%s port=%s env=%s", host, port, config.NODE_ENV)
    if not config.is_production:
        print(f"Capture Analysis listening on http://{host}:{port}")
        print("Client configuration:")
        print(client_config_snippet(port))
    app.state.capture_config = config
    uvicorn.run(app, host=host, port=port, log_level=config.python_log_level.lower())


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run the Capture Analysis service.")
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="HTTP port (default: $PORT or 8080).",
    )
    parser.add_argument(
        "--stdio",
        action="store_true",
        help="Serve the protocol server over stdin/stdout instead of HTTP.",
    )
    args = parser.parse_args(argv)

    config = load_config()
    configure_logging(config.python_log_level)

    if args.stdio:
        logger.info("stdio_server_starting")
        anyio.run(_serve_stdio)
        return

    _serve_http(config, args.port if args.port is not None else config.PORT)


if __name__ == "__main__":
    main()
