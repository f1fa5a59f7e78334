from __future__ import annotations

"""
Stateful streamable-HTTP session routing for the protocol endpoint.

Design intent:
- One protocol server + transport pair per session, keyed by the session header.
- The registry is injected so tests and the app share the same explicit store.
- Server loops run in a task group owned by the app lifespan; an entry is removed
  when its loop ends.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup, TaskStatus
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER, StreamableHTTPServerTransport
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.types import Receive, Scope, Send

from capture_analysis.internal_core.session_registry import SessionEntry, SessionRegistry

from .server import create_session_server

logger = logging.getLogger(__name__)


class SessionTransportHandler:
    def __init__(
        self,
        registry: SessionRegistry,
        server_factory: Callable[[], Server] = create_session_server,
        *,
        json_response: bool = False,
    ) -> None:
        self._registry = registry
        self._server_factory = server_factory
        self._json_response = json_response
        self._task_group: Optional[TaskGroup] = None

    @asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        if self._task_group is not None:
            raise RuntimeError("Session transport is already running")
        async with anyio.create_task_group() as task_group:
            self._task_group = task_group
            logger.info("session_transport_started")
            try:
                yield
            finally:
                task_group.cancel_scope.cancel()
                self._task_group = None
                dropped = self._registry.clear()
                logger.info("session_transport_stopped dropped_sessions=%s", dropped)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)

        if session_id is not None:
            entry = self._registry.get(session_id)
            if entry is None:
                logger.info("session_lookup_miss session_id=%s", session_id)
                response = PlainTextResponse("Session not found", status_code=404)
                await response(scope, receive, send)
                return
            await entry.transport.handle_request(scope, receive, send)
            return

        if request.method != "POST":
            response = JSONResponse({"error": "Invalid request"}, status_code=400)
            await response(scope, receive, send)
            return

        await self._open_session(scope, receive, send)

    async def _open_session(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self._task_group is None:
            raise RuntimeError("Session transport is not running; enter run() first")

        session_id = uuid4().hex
        server = self._server_factory()
        transport = StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=self._json_response,
        )
        self._registry.insert(SessionEntry(session_id=session_id, transport=transport, server=server))

        async def run_server(*, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
            try:
                async with transport.connect() as (read_stream, write_stream):
                    task_status.started()
                    await server.run(
                        read_stream,
                        write_stream,
                        server.create_initialization_options(),
                        stateless=False,
                    )
            except Exception:
                logger.exception("session_server_crashed session_id=%s", session_id)
            finally:
                if self._registry.remove(session_id) is not None:
                    logger.info("session_closed session_id=%s", session_id)

        try:
            await self._task_group.start(run_server)
        except Exception:
            logger.exception("session_start_failed session_id=%s", session_id)
            self._registry.remove(session_id)
            response = PlainTextResponse("Internal server error", status_code=500)
            await response(scope, receive, send)
            return

        logger.info("session_opened session_id=%s active=%s", session_id, len(self._registry))
        await transport.handle_request(scope, receive, send)
