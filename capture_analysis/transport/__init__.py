"""
Protocol session transport for Capture Analysis.

Design intent:
- Expose a streamable-HTTP protocol endpoint with an empty tool surface.
- Keep session bookkeeping in an injected registry, not in module globals.
"""

from .server import SERVER_NAME, SESSION_SERVER_NAME, create_session_server
from .sessions import SessionTransportHandler

__all__ = ["SERVER_NAME", "SESSION_SERVER_NAME", "create_session_server", "SessionTransportHandler"]
