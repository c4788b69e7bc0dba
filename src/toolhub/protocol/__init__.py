"""
Protocol module for toolhub.

JSON-RPC 2.0 handling and its HTTP transport.

Key concepts:
    - ProtocolFacade: Maps initialize/tools/list/tools/call/tools/reload
      onto the registry and the invocation engine
    - create_app: FastAPI application serving the facade and the
      management routes
"""

from toolhub.protocol.jsonrpc import ProtocolFacade, parse_scope
from toolhub.protocol.server import create_app

__all__ = [
    "ProtocolFacade",
    "create_app",
    "parse_scope",
]
