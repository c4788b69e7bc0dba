"""
JSON-RPC 2.0 facade for toolhub.

Translates protocol envelopes into registry and engine operations:

    initialize    -> static server identity and capabilities
    tools/list    -> the (optionally scope-filtered) catalog as tool schemas
    tools/call    -> InvocationEngine.invoke, wrapped as text content
    tools/reload  -> ToolRegistry.reload, reported as before/after counts

Envelope failures become JSON-RPC errors. Tool failures do not: they come
back as text inside a successful response with "isError" set.
"""

import asyncio
import logging
from typing import Any

from toolhub.engine import InvocationEngine
from toolhub.errors import (
    JSONRPC_INTERNAL_ERROR,
    JSONRPC_INVALID_PARAMS,
    JSONRPC_INVALID_REQUEST,
    JSONRPC_METHOD_NOT_FOUND,
    ProtocolError,
)
from toolhub.schema import Settings, ToolDefinition
from toolhub.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"


def success_response(request_id: Any, result: Any) -> dict[str, Any]:
    """Build a JSON-RPC success envelope."""
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(request_id: Any, code: int, message: str) -> dict[str, Any]:
    """Build a JSON-RPC error envelope."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": {"code": code, "message": message},
    }


def parse_scope(value: Any) -> int | None:
    """
    Parse an out-of-band project scope.

    Args:
        value: Header or query value (str, int or None)

    Returns:
        The scope as an int, or None when absent or unparseable
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        logger.warning("Ignoring unparseable project scope: %r", value)
        return None


def tool_schema(tool: ToolDefinition) -> dict[str, Any]:
    """Describe one tool as a tools/list entry."""
    properties = {
        name: {
            "type": spec.type or "string",
            "description": spec.description or "",
        }
        for name, spec in tool.parameters.items()
    }
    return {
        "name": tool.name,
        "description": tool.description or "",
        "inputSchema": {
            "type": "object",
            "properties": properties,
            "required": tool.required_parameters(),
        },
    }


class ProtocolFacade:
    """
    Dispatches JSON-RPC requests to toolhub operations.

    Usage:
        facade = ProtocolFacade(registry, engine, settings)
        response = await facade.handle(
            {"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
            scope=7,
        )

    Attributes:
        registry: The tool registry
        engine: The invocation engine
        settings: Server identity for initialize
    """

    def __init__(
        self,
        registry: ToolRegistry,
        engine: InvocationEngine,
        settings: Settings | None = None,
    ) -> None:
        self.registry = registry
        self.engine = engine
        self.settings = settings or Settings()
        self._handlers = {
            "initialize": self._initialize,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "tools/reload": self._tools_reload,
        }

    async def handle(self, request: Any, scope: Any = None) -> dict[str, Any]:
        """
        Handle one JSON-RPC request.

        Args:
            request: The decoded request body
            scope: Out-of-band project scope (parsed as an integer)

        Returns:
            A JSON-RPC response envelope
        """
        if not isinstance(request, dict):
            return error_response(None, JSONRPC_INVALID_REQUEST, "Invalid Request")

        request_id = request.get("id")
        if request.get("jsonrpc") != JSONRPC_VERSION:
            return error_response(
                request_id,
                JSONRPC_INVALID_REQUEST,
                "Invalid Request: jsonrpc must be \"2.0\"",
            )

        method = request.get("method")
        handler = self._handlers.get(method) if isinstance(method, str) else None
        if handler is None:
            logger.debug("Unknown method: %r", method)
            return error_response(request_id, JSONRPC_METHOD_NOT_FOUND, f"Method not found: {method}")

        params = request.get("params")
        if params is None:
            params = {}
        logger.debug("Handling %s (id=%r)", method, request_id)

        try:
            if not isinstance(params, dict):
                raise ProtocolError(code=JSONRPC_INVALID_PARAMS, message="Invalid params: expected an object")
            result = await handler(params, parse_scope(scope))
        except ProtocolError as e:
            return error_response(request_id, e.code, e.message)
        except Exception as e:
            logger.exception("Internal error handling %s", method)
            return error_response(request_id, JSONRPC_INTERNAL_ERROR, f"Internal error: {e}")

        return success_response(request_id, result)

    # =========================================================================
    # Method Handlers
    # =========================================================================

    async def _initialize(self, params: dict[str, Any], scope: int | None) -> dict[str, Any]:
        return {
            "protocolVersion": self.settings.protocol_version,
            "capabilities": {
                "tools": {},
                "resources": {},
                "prompts": {},
            },
            "serverInfo": {
                "name": self.settings.server_name,
                "version": self.settings.server_version,
                "description": self.settings.server_description,
            },
        }

    async def _tools_list(self, params: dict[str, Any], scope: int | None) -> dict[str, Any]:
        tools = self.registry.lookup_by_project(scope)
        return {"tools": [tool_schema(tool) for tool in tools.values()]}

    async def _tools_call(self, params: dict[str, Any], scope: int | None) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise ProtocolError(
                code=JSONRPC_INVALID_PARAMS,
                message="Invalid params: name is required",
            )

        arguments = params.get("arguments")
        if arguments is not None and not isinstance(arguments, (dict, str)):
            raise ProtocolError(
                code=JSONRPC_INVALID_PARAMS,
                message="Invalid params: arguments must be an object or a string",
            )

        result = await self.engine.invoke(name, arguments, project_scope=scope)
        return {
            "content": [{"type": "text", "text": result.text}],
            "isError": not result.success,
        }

    async def _tools_reload(self, params: dict[str, Any], scope: int | None) -> dict[str, Any]:
        summary = await asyncio.to_thread(self.registry.reload)
        return {
            "success": summary.loaded,
            "beforeCount": summary.before_count,
            "afterCount": summary.after_count,
            "delta": summary.delta,
            "tools": summary.tool_names,
        }
