"""
HTTP transport for toolhub.

create_app() builds a FastAPI application exposing:

    POST /mcp                  JSON-RPC 2.0 endpoint (always HTTP 200)
    GET  /mcp/health           protocol health
    POST /api/tools/reload     reload the catalog from the store
    GET  /api/tools/status     registered tool count and names
    GET  /api/tools/info/NAME  one tool's definition (404 when unknown)
    GET  /api/tools/health     management health

The caller's project scope is read from the X-Project-Id header, falling
back to the projectId query parameter.

Lifecycle:
    On startup the descriptor store is opened and the initial catalog is
    loaded in a worker thread. A store that cannot be opened leaves the
    server running with an empty catalog. On shutdown the HTTP client and
    any store opened here are closed.
"""

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from fastapi import FastAPI, HTTPException, Request

from toolhub import __version__
from toolhub.catalog import CatalogLoader
from toolhub.engine import InvocationEngine
from toolhub.errors import JSONRPC_PARSE_ERROR, StorageError
from toolhub.protocol.jsonrpc import ProtocolFacade, error_response
from toolhub.schema import Settings
from toolhub.store import DescriptorStore
from toolhub.tools.http import HttpDispatcher
from toolhub.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

SCOPE_HEADER = "X-Project-Id"
SCOPE_QUERY_PARAM = "projectId"


def _timestamp() -> int:
    return int(time.time() * 1000)


def create_app(
    settings: Settings | None = None,
    store: DescriptorStore | None = None,
    registry: ToolRegistry | None = None,
    client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """
    Build the toolhub web application.

    Args:
        settings: Service configuration (defaults to Settings())
        store: An open descriptor store; opened from settings.database_path
            when neither a store nor a registry is given
        registry: A prepared registry, used as-is
        client: Shared HTTP client for outbound calls (tests pass a client
            backed by httpx.MockTransport)

    Returns:
        The FastAPI application
    """
    settings = settings or Settings()
    owns_store = store is None and registry is None
    registry = registry or ToolRegistry(project_scope=settings.project_scope)
    dispatcher = HttpDispatcher(
        client=client,
        timeout_seconds=settings.request_timeout_seconds,
        max_response_bytes=settings.max_response_bytes,
    )
    engine = InvocationEngine(registry, dispatcher)
    facade = ProtocolFacade(registry, engine, settings)

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        opened: DescriptorStore | None = store
        if owns_store:
            try:
                opened = DescriptorStore(settings.database_path)
            except StorageError as e:
                logger.error("Descriptor store unavailable, serving an empty catalog: %s", e)
                opened = None

        if opened is not None and registry.loader is None:
            registry.loader = CatalogLoader(opened, settings)
        if registry.loader is not None:
            await asyncio.to_thread(registry.reload)
        app.state.store = opened

        yield

        await dispatcher.aclose()
        if owns_store and opened is not None:
            opened.close()

    app = FastAPI(title=settings.server_name, version=__version__, lifespan=_lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.engine = engine
    app.state.facade = facade
    app.state.store = store

    @app.post("/mcp")
    async def mcp_endpoint(request: Request) -> dict[str, Any]:
        body = await request.body()
        try:
            payload = json.loads(body)
        except ValueError:
            logger.debug("Rejecting malformed JSON body")
            return error_response(None, JSONRPC_PARSE_ERROR, "Parse error")

        scope = request.headers.get(SCOPE_HEADER) or request.query_params.get(SCOPE_QUERY_PARAM)
        return await facade.handle(payload, scope)

    @app.get("/mcp/health")
    async def mcp_health() -> dict[str, Any]:
        return {
            "status": "healthy",
            "protocol": "MCP JSON-RPC 2.0",
            "service": settings.server_name,
            "version": settings.server_version,
            "capabilities": ["tools"],
        }

    @app.post("/api/tools/reload")
    async def reload_tools() -> dict[str, Any]:
        logger.info("Reload requested via management API")
        try:
            summary = await asyncio.to_thread(registry.reload)
        except RuntimeError as e:
            raise HTTPException(status_code=500, detail=f"Tool reload failed: {e}") from e
        return {
            "success": summary.loaded,
            "message": "Tools reloaded" if summary.loaded else "Store unreadable, catalog unchanged",
            "beforeCount": summary.before_count,
            "afterCount": summary.after_count,
            "newToolsAdded": summary.delta,
            "timestamp": _timestamp(),
        }

    @app.get("/api/tools/status")
    async def tool_status() -> dict[str, Any]:
        return {
            "totalTools": len(registry),
            "registeredTools": registry.names(),
            "generation": registry.generation,
            "timestamp": _timestamp(),
        }

    @app.get("/api/tools/info/{name}")
    async def tool_info(name: str) -> dict[str, Any]:
        info = registry.info(name)
        if info is None:
            raise HTTPException(status_code=404, detail=f"Tool '{name}' not found")
        return {"success": True, "toolInfo": info, "timestamp": _timestamp()}

    @app.get("/api/tools/health")
    async def tools_health() -> dict[str, Any]:
        return {
            "status": "UP",
            "service": f"{settings.server_name} tool management",
            "totalTools": len(registry),
            "timestamp": _timestamp(),
        }

    return app
