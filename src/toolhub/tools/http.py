"""
HTTP dispatch for toolhub.

This module performs the outbound call of a tool invocation:
- GET: arguments become query parameters; list values repeat the key
- Other methods: arguments are sent as a JSON body
- Tool headers are attached with string-coerced values

Failure handling:
    Expected failures never raise. Timeouts, transport errors, error status
    codes and oversized bodies come back as ToolOutput.fail() with an
    error_kind the engine maps onto its taxonomy.
"""

import asyncio
import json
import logging
from typing import Any, Mapping

import httpx

from toolhub.schema import ToolDefinition
from toolhub.tools.base import ToolOutput

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RESPONSE_BYTES = 10 * 1024 * 1024  # 10 MB


def _query_value(value: Any) -> str:
    """Render one scalar argument as a query-string value."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False)


def build_query_params(args: Mapping[str, Any]) -> list[tuple[str, str]]:
    """
    Encode arguments as ordered query parameters.

    List and tuple values expand to one parameter per element, in order:
        {"ids": ["1", "2"]} -> [("ids", "1"), ("ids", "2")]

    Args:
        args: The invocation arguments

    Returns:
        List of (name, value) pairs
    """
    params: list[tuple[str, str]] = []
    for key, value in args.items():
        if isinstance(value, (list, tuple)):
            params.extend((key, _query_value(item)) for item in value)
        else:
            params.append((key, _query_value(value)))
    return params


def _decode(content: bytes, charset: str | None) -> str:
    """Decode a body using its declared charset, falling back to UTF-8."""
    try:
        return content.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return content.decode("utf-8", errors="replace")


def build_headers(headers: Mapping[str, Any]) -> dict[str, str]:
    """Coerce configured header values to strings."""
    return {str(key): str(value) for key, value in headers.items()}


class HttpDispatcher:
    """
    Sends tool invocations to their upstream HTTP endpoints.

    One dispatcher (and one httpx.AsyncClient) is shared by all concurrent
    invocations.

    Usage:
        async with HttpDispatcher(timeout_seconds=30) as dispatcher:
            output = await dispatcher.dispatch(tool, {"id": "5"})

    Attributes:
        timeout_seconds: Deadline for one call, covering connect to last byte
        max_response_bytes: Largest accepted response body
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            client: Shared client; one is created (and owned) when omitted
            timeout_seconds: Deadline for one call
            max_response_bytes: Largest accepted response body
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(follow_redirects=True)
        self.timeout_seconds = timeout_seconds
        self.max_response_bytes = max_response_bytes

    async def aclose(self) -> None:
        """Close the client if this dispatcher created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpDispatcher":
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context manager."""
        await self.aclose()

    async def dispatch(self, tool: ToolDefinition, args: Mapping[str, Any]) -> ToolOutput:
        """
        Call a tool's endpoint.

        Args:
            tool: The tool being invoked
            args: Validated invocation arguments

        Returns:
            ToolOutput with the response text or an error
        """
        try:
            return await asyncio.wait_for(
                self._send(tool, args),
                timeout=self.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("Call to %s timed out after %ss", tool.name, self.timeout_seconds)
            return ToolOutput.fail(
                f"API call for {tool.name} timed out after {self.timeout_seconds:g}s",
                kind="timeout",
                url=tool.url,
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("Call to %s failed with status %s", tool.name, status)
            return ToolOutput.fail(
                f"API call failed for {tool.name}: HTTP {status} from {e.request.url}",
                url=tool.url,
                status_code=status,
            )
        except httpx.HTTPError as e:
            logger.error("Call to %s failed: %s", tool.name, e)
            return ToolOutput.fail(
                f"API call failed for {tool.name}: {e or type(e).__name__}",
                url=tool.url,
                error_type=type(e).__name__,
            )
        except (httpx.InvalidURL, ValueError, TypeError) as e:
            # Bad URLs and non-serializable bodies surface here.
            logger.error("Could not build request for %s: %s", tool.name, e)
            return ToolOutput.fail(
                f"API call failed for {tool.name}: {e}",
                url=tool.url,
                error_type=type(e).__name__,
            )

    async def _send(self, tool: ToolDefinition, args: Mapping[str, Any]) -> ToolOutput:
        """Build the request, stream the body and enforce the size limit."""
        headers = build_headers(tool.headers)
        method = tool.method.upper()

        if method == "GET":
            request = self._client.build_request(
                "GET",
                tool.url,
                params=build_query_params(args) if args else None,
                headers=headers,
                timeout=self.timeout_seconds,
            )
        else:
            request = self._client.build_request(
                method,
                tool.url,
                json=dict(args),
                headers=headers,
                timeout=self.timeout_seconds,
            )

        logger.info("Calling %s: %s %s", tool.name, method, request.url)
        response = await self._client.send(request, stream=True)
        try:
            response.raise_for_status()

            content_length = response.headers.get("content-length")
            if content_length and content_length.isdigit():
                if int(content_length) > self.max_response_bytes:
                    return ToolOutput.fail(
                        f"Response too large: {content_length} bytes (max: {self.max_response_bytes})",
                        url=str(request.url),
                        content_length=int(content_length),
                    )

            chunks: list[bytes] = []
            total = 0
            async for chunk in response.aiter_bytes():
                total += len(chunk)
                if total > self.max_response_bytes:
                    return ToolOutput.fail(
                        f"Response exceeded size limit: {total} bytes (max: {self.max_response_bytes})",
                        url=str(request.url),
                        bytes_read=total,
                    )
                chunks.append(chunk)
        finally:
            await response.aclose()

        body = _decode(b"".join(chunks), response.charset_encoding)
        logger.info("Call to %s succeeded (%d bytes)", tool.name, total)
        return ToolOutput.ok(
            body,
            url=str(request.url),
            status_code=response.status_code,
            body_size=total,
        )
