"""
Invocation Engine for toolhub.

The engine runs one tool call through a fixed sequence of stages:

    RESOLVE_TOOL -> AUTHORIZE_SCOPE -> EXTRACT_ARGS -> VALIDATE_REQUIRED
        -> DISPATCH -> POSTPROCESS -> RESULT

The first failing stage ends the invocation with an ERROR result. Failures
are raised internally as InvocationError subclasses and converted to text,
so callers always receive an InvocationResult and never an exception.

Design Principles:
    - Static tools answer from their mock payload without any network call
    - Expected failures (not found, denied, missing arguments, transport
      failures, timeouts) become text, never protocol faults
    - The catalog generation is read once per invocation
"""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Mapping

from toolhub.arguments import extract_arguments
from toolhub.errors import (
    AccessDeniedError,
    InvocationError,
    MissingParametersError,
    ToolNotFoundError,
    ToolTimeoutError,
    TransportError,
)
from toolhub.policy import ScopePolicy
from toolhub.schema import ToolDefinition
from toolhub.tools.http import HttpDispatcher
from toolhub.tools.registry import ToolRegistry, describe_required

logger = logging.getLogger(__name__)


class InvocationStage(str, Enum):
    """Stages of one invocation, in order."""

    RESOLVE_TOOL = "resolve_tool"
    AUTHORIZE_SCOPE = "authorize_scope"
    EXTRACT_ARGS = "extract_args"
    VALIDATE_REQUIRED = "validate_required"
    DISPATCH = "dispatch"
    POSTPROCESS = "postprocess"
    RESULT = "result"
    ERROR = "error"


class InvocationStatus(str, Enum):
    """Outcome of an invocation."""

    SUCCESS = "success"
    ERROR = "error"


@dataclass
class InvocationResult:
    """
    Result of one tool invocation.

    Attributes:
        status: success or error
        text: The response text, or the error message
        tool_name: Name of the requested tool
        stage: RESULT on success, ERROR on failure
        failed_stage: The stage that failed (None on success)
        error_kind: Taxonomy entry for errors (tool_not_found, timeout, ...)
        duration_ms: Wall-clock time of the invocation
    """

    status: InvocationStatus
    text: str
    tool_name: str
    stage: InvocationStage = InvocationStage.RESULT
    failed_stage: InvocationStage | None = None
    error_kind: str | None = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        """Whether the invocation produced a result."""
        return self.status == InvocationStatus.SUCCESS


# =============================================================================
# Post-processing
# =============================================================================


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def postprocess(text: str, data_type: str | None) -> str:
    """
    Tag a JSON response with the tool's data-type.

    An object gets its "type" key set; any other JSON value is wrapped as
    {"type": ..., "data": ...}. Text that is empty or not JSON is returned
    unchanged, as is everything when no data-type is declared.

    Args:
        text: The raw response text
        data_type: The tool's data-type, or None

    Returns:
        The (possibly re-serialized) response text

    Example:
        >>> postprocess('{"a": 1}', "point")
        '{"a":1,"type":"point"}'
    """
    if not data_type or not text or not text.strip():
        return text

    try:
        payload = json.loads(text)
    except ValueError:
        return text

    if isinstance(payload, dict):
        payload["type"] = data_type
        return _dumps(payload)
    return _dumps({"type": data_type, "data": payload})


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return not str(value).strip()


# =============================================================================
# Engine
# =============================================================================


class InvocationEngine:
    """
    Runs tool invocations against the registry's current catalog.

    Usage:
        engine = InvocationEngine(registry, HttpDispatcher())
        result = await engine.invoke("get_poi_list", {"id": "5"})
        print(result.text)

    Attributes:
        registry: Registry holding the current catalog
        dispatcher: Performs outbound HTTP calls
        policy: Decides whether a caller scope may use a tool
    """

    def __init__(
        self,
        registry: ToolRegistry,
        dispatcher: HttpDispatcher,
        policy: ScopePolicy | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            registry: Registry holding the current catalog
            dispatcher: Performs outbound HTTP calls
            policy: Scope policy (defaults to ScopePolicy())
        """
        self.registry = registry
        self.dispatcher = dispatcher
        self.policy = policy or ScopePolicy()

    async def invoke(
        self,
        name: str,
        arguments: str | Mapping[str, Any] | None = None,
        project_scope: int | None = None,
    ) -> InvocationResult:
        """
        Invoke a tool by name.

        Args:
            name: The tool's name
            arguments: A mapping, free text, or None
            project_scope: The caller's project scope (None = unrestricted)

        Returns:
            InvocationResult with the response text or the error message
        """
        start_time = datetime.now(UTC)
        stage = InvocationStage.RESOLVE_TOOL
        logger.info("Invoking %s (scope=%s)", name, project_scope)

        try:
            tool = self.registry.lookup(name)
            if tool is None:
                raise ToolNotFoundError(tool=name)

            stage = InvocationStage.AUTHORIZE_SCOPE
            decision = self.policy.evaluate(tool, project_scope)
            if not decision.allowed:
                raise AccessDeniedError(
                    tool=name,
                    caller_scope=project_scope,
                    tool_scope=tool.project_id,
                    suggestion=decision.reason,
                )

            stage = InvocationStage.EXTRACT_ARGS
            args = extract_arguments(arguments)

            stage = InvocationStage.VALIDATE_REQUIRED
            self._validate_required(tool, args)

            stage = InvocationStage.DISPATCH
            text = await self._dispatch(tool, args)

            stage = InvocationStage.POSTPROCESS
            text = postprocess(text, tool.data_type)

        except InvocationError as e:
            duration_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
            logger.warning("Invocation of %s failed at %s: %s", name, stage.value, e.message)
            return InvocationResult(
                status=InvocationStatus.ERROR,
                text=e.message,
                tool_name=name,
                stage=InvocationStage.ERROR,
                failed_stage=stage,
                error_kind=e.kind,
                duration_ms=duration_ms,
            )

        duration_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
        logger.info("Invocation of %s succeeded in %.1fms", name, duration_ms)
        return InvocationResult(
            status=InvocationStatus.SUCCESS,
            text=text,
            tool_name=name,
            stage=InvocationStage.RESULT,
            duration_ms=duration_ms,
        )

    def _validate_required(self, tool: ToolDefinition, args: Mapping[str, Any]) -> None:
        """
        Check that every required parameter has a non-blank value.

        Raises:
            MissingParametersError: Naming every missing parameter
        """
        missing = [
            param for param in tool.required_parameters()
            if _is_blank(args.get(param))
        ]
        if missing:
            raise MissingParametersError(
                tool=tool.name,
                missing=missing,
                hint=describe_required(tool),
            )

    async def _dispatch(self, tool: ToolDefinition, args: Mapping[str, Any]) -> str:
        """
        Produce the raw response text for a tool.

        Raises:
            ToolTimeoutError: If the outbound call timed out
            TransportError: If the outbound call failed
        """
        if tool.is_static:
            logger.debug("Answering %s from its static payload", tool.name)
            return tool.mock_payload or ""

        output = await self.dispatcher.dispatch(tool, args)
        if output.success:
            return output.data or ""

        if output.error_kind == "timeout":
            raise ToolTimeoutError(
                tool=tool.name,
                message=output.error or "",
                url=tool.url,
                timeout_seconds=self.dispatcher.timeout_seconds,
            )
        raise TransportError(
            tool=tool.name,
            message=output.error or "",
            url=tool.url,
            underlying_error=output.error or "",
            status_code=output.metadata.get("status_code"),
        )
