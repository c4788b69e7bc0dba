"""
Base types for tool dispatch.

This module defines the result format shared by the dispatch layer:
- ToolOutput: Standardized result of one outbound call

Design Principles:
    - Dispatchers never raise for expected failures (timeouts, refused
      connections, error statuses); they return ToolOutput.fail()
    - The failure kind travels with the output so the engine can map it
      onto the invocation error taxonomy
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ToolOutput:
    """
    Standardized output from one tool dispatch.

    Attributes:
        success: Whether the call produced a response body
        data: The response body text
        error: Error message if success is False
        error_kind: Taxonomy entry of the failure ("timeout", "transport_failure")
        metadata: Additional metadata about the call (url, status_code, ...)
    """

    success: bool
    data: str | None = None
    error: str | None = None
    error_kind: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: str, **metadata: Any) -> "ToolOutput":
        """Create a successful output."""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(cls, error: str, kind: str = "transport_failure", **metadata: Any) -> "ToolOutput":
        """Create a failed output."""
        return cls(success=False, error=error, error_kind=kind, metadata=metadata)
