"""
Exception hierarchy for toolhub.

All toolhub exceptions inherit from ToolhubError, allowing callers to catch
all toolhub-specific exceptions with a single except clause.

Exception Categories:
    - InvocationError: A single tool call failed (not found, denied, ...)
    - StorageError: Descriptor store operation failed
    - ConfigError: Settings could not be loaded
    - ProtocolError: A JSON-RPC envelope was rejected

Invocation errors never escape the engine. They are converted into textual
results so that callers always receive a successful protocol envelope.
Protocol errors carry the JSON-RPC error code to send back.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Invocation errors: 1xxx
ERROR_TOOL_NOT_FOUND = 1001
ERROR_ACCESS_DENIED = 1002
ERROR_MISSING_PARAMETERS = 1003
ERROR_TRANSPORT_FAILURE = 1004
ERROR_TOOL_TIMEOUT = 1005

# Storage errors: 2xxx
ERROR_STORAGE_CONNECTION = 2001
ERROR_STORAGE_WRITE = 2002
ERROR_STORAGE_READ = 2003

# Configuration errors: 3xxx
ERROR_CONFIG_INVALID = 3001

# JSON-RPC 2.0 error codes
JSONRPC_PARSE_ERROR = -32700
JSONRPC_INVALID_REQUEST = -32600
JSONRPC_METHOD_NOT_FOUND = -32601
JSONRPC_INVALID_PARAMS = -32602
JSONRPC_INTERNAL_ERROR = -32603


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class ToolhubError(Exception):
    """
    Base exception for all toolhub errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Invocation Errors
# =============================================================================


@dataclass
class InvocationError(ToolhubError):
    """
    Base class for per-invocation failures.

    The engine raises these internally and turns them into textual results;
    `message` is the text handed back to the caller and `kind` is the
    taxonomy entry recorded on the InvocationResult.

    Attributes:
        tool: Name of the tool being invoked
    """

    tool: str = ""
    kind: str = "error"

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["tool"] = self.tool


@dataclass
class ToolNotFoundError(InvocationError):
    """Raised when no tool with the requested name is registered."""

    kind: str = "tool_not_found"

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Tool not found: {self.tool}"
        if self.code == 0:
            self.code = ERROR_TOOL_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Call tools/list for available names or tools/reload after authoring"
        super().__post_init__()


@dataclass
class AccessDeniedError(InvocationError):
    """Raised when the caller's project scope does not own the tool."""

    kind: str = "access_denied"
    caller_scope: int | None = None
    tool_scope: int | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Access denied: tool {self.tool} does not belong to project {self.caller_scope}"
            )
        if self.code == 0:
            self.code = ERROR_ACCESS_DENIED
        super().__post_init__()
        self.context.update({
            "caller_scope": self.caller_scope,
            "tool_scope": self.tool_scope,
        })


@dataclass
class MissingParametersError(InvocationError):
    """Raised when required parameters are absent or blank."""

    kind: str = "missing_parameters"
    missing: list[str] = field(default_factory=list)
    hint: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Missing required parameters: {', '.join(self.missing)}"
            if self.hint:
                self.message += f". {self.hint}"
        if self.code == 0:
            self.code = ERROR_MISSING_PARAMETERS
        super().__post_init__()
        self.context["missing"] = list(self.missing)


@dataclass
class TransportError(InvocationError):
    """Raised when the outbound HTTP call fails."""

    kind: str = "transport_failure"
    url: str = ""
    underlying_error: str = ""
    status_code: int | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"API call failed for {self.tool}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_TRANSPORT_FAILURE
        super().__post_init__()
        self.context.update({
            "url": self.url,
            "underlying_error": self.underlying_error,
            "status_code": self.status_code,
        })


@dataclass
class ToolTimeoutError(InvocationError):
    """Raised when the outbound HTTP call exceeds its deadline."""

    kind: str = "timeout"
    url: str = ""
    timeout_seconds: float = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"API call for {self.tool} timed out after {self.timeout_seconds:g}s"
        if self.code == 0:
            self.code = ERROR_TOOL_TIMEOUT
        if not self.suggestion:
            self.suggestion = "Increase request_timeout_seconds in settings or check the upstream API"
        super().__post_init__()
        self.context.update({
            "url": self.url,
            "timeout_seconds": self.timeout_seconds,
        })


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(ToolhubError):
    """
    Base class for descriptor store errors.

    Attributes:
        operation: The operation that failed (e.g., "connect", "fetch_active_all")
    """

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["operation"] = self.operation


@dataclass
class StorageConnectionError(StorageError):
    """Raised when the database cannot be opened."""

    db_path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to connect to database: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_STORAGE_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check that database_path in settings is valid and writable"
        super().__post_init__()
        self.context["db_path"] = self.db_path


@dataclass
class StorageWriteError(StorageError):
    """Raised when a write operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database write failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageReadError(StorageError):
    """Raised when a read operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database read failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigError(ToolhubError):
    """Raised when a settings file cannot be read or validated."""

    path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid settings file: {self.path}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context["path"] = self.path


# =============================================================================
# Protocol Errors
# =============================================================================


@dataclass
class ProtocolError(ToolhubError):
    """
    Raised when a JSON-RPC request is rejected at the envelope level.

    `code` is the JSON-RPC error code (-32600, -32601, ...) sent back
    to the client.
    """

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = JSONRPC_INTERNAL_ERROR
        if not self.message:
            self.message = "Internal error"
