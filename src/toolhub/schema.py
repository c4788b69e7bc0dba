"""
Schema definitions for toolhub.

This module defines the Pydantic models used throughout toolhub:
- Descriptor: A persisted API descriptor row
- ParameterSpec/ToolDefinition: The runtime form of a descriptor
- DataTypeRule: One entry of the data-type keyword table
- PolicyDecision: The result of a scope authorization check
- Settings: Service configuration loaded from YAML

Design Decisions:
    - Models are immutable where possible (frozen=True)
    - Settings forbid unknown keys so typos in YAML are reported
    - Descriptor mirrors the store columns; ToolDefinition holds only
      what invocation needs
"""

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from toolhub.errors import ConfigError


# =============================================================================
# Enums
# =============================================================================


class DescriptorKind(str, Enum):
    """Known payload kinds of a descriptor. Other values are kept verbatim."""

    SQL = "SQL"
    MOCK = "MOCK"
    STATIC = "STATIC"


class DeleteFlag(str, Enum):
    """Values of the descriptor deletion flag."""

    ACTIVE = "0"
    DELETED = "2"


class RegistrationFlag(str, Enum):
    """Values of the descriptor registration flag."""

    REGISTERED = "0"
    UNREGISTERED = "2"


# =============================================================================
# Descriptor Model
# =============================================================================


class Descriptor(BaseModel):
    """
    A persisted API descriptor.

    Descriptors are authored by external tooling. toolhub reads the active
    ones and only ever writes the registration flag.

    Attributes:
        id: Primary key (assigned by the store)
        name: Tool name exposed to clients
        path: Endpoint path, relative to the base URL or absolute
        kind: Payload kind (SQL, MOCK, STATIC, ...)
        method: HTTP method
        auth_type: Authorization tag (none, code, secret); carried, not used
        sql_payload: SQL text for SQL-kind descriptors
        mock_payload: Canned response for STATIC/MOCK descriptors
        datasource_code: Datasource reference code
        datasource_type: Datasource reference type
        project_id: Owning project scope
        description: Human-readable description
        del_flag: "0" for active rows
        request_params: Raw JSON text of the parameter schema
        data_type: Declared data-type, blank to infer
        mcp_flag: "0" once registered as a tool
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int | None = Field(default=None, description="Primary key")
    name: str = Field(..., description="Tool name", min_length=1)
    path: str = Field(default="", description="Endpoint path or absolute URL")
    kind: str | None = Field(default=None, description="Payload kind")
    method: str | None = Field(default="GET", description="HTTP method")
    auth_type: str | None = Field(default=None, description="Authorization tag")
    sql_payload: str | None = Field(default=None, description="SQL payload")
    mock_payload: str | None = Field(default=None, description="Mock payload")
    datasource_code: str | None = Field(default=None, description="Datasource code")
    datasource_type: str | None = Field(default=None, description="Datasource type")
    project_id: int | None = Field(default=None, description="Owning project scope")
    description: str | None = Field(default=None, description="Description")
    del_flag: str = Field(default=DeleteFlag.ACTIVE.value, description="Deletion flag")
    request_params: str | None = Field(default=None, description="Parameter schema JSON")
    data_type: str | None = Field(default=None, description="Declared data-type")
    mcp_flag: str = Field(
        default=RegistrationFlag.UNREGISTERED.value,
        description="Registration flag",
    )

    @property
    def is_deleted(self) -> bool:
        """Whether the descriptor is flagged as deleted."""
        return self.del_flag != DeleteFlag.ACTIVE.value


# =============================================================================
# Tool Models
# =============================================================================


class ParameterSpec(BaseModel):
    """
    One parameter accepted by a tool.

    Attributes:
        type: Semantic type tag (string, integer, array, ...)
        description: Human-readable description
        required: Whether the caller must supply a non-blank value
        default: Example/default value from the descriptor
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = Field(default="string", description="Semantic type tag")
    description: str = Field(default="", description="Parameter description")
    required: bool = Field(default=False, description="Whether the parameter is required")
    default: Any = Field(default=None, description="Example/default value")


class ToolDefinition(BaseModel):
    """
    The runtime form of a descriptor.

    Built only by the catalog loader and never mutated afterwards.

    Attributes:
        name: Unique tool name within a registry generation
        description: Human-readable description
        url: Resolved absolute endpoint URL
        method: Upper-cased HTTP method
        kind: Payload kind copied from the descriptor
        mock_payload: Canned response (if any)
        data_type: Explicit or inferred data-type (None to skip post-processing)
        project_id: Owning project scope
        headers: Headers attached to outbound calls
        parameters: Ordered mapping of parameter name to spec
        descriptor_id: Id of the source descriptor
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., description="Tool name", min_length=1)
    description: str = Field(default="", description="Tool description")
    url: str = Field(..., description="Resolved endpoint URL")
    method: str = Field(default="GET", description="HTTP method")
    kind: str | None = Field(default=None, description="Payload kind")
    mock_payload: str | None = Field(default=None, description="Mock payload")
    data_type: str | None = Field(default=None, description="Data-type tag")
    project_id: int | None = Field(default=None, description="Owning project scope")
    headers: dict[str, Any] = Field(default_factory=dict, description="Outbound headers")
    parameters: dict[str, ParameterSpec] = Field(
        default_factory=dict,
        description="Ordered parameter specs",
    )
    descriptor_id: int | None = Field(default=None, description="Source descriptor id")

    @property
    def is_static(self) -> bool:
        """Whether this tool answers from its mock payload."""
        return (
            (self.kind or "").upper() == DescriptorKind.STATIC.value
            and self.mock_payload is not None
        )

    def required_parameters(self) -> list[str]:
        """Names of required parameters in declaration order."""
        return [name for name, spec in self.parameters.items() if spec.required]


# =============================================================================
# Policy Models
# =============================================================================


class PolicyDecision(BaseModel):
    """
    Result of checking a caller against a tool's project scope.

    Attributes:
        allowed: Whether the call may proceed
        reason: Human-readable explanation of the decision
        rule_matched: Which rule caused this decision
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool = Field(..., description="Whether the action is permitted")
    reason: str = Field(..., description="Human-readable explanation of the decision")
    rule_matched: str | None = Field(
        default=None,
        description="Which rule caused this decision",
    )

    @classmethod
    def allow(cls, reason: str, rule: str | None = None) -> "PolicyDecision":
        """Create an ALLOW decision."""
        return cls(allowed=True, reason=reason, rule_matched=rule)

    @classmethod
    def deny(cls, reason: str, rule: str | None = None) -> "PolicyDecision":
        """Create a DENY decision."""
        return cls(allowed=False, reason=reason, rule_matched=rule)


# =============================================================================
# Settings
# =============================================================================


class DataTypeRule(BaseModel):
    """
    One row of the data-type keyword table.

    Attributes:
        category: Data-type assigned when a keyword matches
        keywords: Case-insensitive substrings searched in the tool name
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    category: str = Field(..., min_length=1, description="Data-type category")
    keywords: list[str] = Field(..., min_length=1, description="Keywords to match")


# Ordered: the first matching row wins, so "poi" is checked before "point".
DEFAULT_DATA_TYPE_RULES: list[DataTypeRule] = [
    DataTypeRule(category="legend", keywords=["legend", "图例"]),
    DataTypeRule(category="poi", keywords=["poi_", "_poi_", "pois", "point_of_interest", "兴趣点"]),
    DataTypeRule(category="geometry", keywords=["geometry", "polygon", "geojson", "几何", "区域"]),
    DataTypeRule(category="path", keywords=["path", "route", "track", "路径", "轨迹", "路线"]),
    DataTypeRule(category="text", keywords=["text", "文本", "文字"]),
    DataTypeRule(category="statistics", keywords=["statistic", "stats", "summary", "统计"]),
    DataTypeRule(category="point", keywords=["point", "点位", "坐标"]),
]


class Settings(BaseModel):
    """
    Service configuration.

    Attributes:
        base_url: Prefix for descriptor paths that carry no scheme
        database_path: SQLite file holding the descriptors
        project_scope: Load only this project's descriptors (None = all)
        request_timeout_seconds: Deadline for one outbound call
        max_response_bytes: Largest accepted upstream body
        infer_data_type: Infer blank data-types from tool names
        default_data_type: Category used when no keyword matches
        data_type_rules: Ordered keyword table for inference
        server_name: Identity reported by initialize
        server_version: Version reported by initialize
        server_description: Description reported by initialize
        protocol_version: Tool protocol version reported by initialize
        host: Bind address for `toolhub serve`
        port: Bind port for `toolhub serve`
        log_level: Level for the toolhub logger
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str = Field(default="http://localhost:8080", description="Base URL")
    database_path: str = Field(default="toolhub.db", description="SQLite database path")
    project_scope: int | None = Field(default=None, description="Project to load")
    request_timeout_seconds: float = Field(
        default=30,
        description="Outbound request timeout in seconds",
        gt=0,
        le=300,
    )
    max_response_bytes: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        description="Maximum upstream response size",
        gt=0,
    )
    infer_data_type: bool = Field(default=True, description="Infer blank data-types")
    default_data_type: str = Field(default="API", description="Fallback data-type")
    data_type_rules: list[DataTypeRule] = Field(
        default_factory=lambda: list(DEFAULT_DATA_TYPE_RULES),
        description="Ordered keyword table",
    )
    server_name: str = Field(default="toolhub", description="Server name")
    server_version: str = Field(default="1.0.0", description="Server version")
    server_description: str = Field(
        default="Database-driven HTTP API tools over JSON-RPC",
        description="Server description",
    )
    protocol_version: str = Field(default="2024-11-05", description="Protocol version")
    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, description="Bind port", gt=0, lt=65536)
    log_level: str = Field(default="INFO", description="Log level")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) base URL."""
        if not v.startswith(("http://", "https://")):
            msg = f"base_url must start with http:// or https://: {v}"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Unknown log level: {v}"
            raise ValueError(msg)
        return level


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_settings(path: Path | str) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated Settings object

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(path=str(path), message=f"Cannot read settings {path}: {e}") from e

    try:
        return Settings.model_validate(data or {})
    except ValidationError as e:
        raise ConfigError(path=str(path), message=f"Invalid settings {path}: {e}") from e


def load_settings_from_string(content: str) -> Settings:
    """Load settings from a YAML string."""
    data = yaml.safe_load(content)
    return Settings.model_validate(data or {})
