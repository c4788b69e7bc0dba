"""
Catalog loader for toolhub.

This module converts active descriptors into ToolDefinitions:
- Resolving the endpoint URL against the configured base URL
- Parsing the JSON parameter schema
- Inferring a data-type when the descriptor leaves it blank

Design Decisions:
    - Loading fails soft: a store error yields None and a warning, never an
      exception, so callers can tell an outage from an empty store
    - A bad parameter schema only empties that tool's parameters
    - Loaded descriptors are flagged as registered unless the loader is
      read-only; a failure to flag them does not discard the catalog
"""

import json
import logging
import re
from typing import Any, Protocol

from toolhub.catalog.inference import infer_data_type
from toolhub.errors import StorageError
from toolhub.schema import Descriptor, ParameterSpec, Settings, ToolDefinition

logger = logging.getLogger(__name__)

# "http://", "https://", "ftp://" ...
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")


class DescriptorSource(Protocol):
    """The part of the descriptor store the loader needs."""

    def fetch_active_by_scope(self, project_id: int) -> list[Descriptor]: ...

    def fetch_active_all(self) -> list[Descriptor]: ...

    def mark_registered(self, ids: list[int]) -> int: ...


def resolve_url(base_url: str, path: str | None) -> str:
    """
    Resolve a descriptor path to an absolute URL.

    Paths that already carry a scheme are returned verbatim. Otherwise the
    path is joined to base_url with exactly one separating slash.

    Args:
        base_url: Configured base URL (e.g. "http://host:1")
        path: Descriptor path (e.g. "foo/bar" or "http://other/x")

    Returns:
        The absolute URL
    """
    path = (path or "").strip()
    if _SCHEME_RE.match(path):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def _parse_required(value: Any) -> bool:
    """Accept True/False as well as "true"/"1" strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true" or value.strip() == "1"
    return False


def parse_parameters(raw: str | None) -> dict[str, ParameterSpec]:
    """
    Parse a descriptor's parameter schema.

    The schema is a JSON array such as:
        [{"paramName": "id", "paramType": "string", "paramDesc": "...",
          "required": true, "exampleValue": "42"}]

    Entries without a name are skipped.

    Args:
        raw: The raw JSON text (None or blank means no parameters)

    Returns:
        Ordered mapping of parameter name to ParameterSpec

    Raises:
        ValueError: If the text is not a JSON array of objects
    """
    if raw is None or not raw.strip():
        return {}

    entries = json.loads(raw)
    if not isinstance(entries, list):
        msg = f"parameter schema must be a JSON array, got {type(entries).__name__}"
        raise ValueError(msg)

    parameters: dict[str, ParameterSpec] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            msg = f"parameter entry must be an object, got {type(entry).__name__}"
            raise ValueError(msg)

        name = entry.get("paramName")
        if not isinstance(name, str) or not name.strip():
            continue

        parameters[name] = ParameterSpec(
            type=entry.get("paramType") or "string",
            description=entry.get("paramDesc") or "",
            required=_parse_required(entry.get("required")),
            default=entry.get("exampleValue"),
        )
    return parameters


class CatalogLoader:
    """
    Builds tool definitions from the descriptor store.

    Usage:
        loader = CatalogLoader(store, settings)
        tools = loader.load_catalog(project_scope=7)

    Attributes:
        source: The descriptor store
        settings: Base URL and data-type inference configuration
        mark_registered: Flag loaded descriptors as registered (False for
            read-only inspection)
    """

    def __init__(
        self,
        source: DescriptorSource,
        settings: Settings,
        mark_registered: bool = True,
    ) -> None:
        self.source = source
        self.settings = settings
        self.mark_registered = mark_registered

    def load_catalog(self, project_scope: int | None = None) -> list[ToolDefinition] | None:
        """
        Load the tool definitions of all active descriptors.

        Args:
            project_scope: Only load this project's descriptors (None = all)

        Returns:
            Tool definitions in store order, or None when the store could not
            be read
        """
        try:
            if project_scope is None:
                descriptors = self.source.fetch_active_all()
            else:
                descriptors = self.source.fetch_active_by_scope(project_scope)
        except (StorageError, OSError, ValueError) as e:
            logger.warning("Could not load descriptors (project=%s): %s", project_scope, e)
            return None

        # The store filters deleted rows; this guards sources that don't.
        tools = [self.to_tool(d) for d in descriptors if not d.is_deleted]
        logger.info("Loaded %d tools from %d descriptors", len(tools), len(descriptors))
        for tool in tools:
            logger.debug("Tool %s -> %s %s", tool.name, tool.method, tool.url)

        if tools and self.mark_registered:
            self._mark_registered([t.descriptor_id for t in tools if t.descriptor_id is not None])
        elif not tools:
            logger.warning("No active descriptors found (project=%s)", project_scope)
        return tools

    def _mark_registered(self, ids: list[int]) -> None:
        """Flag loaded descriptors as registered, logging failures."""
        try:
            updated = self.source.mark_registered(ids)
            logger.info("Marked %d descriptors as registered", updated)
        except (StorageError, OSError) as e:
            logger.warning("Could not mark descriptors as registered: %s", e)

    def to_tool(self, descriptor: Descriptor) -> ToolDefinition:
        """
        Convert one descriptor to a ToolDefinition.

        Args:
            descriptor: The source descriptor

        Returns:
            The derived tool definition
        """
        try:
            parameters = parse_parameters(descriptor.request_params)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            logger.warning("Ignoring parameter schema of %s: %s", descriptor.name, e)
            parameters = {}

        data_type = descriptor.data_type
        if not (data_type and data_type.strip()):
            if self.settings.infer_data_type:
                data_type = infer_data_type(
                    descriptor.name,
                    self.settings.data_type_rules,
                    self.settings.default_data_type,
                )
            else:
                data_type = None

        method = (descriptor.method or "").strip().upper() or "GET"

        return ToolDefinition(
            name=descriptor.name,
            description=descriptor.description or "",
            url=resolve_url(self.settings.base_url, descriptor.path),
            method=method,
            kind=descriptor.kind,
            mock_payload=descriptor.mock_payload,
            data_type=data_type,
            project_id=descriptor.project_id,
            parameters=parameters,
            descriptor_id=descriptor.id,
        )
