"""
Tool registry for toolhub.

The registry is the runtime index over the current catalog generation.

Design:
    - The catalog is an immutable Catalog snapshot behind one reference
    - register() builds a new snapshot and swaps it in; readers never lock
      and never see a half-built index
    - Writers (reload) are serialized with a lock that readers never take
    - Later duplicates of a name shadow earlier ones within a generation

Usage:
    registry = ToolRegistry(loader)
    registry.reload()
    tool = registry.lookup("get_poi_list")
"""

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping

from toolhub.catalog.loader import CatalogLoader
from toolhub.schema import ToolDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Catalog:
    """
    One immutable catalog generation.

    Attributes:
        tools: Read-only mapping of tool name to definition
        generation: Monotonic generation number (0 = never registered)
    """

    tools: Mapping[str, ToolDefinition] = field(default_factory=lambda: MappingProxyType({}))
    generation: int = 0

    @classmethod
    def build(cls, definitions: Iterable[ToolDefinition], generation: int) -> "Catalog":
        """Index definitions by name; later duplicates win."""
        index: dict[str, ToolDefinition] = {}
        for definition in definitions:
            if definition.name in index:
                logger.debug("Tool %s shadows an earlier definition", definition.name)
            index[definition.name] = definition
        return cls(tools=MappingProxyType(index), generation=generation)

    def __len__(self) -> int:
        return len(self.tools)


@dataclass(frozen=True)
class ReloadSummary:
    """
    Outcome of a registry reload.

    Attributes:
        before_count: Tools registered before the reload
        after_count: Tools registered after the reload
        tool_names: Names in the new generation
        generation: Number of the new generation
        loaded: False when the store could not be read and the previous
            generation was kept
    """

    before_count: int
    after_count: int
    tool_names: list[str]
    generation: int
    loaded: bool = True

    @property
    def delta(self) -> int:
        """Change in tool count."""
        return self.after_count - self.before_count


def describe_required(tool: ToolDefinition) -> str:
    """Describe one definition's required parameters for error messages."""
    required = [
        f"{param} ({spec.type or 'string'})"
        for param, spec in tool.parameters.items()
        if spec.required
    ]
    if not required:
        return "This tool has no required parameters"
    return "Required parameters: " + ", ".join(required)


class ToolRegistry:
    """
    Copy-on-write index of tool definitions.

    Attributes:
        loader: Catalog loader used by reload() (optional for static use)
        project_scope: Project passed to the loader on reload
    """

    def __init__(
        self,
        loader: CatalogLoader | None = None,
        project_scope: int | None = None,
    ) -> None:
        """
        Initialize an empty registry.

        Args:
            loader: Catalog loader used by reload()
            project_scope: Only load this project's descriptors on reload
        """
        self.loader = loader
        self.project_scope = project_scope
        self._catalog = Catalog()
        self._write_lock = threading.Lock()
        self._reload_lock = threading.Lock()

    @property
    def catalog(self) -> Catalog:
        """The current generation."""
        return self._catalog

    @property
    def generation(self) -> int:
        """Number of the current generation."""
        return self._catalog.generation

    def register(self, definitions: Iterable[ToolDefinition]) -> Catalog:
        """
        Replace the catalog with a new generation.

        The new index is fully built before it is published.

        Args:
            definitions: The complete new catalog

        Returns:
            The published Catalog
        """
        with self._write_lock:
            catalog = Catalog.build(definitions, self._catalog.generation + 1)
            self._catalog = catalog
        logger.info(
            "Registered %d tools (generation %d)", len(catalog), catalog.generation
        )
        return catalog

    def lookup(self, name: str) -> ToolDefinition | None:
        """
        Look up a tool by name.

        Args:
            name: The tool's unique name

        Returns:
            The tool definition, or None if not registered
        """
        return self._catalog.tools.get(name)

    def lookup_by_project(self, project_id: int | None) -> dict[str, ToolDefinition]:
        """
        Get the tools visible to a project.

        Args:
            project_id: The project scope (None returns every tool)

        Returns:
            Mapping of tool name to definition, in catalog order
        """
        tools = self._catalog.tools
        if project_id is None:
            return dict(tools)
        filtered = {name: t for name, t in tools.items() if t.project_id == project_id}
        logger.debug("Project %s sees %d of %d tools", project_id, len(filtered), len(tools))
        return filtered

    def reload(self) -> ReloadSummary:
        """
        Rebuild the catalog from the loader and publish it.

        Concurrent readers keep using the previous generation until the swap.
        When the store cannot be read the current generation stays published
        and the summary reports loaded=False. An empty store publishes an
        empty generation.

        Returns:
            ReloadSummary with before/after counts

        Raises:
            RuntimeError: If the registry has no loader
        """
        if self.loader is None:
            msg = "ToolRegistry has no catalog loader to reload from"
            raise RuntimeError(msg)

        with self._reload_lock:
            before = len(self._catalog)
            logger.info("Reloading tools (currently %d registered)", before)
            definitions = self.loader.load_catalog(self.project_scope)
            catalog = self._catalog if definitions is None else self.register(definitions)
        summary = ReloadSummary(
            before_count=before,
            after_count=len(catalog),
            tool_names=list(catalog.tools),
            generation=catalog.generation,
            loaded=definitions is not None,
        )
        if summary.loaded:
            logger.info(
                "Reload complete: %d -> %d tools (delta %+d)",
                summary.before_count,
                summary.after_count,
                summary.delta,
            )
        else:
            logger.warning(
                "Reload failed, keeping generation %d (%d tools)",
                summary.generation,
                summary.after_count,
            )
        return summary

    def describe_required_params(self, name: str) -> str:
        """
        Describe a tool's required parameters for error messages.

        Args:
            name: The tool's unique name

        Returns:
            A human-readable listing such as "Required parameters: id (string), tags (array)"
        """
        tool = self.lookup(name)
        if tool is None:
            return f"Tool not found: {name}"
        return describe_required(tool)

    def info(self, name: str) -> dict[str, Any] | None:
        """
        Get the management view of one tool.

        Args:
            name: The tool's unique name

        Returns:
            Dictionary of definition fields plus a parameter hint, or None
        """
        tool = self.lookup(name)
        if tool is None:
            return None
        return {
            "name": tool.name,
            "description": tool.description,
            "url": tool.url,
            "method": tool.method,
            "apiType": tool.kind,
            "mockData": tool.mock_payload,
            "dataType": tool.data_type,
            "projectId": tool.project_id,
            "headers": dict(tool.headers),
            "parameters": {
                param: spec.model_dump() for param, spec in tool.parameters.items()
            },
            "parameterHint": describe_required(tool),
        }

    def names(self) -> list[str]:
        """Names in the current generation, in catalog order."""
        return list(self._catalog.tools)

    def __len__(self) -> int:
        """Return the number of registered tools."""
        return len(self._catalog)

    def __iter__(self) -> Iterator[ToolDefinition]:
        """Iterate over the current generation."""
        return iter(list(self._catalog.tools.values()))

    def __contains__(self, name: object) -> bool:
        """Check if a tool is registered using 'in' operator."""
        return name in self._catalog.tools

    def __repr__(self) -> str:
        """String representation of the registry."""
        tools = ", ".join(self.names())
        return f"<ToolRegistry gen={self.generation}: [{tools}]>"
