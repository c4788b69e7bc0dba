"""
Unit tests for the tool registry.

Tests cover:
- Registration and copy-on-write generations
- Name shadowing within a generation
- Project filtering
- Reload from a catalog loader
- Parameter hints and the info view
"""

from typing import Callable

import pytest

from toolhub.catalog import CatalogLoader
from toolhub.schema import ParameterSpec, Settings, ToolDefinition
from toolhub.store import DescriptorStore
from toolhub.tools.registry import Catalog, ToolRegistry, describe_required


class TestRegistration:
    """Tests for register() and lookups."""

    def test_empty_registry(self) -> None:
        """A new registry is empty at generation 0."""
        registry = ToolRegistry()
        assert len(registry) == 0
        assert registry.generation == 0
        assert registry.lookup("x") is None

    def test_register_and_lookup(self, make_tool: Callable[..., ToolDefinition]) -> None:
        """Registered tools can be looked up by name."""
        registry = ToolRegistry()
        registry.register([make_tool(name="a"), make_tool(name="b")])
        assert registry.names() == ["a", "b"]
        assert registry.lookup("a").name == "a"
        assert "b" in registry
        assert "c" not in registry

    def test_register_replaces_whole_catalog(self, make_tool: Callable[..., ToolDefinition]) -> None:
        """register() replaces the catalog and bumps the generation."""
        registry = ToolRegistry()
        registry.register([make_tool(name="a")])
        registry.register([make_tool(name="b")])
        assert registry.names() == ["b"]
        assert registry.generation == 2

    def test_old_generation_unchanged(self, make_tool: Callable[..., ToolDefinition]) -> None:
        """A held catalog keeps serving its tools after a swap."""
        registry = ToolRegistry()
        registry.register([make_tool(name="a")])
        held = registry.catalog

        registry.register([make_tool(name="b")])
        assert list(held.tools) == ["a"]
        assert held.generation == 1

    def test_catalog_is_read_only(self, make_tool: Callable[..., ToolDefinition]) -> None:
        """The published mapping cannot be mutated."""
        catalog = Catalog.build([make_tool(name="a")], generation=1)
        with pytest.raises(TypeError):
            catalog.tools["b"] = make_tool(name="b")

    def test_later_duplicate_shadows(self, make_tool: Callable[..., ToolDefinition]) -> None:
        """A later duplicate name replaces the earlier one."""
        registry = ToolRegistry()
        registry.register([
            make_tool(name="dup", url="http://h/first"),
            make_tool(name="dup", url="http://h/second"),
        ])
        assert len(registry) == 1
        assert registry.lookup("dup").url == "http://h/second"


class TestProjectFilter:
    """Tests for lookup_by_project."""

    def test_filter(self, make_tool: Callable[..., ToolDefinition]) -> None:
        """Only the project's tools are returned."""
        registry = ToolRegistry()
        registry.register([
            make_tool(name="a", project_id=7),
            make_tool(name="b", project_id=8),
            make_tool(name="c", project_id=7),
        ])
        assert list(registry.lookup_by_project(7)) == ["a", "c"]
        assert list(registry.lookup_by_project(8)) == ["b"]
        assert registry.lookup_by_project(9) == {}

    def test_none_returns_all(self, make_tool: Callable[..., ToolDefinition]) -> None:
        """No project returns every tool."""
        registry = ToolRegistry()
        registry.register([make_tool(name="a", project_id=7), make_tool(name="b")])
        assert list(registry.lookup_by_project(None)) == ["a", "b"]


class TestReload:
    """Tests for reload()."""

    def test_reload_without_loader(self) -> None:
        """reload() needs a loader."""
        with pytest.raises(RuntimeError):
            ToolRegistry().reload()

    def test_reload_counts(self, store: DescriptorStore, settings: Settings) -> None:
        """The summary reports counts and names."""
        registry = ToolRegistry(CatalogLoader(store, settings))
        summary = registry.reload()
        assert summary.before_count == 0
        assert summary.after_count == 3
        assert summary.delta == 3
        assert summary.tool_names == ["get_poi_list", "static_point", "search_text"]

    def test_reload_idempotent(self, store: DescriptorStore, settings: Settings) -> None:
        """Reloading an unchanged store keeps the same tools."""
        registry = ToolRegistry(CatalogLoader(store, settings))
        first = registry.reload()
        second = registry.reload()
        assert second.before_count == second.after_count == first.after_count
        assert second.delta == 0
        assert second.tool_names == first.tool_names
        assert second.generation == first.generation + 1

    def test_reload_picks_up_changes(self, store: DescriptorStore, settings: Settings) -> None:
        """Deleted descriptors drop out on reload."""
        registry = ToolRegistry(CatalogLoader(store, settings))
        registry.reload()

        store.set_deleted(store.fetch_by_name("search_text").id)
        summary = registry.reload()
        assert summary.delta == -1
        assert "search_text" not in registry

    def test_reload_with_project_scope(self, store: DescriptorStore, settings: Settings) -> None:
        """A scoped registry loads only that project."""
        registry = ToolRegistry(CatalogLoader(store, settings), project_scope=8)
        registry.reload()
        assert registry.names() == ["search_text"]

    def test_failed_reload_keeps_generation(self, store: DescriptorStore, settings: Settings) -> None:
        """An unreadable store leaves the published catalog in place."""
        registry = ToolRegistry(CatalogLoader(store, settings))
        first = registry.reload()

        store.close()
        summary = registry.reload()
        assert summary.loaded is False
        assert summary.after_count == summary.before_count == 3
        assert summary.delta == 0
        assert summary.generation == first.generation
        assert registry.generation == first.generation
        assert "get_poi_list" in registry

    def test_empty_store_publishes_empty_generation(
        self, store: DescriptorStore, settings: Settings
    ) -> None:
        """A readable store with no active rows empties the catalog."""
        registry = ToolRegistry(CatalogLoader(store, settings))
        first = registry.reload()

        for descriptor in store.fetch_active_all():
            store.set_deleted(descriptor.id)
        summary = registry.reload()
        assert summary.loaded is True
        assert summary.after_count == 0
        assert summary.generation == first.generation + 1
        assert len(registry) == 0


class TestDescriptions:
    """Tests for parameter hints and the info view."""

    def test_hint_unknown_tool(self) -> None:
        """An unknown tool gets a not-found hint."""
        assert ToolRegistry().describe_required_params("ghost") == "Tool not found: ghost"

    def test_hint_no_required(self, make_tool: Callable[..., ToolDefinition]) -> None:
        """A tool without required parameters says so."""
        registry = ToolRegistry()
        registry.register([make_tool(name="a")])
        assert registry.describe_required_params("a") == "This tool has no required parameters"

    def test_hint_lists_required(self, make_tool: Callable[..., ToolDefinition]) -> None:
        """Required parameters are listed with types."""
        registry = ToolRegistry()
        registry.register([
            make_tool(
                name="a",
                parameters={
                    "id": ParameterSpec(required=True),
                    "tags": ParameterSpec(type="array", required=True),
                    "opt": ParameterSpec(),
                },
            )
        ])
        assert registry.describe_required_params("a") == "Required parameters: id (string), tags (array)"

    def test_info(self, make_tool: Callable[..., ToolDefinition]) -> None:
        """The info view includes fields and the hint."""
        registry = ToolRegistry()
        registry.register([make_tool(name="a", project_id=7, data_type="poi", required=("id",))])
        info = registry.info("a")
        assert info["name"] == "a"
        assert info["projectId"] == 7
        assert info["dataType"] == "poi"
        assert info["parameters"]["id"]["required"] is True
        assert info["parameterHint"] == "Required parameters: id (string)"

    def test_describe_required_uses_given_definition(
        self, make_tool: Callable[..., ToolDefinition]
    ) -> None:
        """The hint comes from the definition passed in, not a registry lookup."""
        registry = ToolRegistry()
        registry.register([make_tool(name="a", required=("id",))])
        stale = make_tool(name="a", required=("id", "city"))
        assert describe_required(stale) == "Required parameters: id (string), city (string)"
        assert registry.describe_required_params("a") == "Required parameters: id (string)"

    def test_info_unknown(self) -> None:
        """An unknown tool has no info."""
        assert ToolRegistry().info("ghost") is None
