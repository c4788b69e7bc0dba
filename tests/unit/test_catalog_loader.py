"""
Unit tests for the catalog loader.

Tests cover:
- URL resolution against the base URL
- Parameter schema parsing
- Data-type inference
- Catalog loading from the store (deleted rows, scope, fail-soft)
"""

import json
from pathlib import Path
from typing import Callable

import pytest

from toolhub.catalog import CatalogLoader, infer_data_type, parse_parameters, resolve_url
from toolhub.errors import StorageReadError, StorageWriteError
from toolhub.schema import DEFAULT_DATA_TYPE_RULES, DataTypeRule, Descriptor, Settings
from toolhub.store import DescriptorStore


class TestResolveUrl:
    """Tests for resolve_url."""

    def test_relative_path_joined(self) -> None:
        """A relative path is appended to the base URL."""
        assert resolve_url("http://host:1", "foo/bar") == "http://host:1/foo/bar"

    def test_single_slash_between(self) -> None:
        """Duplicate slashes at the seam collapse to one."""
        assert resolve_url("http://host:1/", "/foo/bar") == "http://host:1/foo/bar"
        assert resolve_url("http://host:1/api", "x") == "http://host:1/api/x"

    def test_absolute_url_verbatim(self) -> None:
        """A path with a scheme is used as is."""
        assert resolve_url("http://host:1", "http://other/x") == "http://other/x"
        assert resolve_url("http://host:1", "https://other/x?q=1") == "https://other/x?q=1"

    def test_blank_path(self) -> None:
        """A missing path resolves to the base URL."""
        assert resolve_url("http://host:1", None) == "http://host:1/"


class TestParseParameters:
    """Tests for parse_parameters."""

    def test_parses_entries_in_order(self) -> None:
        """Entries keep their order, types and defaults."""
        raw = json.dumps([
            {"paramName": "id", "paramType": "integer", "paramDesc": "Id", "required": True},
            {"paramName": "tags", "paramType": "array", "exampleValue": ["a"]},
        ])
        params = parse_parameters(raw)
        assert list(params) == ["id", "tags"]
        assert params["id"].type == "integer"
        assert params["id"].required is True
        assert params["tags"].required is False
        assert params["tags"].default == ["a"]

    def test_defaults_for_missing_fields(self) -> None:
        """Missing type and description get defaults."""
        params = parse_parameters('[{"paramName": "q"}]')
        assert params["q"].type == "string"
        assert params["q"].description == ""

    def test_required_strings(self) -> None:
        """String forms of required are understood."""
        raw = json.dumps([
            {"paramName": "a", "required": "true"},
            {"paramName": "b", "required": "1"},
            {"paramName": "c", "required": "no"},
        ])
        params = parse_parameters(raw)
        assert [params[p].required for p in "abc"] == [True, True, False]

    def test_blank_names_skipped(self) -> None:
        """Entries without a name are skipped."""
        params = parse_parameters('[{"paramName": ""}, {"paramType": "string"}, {"paramName": "ok"}]')
        assert list(params) == ["ok"]

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_schema(self, raw: str | None) -> None:
        """Blank text means no parameters."""
        assert parse_parameters(raw) == {}

    @pytest.mark.parametrize("raw", ["not json", '{"paramName": "x"}', '["x"]'])
    def test_invalid_schema_raises(self, raw: str) -> None:
        """Malformed schemas raise ValueError."""
        with pytest.raises(ValueError):
            parse_parameters(raw)


class TestInferDataType:
    """Tests for keyword-table inference."""

    def test_poi_before_point(self) -> None:
        """POI names are not mistaken for points."""
        assert infer_data_type("get_poi_list", DEFAULT_DATA_TYPE_RULES) == "poi"
        assert infer_data_type("nearest_point", DEFAULT_DATA_TYPE_RULES) == "point"

    def test_case_insensitive(self) -> None:
        """Keywords match in any case."""
        assert infer_data_type("LoadLegendItems", DEFAULT_DATA_TYPE_RULES) == "legend"

    def test_non_english_keywords(self) -> None:
        """Chinese keywords are matched."""
        assert infer_data_type("查询轨迹", DEFAULT_DATA_TYPE_RULES) == "path"

    def test_default_when_nothing_matches(self) -> None:
        """Unmatched names get the default category."""
        assert infer_data_type("do_something", DEFAULT_DATA_TYPE_RULES) == "API"
        assert infer_data_type("do_something", DEFAULT_DATA_TYPE_RULES, default="raw") == "raw"

    def test_first_rule_wins(self) -> None:
        """The first matching rule decides."""
        rules = [
            DataTypeRule(category="first", keywords=["abc"]),
            DataTypeRule(category="second", keywords=["abc"]),
        ]
        assert infer_data_type("xabcx", rules) == "first"


class TestCatalogLoader:
    """Tests for CatalogLoader against a real store."""

    def test_deleted_descriptors_excluded(self, store: DescriptorStore, settings: Settings) -> None:
        """Deleted descriptors are not loaded."""
        tools = CatalogLoader(store, settings).load_catalog()
        names = [t.name for t in tools]
        assert names == ["get_poi_list", "static_point", "search_text"]
        assert "retired_tool" not in names

    def test_project_scope(self, store: DescriptorStore, settings: Settings) -> None:
        """A scope loads only that project."""
        tools = CatalogLoader(store, settings).load_catalog(project_scope=8)
        assert [t.name for t in tools] == ["search_text"]

    def test_tool_fields(self, store: DescriptorStore, settings: Settings) -> None:
        """Descriptors become fully resolved definitions."""
        tools = {t.name: t for t in CatalogLoader(store, settings).load_catalog()}

        poi = tools["get_poi_list"]
        assert poi.url == "http://api.test:8080/api/poi/list"
        assert poi.method == "GET"
        assert poi.data_type == "poi"
        assert poi.required_parameters() == ["id"]
        assert poi.descriptor_id is not None

        text = tools["search_text"]
        assert text.url == "http://other.test/x"
        assert text.method == "POST"
        assert text.data_type == "text"

        assert tools["static_point"].is_static

    def test_marks_loaded_descriptors_registered(
        self, store: DescriptorStore, settings: Settings
    ) -> None:
        """Loaded descriptors are flagged as registered."""
        CatalogLoader(store, settings).load_catalog(project_scope=7)
        assert [d.name for d in store.fetch_registered()] == ["get_poi_list", "static_point"]

    def test_inference_disabled(self, store: DescriptorStore, settings: Settings) -> None:
        """With inference off, a blank data-type stays blank."""
        no_infer = settings.model_copy(update={"infer_data_type": False})
        tools = {t.name: t for t in CatalogLoader(store, no_infer).load_catalog()}
        assert tools["get_poi_list"].data_type is None
        assert tools["static_point"].data_type == "point"

    def test_bad_parameter_schema_keeps_tool(self, store: DescriptorStore, settings: Settings) -> None:
        """A bad schema empties only that tool's parameters."""
        store.add_descriptor(Descriptor(name="broken", path="/b", request_params="{oops"))
        tools = {t.name: t for t in CatalogLoader(store, settings).load_catalog()}
        assert "broken" in tools
        assert tools["broken"].parameters == {}

    def test_store_failure_yields_none(self, settings: Settings) -> None:
        """An unreadable store is reported as None, not as an empty catalog."""
        class FailingSource:
            def fetch_active_all(self) -> list[Descriptor]:
                raise StorageReadError(operation="fetch_active_all", underlying_error="down")

            def fetch_active_by_scope(self, project_id: int) -> list[Descriptor]:
                raise StorageReadError(operation="fetch_active_by_scope", underlying_error="down")

            def mark_registered(self, ids: list[int]) -> int:
                return 0

        loader = CatalogLoader(FailingSource(), settings)
        assert loader.load_catalog() is None
        assert loader.load_catalog(project_scope=7) is None

    def test_empty_store_yields_empty_list(self, temp_dir: Path, settings: Settings) -> None:
        """A readable store without descriptors gives an empty catalog."""
        with DescriptorStore(temp_dir / "empty.db") as empty:
            assert CatalogLoader(empty, settings).load_catalog() == []

    def test_malformed_row_does_not_abort_load(
        self,
        store: DescriptorStore,
        settings: Settings,
        insert_raw_row: Callable[..., None],
    ) -> None:
        """One invalid row is skipped; the rest of the catalog still loads."""
        insert_raw_row(api_name="", api_path="/blank")
        tools = CatalogLoader(store, settings).load_catalog()
        assert [t.name for t in tools] == ["get_poi_list", "static_point", "search_text"]

    def test_read_only_loader_leaves_flags(self, store: DescriptorStore, settings: Settings) -> None:
        """mark_registered=False loads the catalog without flagging rows."""
        tools = CatalogLoader(store, settings, mark_registered=False).load_catalog()
        assert len(tools) == 3
        assert store.fetch_registered() == []

    def test_mark_failure_keeps_catalog(self, settings: Settings) -> None:
        """A failed flag update still returns the catalog."""
        class ReadOnlySource:
            def fetch_active_all(self) -> list[Descriptor]:
                return [Descriptor(id=1, name="only", path="/o")]

            def fetch_active_by_scope(self, project_id: int) -> list[Descriptor]:
                return []

            def mark_registered(self, ids: list[int]) -> int:
                raise StorageWriteError(operation="mark_registered", underlying_error="read-only")

        tools = CatalogLoader(ReadOnlySource(), settings).load_catalog()
        assert [t.name for t in tools] == ["only"]

    def test_deleted_rows_filtered_from_any_source(self, settings: Settings) -> None:
        """Deleted rows are dropped even if the source returns them."""
        class UnfilteredSource:
            def fetch_active_all(self) -> list[Descriptor]:
                return [
                    Descriptor(id=1, name="live", path="/l"),
                    Descriptor(id=2, name="dead", path="/d", del_flag="2"),
                ]

            def fetch_active_by_scope(self, project_id: int) -> list[Descriptor]:
                return []

            def mark_registered(self, ids: list[int]) -> int:
                return len(ids)

        tools = CatalogLoader(UnfilteredSource(), settings).load_catalog()
        assert [t.name for t in tools] == ["live"]
