"""
Pytest configuration and fixtures for toolhub tests.

This module provides shared fixtures used across unit and integration
tests: settings, a seeded descriptor store, and helpers for building tool
definitions and mock HTTP clients.
"""

import json
import sqlite3
import tempfile
from contextlib import closing
from pathlib import Path
from typing import Any, Callable, Generator

import httpx
import pytest

from toolhub.schema import Descriptor, ParameterSpec, Settings, ToolDefinition
from toolhub.store import DescriptorStore

BASE_URL = "http://api.test:8080"

POI_PARAMS = json.dumps([
    {"paramName": "id", "paramType": "string", "paramDesc": "POI id", "required": True},
    {"paramName": "city", "paramType": "string", "paramDesc": "City name", "required": False},
])


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_dir: Path) -> Settings:
    """Settings pointing at a database inside the temp directory."""
    return Settings(
        base_url=BASE_URL,
        database_path=str(temp_dir / "toolhub.db"),
        request_timeout_seconds=5,
    )


@pytest.fixture
def sample_descriptors() -> list[Descriptor]:
    """Descriptors covering HTTP, static and deleted rows across two projects."""
    return [
        Descriptor(
            name="get_poi_list",
            path="/api/poi/list",
            kind="SQL",
            method="get",
            project_id=7,
            description="List points of interest",
            request_params=POI_PARAMS,
        ),
        Descriptor(
            name="static_point",
            path="/unused",
            kind="STATIC",
            mock_payload='{"a":1}',
            project_id=7,
            data_type="point",
            description="Canned point",
        ),
        Descriptor(
            name="search_text",
            path="http://other.test/x",
            kind="MOCK",
            method="POST",
            project_id=8,
            data_type="text",
        ),
        Descriptor(
            name="retired_tool",
            path="/old",
            project_id=7,
            del_flag="2",
        ),
    ]


@pytest.fixture
def store(settings: Settings, sample_descriptors: list[Descriptor]) -> Generator[DescriptorStore, None, None]:
    """A descriptor store seeded with sample_descriptors."""
    database = DescriptorStore(settings.database_path)
    for descriptor in sample_descriptors:
        database.add_descriptor(descriptor)
    yield database
    database.close()


@pytest.fixture
def insert_raw_row(settings: Settings) -> Callable[..., None]:
    """Insert an api_info row directly, bypassing Descriptor validation."""

    def _insert(**columns: Any) -> None:
        names = ", ".join(columns)
        marks = ", ".join("?" for _ in columns)
        with closing(sqlite3.connect(settings.database_path)) as conn:
            conn.execute(f"INSERT INTO api_info ({names}) VALUES ({marks})", tuple(columns.values()))
            conn.commit()

    return _insert


@pytest.fixture
def make_tool() -> Callable[..., ToolDefinition]:
    """Factory for ToolDefinitions with sensible defaults."""

    def _make(
        name: str = "get_item",
        url: str = f"{BASE_URL}/api/item",
        required: tuple[str, ...] = (),
        **overrides: Any,
    ) -> ToolDefinition:
        parameters = {param: ParameterSpec(required=True) for param in required}
        fields: dict[str, Any] = {
            "name": name,
            "url": url,
            "method": "GET",
            "parameters": parameters,
        }
        fields.update(overrides)
        return ToolDefinition(**fields)

    return _make


@pytest.fixture
def recorded_requests() -> list[httpx.Request]:
    """Requests seen by mock_client."""
    return []


@pytest.fixture
def mock_client(recorded_requests: list[httpx.Request]) -> Callable[..., httpx.AsyncClient]:
    """
    Factory for AsyncClients backed by httpx.MockTransport.

    The default handler echoes a JSON object; pass a handler to override.
    Every request is appended to recorded_requests.
    """

    def _default(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True})

    def _make(handler: Callable[[httpx.Request], httpx.Response] | None = None) -> httpx.AsyncClient:
        respond = handler or _default

        def _record(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            return respond(request)

        return httpx.AsyncClient(transport=httpx.MockTransport(_record))

    return _make
