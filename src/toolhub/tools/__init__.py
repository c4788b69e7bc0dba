"""
Tools module for toolhub.

This module holds the runtime side of the catalog: the registry that
indexes the current generation of tool definitions, and the HTTP
dispatcher that performs outbound calls.

Architecture:
    - ToolRegistry: Copy-on-write index over the current Catalog
    - Catalog: One immutable generation of tool definitions
    - HttpDispatcher: Async outbound calls (GET query / JSON body)
    - ToolOutput: Standardized result of one dispatch
"""

from toolhub.tools.base import ToolOutput
from toolhub.tools.http import HttpDispatcher, build_query_params
from toolhub.tools.registry import Catalog, ReloadSummary, ToolRegistry, describe_required

__all__ = [
    "Catalog",
    "HttpDispatcher",
    "ReloadSummary",
    "ToolOutput",
    "ToolRegistry",
    "build_query_params",
    "describe_required",
]
