"""
Catalog module for toolhub.

Turns active API descriptors into ToolDefinitions.

Key Components:
    - CatalogLoader: Reads descriptors and builds the catalog
    - resolve_url: Joins descriptor paths to the base URL
    - parse_parameters: Parses the JSON parameter schema
    - infer_data_type: Keyword-table data-type inference
"""

from toolhub.catalog.inference import infer_data_type
from toolhub.catalog.loader import CatalogLoader, parse_parameters, resolve_url

__all__ = [
    "CatalogLoader",
    "infer_data_type",
    "parse_parameters",
    "resolve_url",
]
