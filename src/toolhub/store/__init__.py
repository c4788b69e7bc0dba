"""
Storage module for toolhub.

This module provides the SQLite-backed descriptor store the catalog loader
reads from.

Tables:
    - api_info: API descriptors (name, path, method, kind, parameter schema,
      project scope, deletion and registration flags)

The store is read-mostly: toolhub never authors descriptors in production,
it only flags the ones it has registered as tools.
"""

from toolhub.store.db import DescriptorStore, row_to_descriptor

__all__ = [
    "DescriptorStore",
    "row_to_descriptor",
]
