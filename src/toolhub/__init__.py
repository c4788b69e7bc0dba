"""
toolhub - Serve a database-driven catalog of HTTP APIs as invocable tools.

toolhub turns API descriptors authored in a relational store into tools
exposed over a JSON-RPC 2.0 tool protocol (initialize, tools/list,
tools/call, tools/reload). It provides:
- A catalog loader that derives tool definitions from active descriptors
- A copy-on-write tool registry with scope filtering and hot reload
- An async invocation engine that validates, dispatches and normalizes calls
- A FastAPI server and a Typer CLI

Example usage:
    $ toolhub serve --config toolhub.yaml
    $ toolhub list-tools --project 7
    $ toolhub call get_poi_list "city=guian, limit=10"
"""

__version__ = "0.1.0"
__author__ = "toolhub Contributors"

__all__ = [
    "__version__",
    "__author__",
]
