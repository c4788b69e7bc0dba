"""
Policy module for toolhub.

Project-scope authorization for tool invocations. A caller bound to a
project may only invoke that project's tools; callers without a scope are
unrestricted.

Key concepts:
    - PolicyDecision: The result of evaluating a call (ALLOW/DENY + reason)
    - ScopePolicy: Compares the caller's scope with the tool's project
"""

from toolhub.policy.engine import ScopePolicy

__all__ = [
    "ScopePolicy",
]
