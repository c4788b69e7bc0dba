"""
Scope policy for toolhub.

Every invocation passes through the scope policy after its tool is
resolved. A caller may present a project scope; a tool is bound to the
project of its descriptor.

Rules, in order:
    1. No caller scope: allowed (unrestricted caller)
    2. Caller scope equals the tool's project: allowed
    3. Anything else: denied

Decisions are PolicyDecision objects so that the reason and the rule that
fired can be logged and reported.
"""

from toolhub.schema import PolicyDecision, ToolDefinition


class ScopePolicy:
    """
    Evaluates a caller's project scope against a tool.

    Usage:
        decision = ScopePolicy().evaluate(tool, caller_scope=7)
        if not decision.allowed:
            # reject as access denied
    """

    def evaluate(self, tool: ToolDefinition, caller_scope: int | None) -> PolicyDecision:
        """
        Decide whether a caller may invoke a tool.

        Args:
            tool: The resolved tool
            caller_scope: The caller's project scope, or None

        Returns:
            PolicyDecision indicating allow/deny with reason
        """
        if caller_scope is None:
            return PolicyDecision.allow(
                "No project scope supplied",
                rule="unrestricted_caller",
            )

        if tool.project_id == caller_scope:
            return PolicyDecision.allow(
                f"Tool {tool.name} belongs to project {caller_scope}",
                rule="project_match",
            )

        return PolicyDecision.deny(
            f"Tool {tool.name} belongs to project {tool.project_id}, not {caller_scope}",
            rule="project_mismatch",
        )
