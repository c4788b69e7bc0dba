"""
Data-type inference from tool names.

Descriptors may leave their data-type blank. The data-type decides how
responses are tagged, so a category is guessed from the tool name using an
ordered keyword table supplied by the settings (see DataTypeRule).

This is a heuristic over human-readable, often non-English names. Keep the
table in configuration and prefer explicit data-types on descriptors.
"""

from typing import Sequence

from toolhub.schema import DataTypeRule


def infer_data_type(
    name: str,
    rules: Sequence[DataTypeRule],
    default: str = "API",
) -> str:
    """
    Pick a data-type category for a tool name.

    Args:
        name: The tool name to scan (matched case-insensitively)
        rules: Ordered keyword table; the first row with a matching keyword wins
        default: Category returned when nothing matches

    Returns:
        The matched category or the default
    """
    lowered = (name or "").lower()
    for rule in rules:
        if any(keyword.lower() in lowered for keyword in rule.keywords):
            return rule.category
    return default
