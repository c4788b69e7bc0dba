"""
Free-text argument extraction for toolhub.

Some clients send tool arguments as a sentence-like string instead of a
JSON object, e.g. ``"id=5, name=foo"`` or ``"tags=[a,b,c] id=1"``.
extract_arguments() turns such text into a mapping using three tiers,
each tried only when the previous one found nothing:

    1. key=value tokens separated by whitespace, ',' or '，', where a value
       may be a bracketed list such as [a,'b',"c"]
    2. split on ',' / '，', then each segment on its first '='
    3. split on whitespace, then each token on its first '='

Bracketed values become lists of strings (quotes stripped, empty elements
dropped); all other values are trimmed strings. Empty keys are ignored.
"""

import re
from typing import Any, Mapping

_SEPARATORS = ",，"

_PAIR_PATTERN = re.compile(
    r"""
    (?P<key>[^\s,，=\[\]]+)          # key: no separators, '=' or brackets
    \s*=\s*
    (?P<value>\[[^\]]*\]|[^\s,，]*)  # bracketed list or a bare token
    """,
    re.VERBOSE,
)
_COMMA_SPLIT = re.compile(r"[,，]")
_ELEMENT_QUOTES = "'\""


def _parse_list(raw: str) -> list[str]:
    """Parse "[a, 'b', \"c\"]" into ["a", "b", "c"]."""
    inner = raw.strip()[1:-1]
    items = []
    for element in _COMMA_SPLIT.split(inner):
        element = element.strip().strip(_ELEMENT_QUOTES).strip()
        if element:
            items.append(element)
    return items


def _parse_value(raw: str) -> str | list[str]:
    value = raw.strip()
    if value.startswith("[") and value.endswith("]"):
        return _parse_list(value)
    return value


def _split_pairs(segments: list[str]) -> dict[str, Any]:
    """Split each segment on its first '=' and collect non-empty keys."""
    result: dict[str, Any] = {}
    for segment in segments:
        if "=" not in segment:
            continue
        key, _, value = segment.partition("=")
        key = key.strip()
        if key:
            result[key] = _parse_value(value)
    return result


def _tier_pattern(text: str) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for match in _PAIR_PATTERN.finditer(text):
        result[match.group("key")] = _parse_value(match.group("value"))
    return result


def _tier_commas(text: str) -> dict[str, Any]:
    return _split_pairs(_COMMA_SPLIT.split(text))


def _tier_whitespace(text: str) -> dict[str, Any]:
    tokens = [token.rstrip(_SEPARATORS) for token in text.split()]
    return _split_pairs(tokens)


def extract_arguments(source: str | Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Turn invocation arguments into a mapping.

    Args:
        source: A mapping (returned as a dict unchanged), free text, or None

    Returns:
        Argument name to value; {} when nothing could be extracted

    Examples:
        >>> extract_arguments("id=5, name=foo")
        {'id': '5', 'name': 'foo'}
        >>> extract_arguments("tags=[a,b,c] id=1")
        {'tags': ['a', 'b', 'c'], 'id': '1'}
    """
    if source is None:
        return {}
    if isinstance(source, Mapping):
        return dict(source)

    text = source.strip()
    if not text:
        return {}

    for tier in (_tier_pattern, _tier_commas, _tier_whitespace):
        pairs = tier(text)
        if pairs:
            return pairs
    return {}
