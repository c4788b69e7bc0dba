"""
Unit tests for free-text argument extraction.

Tests cover:
- Mapping and None passthrough
- key=value tokens with bracketed lists
- Comma and whitespace fallbacks
- Full-width separators and quoting
"""

import pytest

from toolhub.arguments import extract_arguments


class TestPassthrough:
    """Non-text inputs."""

    def test_none(self) -> None:
        """None gives no arguments."""
        assert extract_arguments(None) == {}

    def test_mapping_unchanged(self) -> None:
        """A mapping passes through as is."""
        args = {"id": 5, "tags": ["a"]}
        assert extract_arguments(args) == args

    @pytest.mark.parametrize("text", ["", "   ", "no pairs here"])
    def test_nothing_extracted(self, text: str) -> None:
        """Text without pairs gives no arguments."""
        assert extract_arguments(text) == {}


class TestKeyValueTokens:
    """The primary key=value pattern."""

    def test_comma_separated(self) -> None:
        """Comma-separated pairs are extracted."""
        assert extract_arguments("id=5, name=foo") == {"id": "5", "name": "foo"}

    def test_whitespace_separated(self) -> None:
        """Whitespace-separated pairs are extracted."""
        assert extract_arguments("id=5 name=foo") == {"id": "5", "name": "foo"}

    def test_full_width_comma(self) -> None:
        """The full-width comma separates pairs too."""
        assert extract_arguments("id=5，name=贵安") == {"id": "5", "name": "贵安"}

    def test_bracketed_list(self) -> None:
        """A bracketed value becomes a list."""
        result = extract_arguments("tags=[a,b,c] id=1")
        assert result == {"tags": ["a", "b", "c"], "id": "1"}

    def test_quoted_list_elements(self) -> None:
        result = extract_arguments("""tags=['a', "b",c]""")
        assert result == {"tags": ["a", "b", "c"]}

    def test_empty_list_elements_dropped(self) -> None:
        """Blank list elements are dropped."""
        assert extract_arguments("tags=[a,,b, ]") == {"tags": ["a", "b"]}

    def test_empty_list(self) -> None:
        """Empty brackets give an empty list."""
        assert extract_arguments("tags=[]") == {"tags": []}

    def test_spaces_around_equals(self) -> None:
        """Spaces around the equals sign are allowed."""
        assert extract_arguments("id = 5") == {"id": "5"}

    def test_later_key_wins(self) -> None:
        """A repeated key keeps its last value."""
        assert extract_arguments("id=1 id=2") == {"id": "2"}


class TestFallbackTiers:
    """Inputs the primary pattern cannot read."""

    def test_comma_split_with_bracketed_key(self) -> None:
        """A bracketed key defeats the pattern; the comma split still reads it."""
        assert extract_arguments("[x]=1, [y]=2") == {"[x]": "1", "[y]": "2"}

    def test_whitespace_split(self) -> None:
        """The whitespace split reads tokens the other tiers cannot."""
        assert extract_arguments("=x [k]=v，") == {"[k]": "v"}

    def test_empty_keys_ignored(self) -> None:
        """Pairs with an empty key are skipped."""
        assert extract_arguments("=5") == {}
