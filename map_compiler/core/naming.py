"""Member name strategies and generated routine naming."""

from __future__ import annotations

import re
from functools import lru_cache

from map_compiler.core.enums import NamingStrategy

# Word boundaries: lower/digit followed by upper, or an acronym followed by a word
_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def _split_words(name: str, separator: str) -> str:
    return _WORD_BOUNDARY.sub(separator, name).lower()


@lru_cache(maxsize=1024)
def convert_name(name: str, strategy: NamingStrategy) -> str:
    """Convert a member name according to a naming strategy.

    Examples:
        >>> convert_name("FirstName", NamingStrategy.LOWER_FIRST)
        'firstName'
        >>> convert_name("FirstName", NamingStrategy.UNDERSCORE)
        'first_name'
        >>> convert_name("FirstName", NamingStrategy.HYPHEN)
        'first-name'
    """
    if not name or strategy is NamingStrategy.IDENTITY:
        return name
    if strategy is NamingStrategy.LOWER_FIRST:
        return name[0].lower() + name[1:]
    if strategy is NamingStrategy.UNDERSCORE:
        return _split_words(name, "_")
    return _split_words(name, "-").replace("_", "-")


def names_match(source_name: str, target_name: str, strategy: NamingStrategy) -> bool:
    """Case-insensitive comparison after transforming the source name."""
    return convert_name(source_name, strategy).casefold() == target_name.casefold()


def snake_case(name: str) -> str:
    """PascalCase type name to a snake_case identifier fragment."""
    return _split_words(name, "_")


def routine_name(source_name: str, target_name: str) -> str:
    """Name of the forward mapping routine for a type pair."""
    return f"map_{snake_case(source_name)}_to_{snake_case(target_name)}"


def update_routine_name(source_name: str, target_name: str) -> str:
    """Name of the in-place update routine for a type pair."""
    return f"update_{snake_case(target_name)}_from_{snake_case(source_name)}"


def projection_routine_name(source_name: str, target_name: str) -> str:
    """Name of the projection factory for a type pair."""
    return f"project_{snake_case(source_name)}_to_{snake_case(target_name)}"


def helper_routine_name(source_name: str, target_name: str) -> str:
    """Name of a private helper for an implicitly planned pair."""
    return "_" + routine_name(source_name, target_name)
