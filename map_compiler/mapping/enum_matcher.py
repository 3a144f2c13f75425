"""Enum matcher - pairs enum values by name.

Per source value, in declaration order: exact match, then case-insensitive
match, then the other members of the value's equivalence group in group
order. Values with no counterpart are kept, unmatched, so the validator can
warn about them.
"""

from __future__ import annotations

from collections.abc import Sequence

from map_compiler.core.config import DEFAULT_EQUIVALENCE_GROUPS
from map_compiler.core.descriptors import TypeDescriptor
from map_compiler.core.enums import MatchKind
from map_compiler.mapping.plan import EnumValueMapping


def match_enum_values(
    source_values: Sequence[str],
    target_values: Sequence[str],
    groups: Sequence[Sequence[str]] = DEFAULT_EQUIVALENCE_GROUPS,
) -> tuple[EnumValueMapping, ...]:
    """Build the value table for a pair of enums.

    Examples:
        >>> [m.target_value for m in match_enum_values(["Active", "none"], ["ACTIVE", "Unknown"])]
        ['ACTIVE', 'Unknown']
    """
    folded: dict[str, str] = {}
    for value in target_values:
        folded.setdefault(value.casefold(), value)

    mappings = []
    for value in source_values:
        if value in target_values:
            mappings.append(EnumValueMapping(value, value, MatchKind.EXACT))
        elif value.casefold() in folded:
            mappings.append(EnumValueMapping(value, folded[value.casefold()], MatchKind.CASE_INSENSITIVE))
        else:
            equivalent = _equivalent(value, folded, groups)
            if equivalent is None:
                mappings.append(EnumValueMapping(value))
            else:
                mappings.append(EnumValueMapping(value, equivalent, MatchKind.EQUIVALENCE))
    return tuple(mappings)


def _equivalent(value: str, folded: dict[str, str], groups: Sequence[Sequence[str]]) -> str | None:
    key = value.casefold()
    for group in groups:
        members = [g.casefold() for g in group]
        if key not in members:
            continue
        for other in members:
            if other != key and other in folded:
                return folded[other]
    return None


class EnumMatcher:
    """Matches the values of two enum descriptors.

    Args:
        groups: Equivalence groups for "empty state" values. Defaults to
            ``None`` / ``Unknown`` / ``Default``.
    """

    def __init__(self, groups: Sequence[Sequence[str]] = DEFAULT_EQUIVALENCE_GROUPS) -> None:
        self._groups = tuple(tuple(g) for g in groups)

    @property
    def groups(self) -> tuple[tuple[str, ...], ...]:
        return self._groups

    def match(self, source: TypeDescriptor, target: TypeDescriptor) -> tuple[EnumValueMapping, ...]:
        return match_enum_values(source.enum_values, target.enum_values, self._groups)
