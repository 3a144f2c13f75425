"""Mapping layer - match members and values, build and validate plans."""

from __future__ import annotations

from map_compiler.mapping.builder import PlanBuilder
from map_compiler.mapping.enum_matcher import EnumMatcher, match_enum_values
from map_compiler.mapping.index import DirectiveIndex
from map_compiler.mapping.plan import (
    DispatchEntry,
    EnumMappingPlan,
    EnumValueMapping,
    MappingPlan,
    MatchResult,
    PropertyMapping,
    RoutineRef,
    ValueConversion,
)
from map_compiler.mapping.property_matcher import PropertyMatcher
from map_compiler.mapping.validation import PlanValidator

__all__ = [
    "PropertyMatcher",
    "EnumMatcher",
    "match_enum_values",
    "PlanBuilder",
    "PlanValidator",
    "DirectiveIndex",
    "MappingPlan",
    "EnumMappingPlan",
    "PropertyMapping",
    "EnumValueMapping",
    "ValueConversion",
    "RoutineRef",
    "DispatchEntry",
    "MatchResult",
]
