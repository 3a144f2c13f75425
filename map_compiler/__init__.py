"""map_compiler - build-time object and enum mapping code generator."""

from __future__ import annotations

from map_compiler.codegen.emitter import Emitter, GeneratedUnit
from map_compiler.codegen.loader import load_units, write_units
from map_compiler.core.cache import PlanCache
from map_compiler.core.config import GeneratorConfig
from map_compiler.core.diagnostics import Diagnostic
from map_compiler.core.directives import MapIgnore, MappingDirective, MapProperty, map_derived_type, map_to
from map_compiler.core.enums import NamingStrategy, Severity
from map_compiler.core.exceptions import (
    ConfigurationError,
    DirectiveError,
    EmissionError,
    MapCompilerError,
    MappingHookError,
    MappingRuntimeError,
    PlanCompilationError,
    ProjectionColumnError,
    TypeGraphError,
    TypeNotFoundError,
    UnknownDerivedTypeError,
    UnmappedEnumValueError,
    UnsupportedTypeError,
)
from map_compiler.core.generator import GenerationResult, MappingGenerator
from map_compiler.core.reader import TypeGraph
from map_compiler.runtime import Projection

__all__ = [
    # Directives
    "map_to",
    "map_derived_type",
    "MapProperty",
    "MapIgnore",
    "MappingDirective",
    "NamingStrategy",
    # Type graph
    "TypeGraph",
    # Generator
    "MappingGenerator",
    "GenerationResult",
    "GeneratorConfig",
    "PlanCache",
    "Diagnostic",
    "Severity",
    # Codegen
    "Emitter",
    "GeneratedUnit",
    "load_units",
    "write_units",
    # Runtime
    "Projection",
    # Exceptions
    "MapCompilerError",
    "TypeGraphError",
    "TypeNotFoundError",
    "UnsupportedTypeError",
    "DirectiveError",
    "PlanCompilationError",
    "EmissionError",
    "ConfigurationError",
    "MappingRuntimeError",
    "UnmappedEnumValueError",
    "UnknownDerivedTypeError",
    "MappingHookError",
    "ProjectionColumnError",
]
