"""map_compiler exception hierarchy.

Compiler-side errors never escape a generation pass: the generator turns them
into diagnostics attached to the offending directive. Runtime errors are raised
by generated code and are part of its contract with callers.
"""

from __future__ import annotations

from typing import Any


class MapCompilerError(Exception):
    """Base exception for all map_compiler errors."""


# --- Type graph ---


class TypeGraphError(MapCompilerError):
    """Base for type graph errors."""


class TypeNotFoundError(TypeGraphError):
    """Raised when a type reference cannot be resolved in the graph."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"Type not found in graph: '{type_name}'")


class UnsupportedTypeError(TypeGraphError):
    """Raised when a Python object cannot be described as a mappable type."""

    def __init__(self, type_name: str, detail: str) -> None:
        self.type_name = type_name
        super().__init__(f"Cannot describe '{type_name}': {detail}")


# --- Directives ---


class DirectiveError(MapCompilerError):
    """Raised when a directive is declared with invalid arguments."""


# --- Planning ---


class PlanCompilationError(MapCompilerError):
    """Raised when a MappingPlan cannot be compiled for a directive."""


# --- Emission ---


class EmissionError(MapCompilerError):
    """Raised when a plan cannot be rendered into source code."""


# --- Configuration ---


class ConfigurationError(MapCompilerError):
    """Raised for invalid generator configuration."""

    def __init__(self, source: str, detail: str) -> None:
        self.source = source
        super().__init__(f"Invalid configuration in {source}: {detail}")


# --- Runtime (raised by generated code) ---


class MappingRuntimeError(MapCompilerError):
    """Base for failures raised by generated mapping routines."""


class UnmappedEnumValueError(MappingRuntimeError, ValueError):
    """Raised when an enum value has no counterpart in the target enum."""

    def __init__(self, source_enum: str, target_enum: str, value: Any) -> None:
        self.source_enum = source_enum
        self.target_enum = target_enum
        self.value = value
        super().__init__(
            f"Unmapped enum value {value!r}: {source_enum} has no mapping to {target_enum}"
        )


class UnknownDerivedTypeError(MappingRuntimeError, TypeError):
    """Raised when a polymorphic dispatch receives an undeclared subtype."""

    def __init__(self, base_type: str, runtime_type: str) -> None:
        self.base_type = base_type
        self.runtime_type = runtime_type
        super().__init__(
            f"Unknown derived type '{runtime_type}' for polymorphic mapping of {base_type}"
        )


class MappingHookError(MappingRuntimeError):
    """Raised when a before_map hook rejects the source value."""

    def __init__(self, hook: str, detail: str) -> None:
        self.hook = hook
        super().__init__(f"Mapping aborted by hook '{hook}': {detail}")


class ProjectionColumnError(MappingRuntimeError):
    """Raised when a row lacks columns a projection selects."""

    def __init__(self, target: str, missing: list[str]) -> None:
        self.target = target
        self.missing = missing
        super().__init__(f"Row cannot be projected to {target}: missing columns {', '.join(missing)}")
