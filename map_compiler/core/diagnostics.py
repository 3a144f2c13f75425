"""Diagnostic records and the rule catalogue.

Identifiers are stable and namespaced by category: ``MAPnnn`` for object
mapping rules, ``ENUMnnn`` for enum mapping rules.
"""

from __future__ import annotations

from dataclasses import dataclass

from map_compiler.core.descriptors import SourceLocation
from map_compiler.core.enums import DiagnosticCategory, Severity


@dataclass(frozen=True)
class Diagnostic:
    """A reported problem, ready for the build diagnostics surface."""

    id: str
    severity: Severity
    category: DiagnosticCategory
    message: str
    location: SourceLocation

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def sort_key(self) -> tuple[str, int, str, str]:
        return (self.location.path or "", self.location.line or 0, self.id, self.message)

    def __str__(self) -> str:
        return f"{self.location}: {self.severity.value} {self.id}: {self.message}"


@dataclass(frozen=True)
class DiagnosticDescriptor:
    """Template for one rule."""

    id: str
    title: str
    message_format: str
    category: DiagnosticCategory
    severity: Severity

    def create(self, location: SourceLocation, *args: object) -> Diagnostic:
        return Diagnostic(
            id=self.id,
            severity=self.severity,
            category=self.category,
            message=self.message_format.format(*args),
            location=location,
        )


_OBJECT = DiagnosticCategory.OBJECT_MAPPING
_ENUM = DiagnosticCategory.ENUM_MAPPING

# --- Object mapping ---

TYPE_NOT_EXTENSIBLE = DiagnosticDescriptor(
    id="MAP001",
    title="Mapped type must be declared at module scope",
    message_format="Type '{0}' must be declared at module scope to be imported by generated code",
    category=_OBJECT,
    severity=Severity.ERROR,
)

TARGET_MUST_BE_OBJECT = DiagnosticDescriptor(
    id="MAP002",
    title="Target type must be a class, record or struct",
    message_format="Target type '{0}' must be a class, record or struct, but is a {1}",
    category=_OBJECT,
    severity=Severity.ERROR,
)

RENAME_TARGET_NOT_FOUND = DiagnosticDescriptor(
    id="MAP003",
    title="MapProperty target member not found",
    message_format=(
        "Member '{0}' with MapProperty('{1}') names target member '{1}' "
        "which does not exist on target type '{2}'"
    ),
    category=_OBJECT,
    severity=Severity.ERROR,
)

REQUIRED_MEMBER_NOT_MAPPED = DiagnosticDescriptor(
    id="MAP004",
    title="Required member on target type has no mapping",
    message_format="Required member '{0}' on target type '{1}' has no mapping from source type '{2}'",
    category=_OBJECT,
    severity=Severity.ERROR,
)

REQUIRED_MEMBER_IGNORED = DiagnosticDescriptor(
    id="MAP004",
    title="Required member on target type has no mapping",
    message_format=(
        "Required member '{0}' on target type '{1}' is ignored but its constructor needs it; "
        "give it a default or map it from source type '{2}'"
    ),
    category=_OBJECT,
    severity=Severity.ERROR,
)

HOOK_NOT_FOUND = DiagnosticDescriptor(
    id="MAP005",
    title="Mapping hook not found",
    message_format="{0} hook '{1}' is not a method of source type '{2}'",
    category=_OBJECT,
    severity=Severity.ERROR,
)

DUPLICATE_DIRECTIVE = DiagnosticDescriptor(
    id="MAP006",
    title="Duplicate mapping directive",
    message_format="Mapping from '{0}' to '{1}' is declared more than once ({2})",
    category=_OBJECT,
    severity=Severity.ERROR,
)

AMBIGUOUS_TARGET_MEMBER = DiagnosticDescriptor(
    id="MAP007",
    title="Target member matched by several source members",
    message_format="Target member '{0}' on '{1}' is matched by several source members: {2}",
    category=_OBJECT,
    severity=Severity.ERROR,
)

DERIVED_TYPE_NOT_MAPPED = DiagnosticDescriptor(
    id="MAP008",
    title="Derived type pair has no direct mapping",
    message_format="Derived type mapping '{0}' -> '{1}' of '{2}' requires its own map_to directive",
    category=_OBJECT,
    severity=Severity.ERROR,
)

PROJECTION_UNSUPPORTED = DiagnosticDescriptor(
    id="MAP009",
    title="Projection not supported for this mapping",
    message_format="Projection from '{0}' to '{1}' is not supported: {2}",
    category=_OBJECT,
    severity=Severity.ERROR,
)

MEMBER_NOT_CONVERTIBLE = DiagnosticDescriptor(
    id="MAP010",
    title="Member types are not convertible",
    message_format="Member '{0}' ({1}) cannot be converted to '{2}' ({3}) on '{4}'; member is skipped",
    category=_OBJECT,
    severity=Severity.WARNING,
)

MEMBER_NOT_ASSIGNABLE = DiagnosticDescriptor(
    id="MAP011",
    title="Target member cannot be assigned after construction",
    message_format="Target member '{0}' on '{1}' cannot be assigned after construction ({2})",
    category=_OBJECT,
    severity=Severity.ERROR,
)

DERIVED_TYPE_MISMATCH = DiagnosticDescriptor(
    id="MAP012",
    title="Derived type does not derive from the mapped base",
    message_format="Derived type '{0}' does not derive from '{1}'",
    category=_OBJECT,
    severity=Severity.ERROR,
)

UNRESOLVED_TYPE = DiagnosticDescriptor(
    id="MAP014",
    title="Directive references an unknown type",
    message_format="Type '{0}' referenced by a directive on '{1}' is not part of the type graph",
    category=_OBJECT,
    severity=Severity.ERROR,
)

PLAN_FAILED = DiagnosticDescriptor(
    id="MAP099",
    title="Mapping could not be planned",
    message_format="Mapping from '{0}' to '{1}' could not be planned: {2}",
    category=_OBJECT,
    severity=Severity.ERROR,
)

# --- Enum mapping ---

TARGET_MUST_BE_ENUM = DiagnosticDescriptor(
    id="ENUM001",
    title="Target type must be an enum",
    message_format="Target type '{0}' of enum '{1}' must be an enum, but is a {2}",
    category=_ENUM,
    severity=Severity.ERROR,
)

UNMAPPED_ENUM_VALUE = DiagnosticDescriptor(
    id="ENUM002",
    title="Source enum value has no matching target value",
    message_format="Enum value '{0}.{1}' has no matching value in '{2}'",
    category=_ENUM,
    severity=Severity.WARNING,
)
