"""Mapping plan data classes.

Frozen dataclasses representing compiled mapping plans. One plan is built per
directive; the validator checks it and the emitter renders it. Plans hold
tuples only, so identical inputs give equal (and hashable) plans.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from map_compiler.core.descriptors import GenericParameter, TypeDescriptor, TypeRef
from map_compiler.core.directives import MappingDirective
from map_compiler.core.enums import ContainerKind, ConversionKind, MatchKind


@dataclass(frozen=True)
class RoutineRef:
    """A generated routine a plan calls or defines.

    ``home_module`` is the namespace whose unit holds the routine. Helper
    routines are private to the unit of the plan that uses them.
    """

    name: str
    source: str
    target: str
    home_module: str
    helper: bool = False


@dataclass(frozen=True)
class ValueConversion:
    """How one source value becomes a target value."""

    kind: ConversionKind
    routine: RoutineRef | None = None
    element: ValueConversion | None = None
    container: ContainerKind | None = None
    nullable: bool = False


DIRECT = ValueConversion(ConversionKind.DIRECT)
UNCONVERTIBLE = ValueConversion(ConversionKind.UNCONVERTIBLE)


@dataclass(frozen=True)
class PropertyMapping:
    """A bound (source member, target member) pair."""

    source_member: str
    target_member: str
    target_keyword: str
    source_type: TypeRef
    target_type: TypeRef
    conversion: ValueConversion
    match_kind: MatchKind
    flattened_path: tuple[str, ...] = ()
    via_constructor: bool = True
    target_settable: bool = True
    target_required: bool = False
    outer_nullable: bool = False

    @property
    def source_path(self) -> tuple[str, ...]:
        """Attribute path read from the source object."""
        return self.flattened_path or (self.source_member,)

    @property
    def requires_conversion(self) -> bool:
        return self.conversion.kind.is_builtin

    @property
    def is_nested(self) -> bool:
        return self.conversion.kind is ConversionKind.NESTED

    @property
    def has_enum_mapping(self) -> bool:
        return self.conversion.kind is ConversionKind.ENUM

    @property
    def is_collection(self) -> bool:
        return self.conversion.kind is ConversionKind.COLLECTION

    @property
    def is_flattened(self) -> bool:
        return self.match_kind is MatchKind.FLATTENED


@dataclass(frozen=True)
class UnconvertibleMember:
    """Members bound by name whose types have no conversion."""

    source_member: str
    source_type: TypeRef
    target_member: str
    target_type: TypeRef
    target_required: bool = False


@dataclass(frozen=True)
class DanglingRename:
    """A MapProperty directive naming a target member that does not exist."""

    source_member: str
    rename_to: str


@dataclass(frozen=True)
class Ambiguity:
    """A target member matched by more than one source member."""

    target_member: str
    source_members: tuple[str, ...]


@dataclass(frozen=True)
class MatchResult:
    """Output of the property matcher for one (source, target) pair."""

    mappings: tuple[PropertyMapping, ...] = ()
    unmatched: tuple[str, ...] = ()
    ignored: tuple[str, ...] = ()
    unconvertible: tuple[UnconvertibleMember, ...] = ()
    dangling_renames: tuple[DanglingRename, ...] = ()
    ambiguous: tuple[Ambiguity, ...] = ()


@dataclass(frozen=True)
class EnumValueMapping:
    """One source enum value and its counterpart, if any."""

    source_value: str
    target_value: str | None = None
    match_kind: MatchKind | None = None

    @property
    def matched(self) -> bool:
        return self.target_value is not None


@dataclass(frozen=True)
class DispatchEntry:
    """A branch of a polymorphic dispatch: derived pair plus its routine."""

    source: str
    target: str
    routine: RoutineRef


@dataclass(frozen=True)
class EnumMappingPlan:
    """Compiled enum-to-enum mapping."""

    directive: MappingDirective
    source: TypeDescriptor
    target: TypeDescriptor
    routine: RoutineRef
    values: tuple[EnumValueMapping, ...] = ()
    reverse: EnumMappingPlan | None = None
    fingerprint: str = field(default="", compare=False)

    @property
    def unmapped(self) -> tuple[str, ...]:
        return tuple(v.source_value for v in self.values if not v.matched)

    @property
    def home_module(self) -> str:
        return self.routine.home_module


@dataclass(frozen=True)
class MappingPlan:
    """Compiled object-to-object mapping."""

    directive: MappingDirective
    source: TypeDescriptor
    target: TypeDescriptor
    routine: RoutineRef
    mappings: tuple[PropertyMapping, ...] = ()
    unmatched: tuple[str, ...] = ()
    ignored: tuple[str, ...] = ()
    unconvertible: tuple[UnconvertibleMember, ...] = ()
    dangling_renames: tuple[DanglingRename, ...] = ()
    ambiguous: tuple[Ambiguity, ...] = ()
    update_routine: str | None = None
    projection_routine: str | None = None
    projection: tuple[PropertyMapping, ...] = ()
    projection_excluded: tuple[str, ...] = ()
    reverse: MappingPlan | None = None
    dispatch: tuple[DispatchEntry, ...] = ()
    helpers: tuple[MappingPlan | EnumMappingPlan, ...] = ()
    generic_parameters: tuple[GenericParameter, ...] = ()
    fingerprint: str = field(default="", compare=False)

    @property
    def home_module(self) -> str:
        return self.routine.home_module

    @property
    def is_polymorphic(self) -> bool:
        return bool(self.dispatch)

    @property
    def before_map(self) -> str | None:
        return self.directive.before_map

    @property
    def after_map(self) -> str | None:
        return self.directive.after_map

    @property
    def factory(self) -> str | None:
        return self.directive.factory

    def mapping_for(self, target_member: str) -> PropertyMapping | None:
        for mapping in self.mappings:
            if mapping.target_member == target_member:
                return mapping
        return None


Plan = MappingPlan | EnumMappingPlan
