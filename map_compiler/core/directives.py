"""Mapping directives.

Directives are declared on classes with decorators and on members with
``typing.Annotated`` markers::

    @map_to(UserDto, bidirectional=True)
    @map_derived_type("Admin", "AdminDto")
    @dataclass
    class User:
        id: int
        full_name: Annotated[str, MapProperty("name")]
        password_hash: Annotated[str, MapIgnore()]

The decorators only record plain data on the class. The TypeGraph copies
those records into descriptors, and ``extract_directives`` resolves type
references against the graph.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, TypeVar

from map_compiler.core.descriptors import SourceLocation
from map_compiler.core.diagnostics import UNRESOLVED_TYPE, Diagnostic
from map_compiler.core.enums import NamingStrategy
from map_compiler.core.exceptions import DirectiveError

if TYPE_CHECKING:
    from map_compiler.core.reader import TypeGraph

C = TypeVar("C", bound=type)

_DIRECTIVES_ATTR = "__map_to__"
_DERIVED_ATTR = "__map_derived_types__"
_REFERENCES_ATTR = "__map_references__"

# dataclasses.field(metadata=...) keys understood as member directives
METADATA_RENAME = "map_property"
METADATA_IGNORE = "map_ignore"


@dataclass(frozen=True)
class MapProperty:
    """Member directive: bind this source member to a differently named target member."""

    target: str


@dataclass(frozen=True)
class MapIgnore:
    """Member directive: exclude this member from mapping on either side."""


@dataclass(frozen=True)
class DerivedTypeMapping:
    """A (source derived type, target derived type) pair of a polymorphic mapping."""

    source: str
    target: str


@dataclass(frozen=True)
class MappingDirective:
    """Normalized ``map_to`` directive."""

    source: str
    target: str
    bidirectional: bool = False
    enable_flattening: bool = False
    generate_projection: bool = False
    update_target: bool = False
    include_private_members: bool = False
    before_map: str | None = None
    after_map: str | None = None
    factory: str | None = None
    naming_strategy: NamingStrategy = NamingStrategy.IDENTITY
    derived_types: tuple[DerivedTypeMapping, ...] = ()
    location: SourceLocation | None = field(default=None, compare=False)

    @property
    def pair(self) -> tuple[str, str]:
        return (self.source, self.target)

    @property
    def hooks(self) -> tuple[str, ...]:
        return tuple(h for h in (self.before_map, self.after_map, self.factory) if h)

    def reversed(self) -> MappingDirective:
        """Directive for the reverse direction of a bidirectional mapping.

        Hooks, derived types, update and projection variants belong to the
        declared direction only.
        """
        return MappingDirective(
            source=self.target,
            target=self.source,
            enable_flattening=self.enable_flattening,
            include_private_members=self.include_private_members,
            naming_strategy=self.naming_strategy,
            location=self.location,
        )

    def describe(self) -> str:
        return f"{self.source} -> {self.target}"


def qualified_name(cls: type) -> str:
    """Dotted name a class is importable under."""
    return f"{cls.__module__}.{cls.__qualname__}"


def _type_name(value: Any, role: str) -> str:
    if isinstance(value, str):
        if not value.strip():
            raise DirectiveError(f"{role} type name cannot be empty")
        return value
    if isinstance(value, type):
        return qualified_name(value)
    raise DirectiveError(f"{role} must be a class or a type name, got {value!r}")


def _hook_name(value: str | None, option: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value.isidentifier():
        raise DirectiveError(f"{option} must name a method, got {value!r}")
    return value


def _strategy(value: NamingStrategy | str) -> NamingStrategy:
    if isinstance(value, NamingStrategy):
        return value
    try:
        return NamingStrategy(value)
    except ValueError:
        choices = ", ".join(s.value for s in NamingStrategy)
        raise DirectiveError(f"Unknown naming strategy {value!r} (expected one of: {choices})") from None


def _remember_reference(cls: type, value: Any) -> None:
    if isinstance(value, type):
        refs = list(cls.__dict__.get(_REFERENCES_ATTR, ()))
        refs.append(value)
        setattr(cls, _REFERENCES_ATTR, tuple(refs))


def map_to(
    target: type | str,
    *,
    bidirectional: bool = False,
    enable_flattening: bool = False,
    generate_projection: bool = False,
    update_target: bool = False,
    include_private_members: bool = False,
    before_map: str | None = None,
    after_map: str | None = None,
    factory: str | None = None,
    naming_strategy: NamingStrategy | str = NamingStrategy.IDENTITY,
) -> Callable[[C], C]:
    """Declare that the decorated class or enum maps to ``target``.

    May be applied several times with different targets. ``target`` is either
    the class itself or its name (qualified, or relative to the decorated
    class's module) for forward references.

    Raises:
        DirectiveError: If an option has an invalid value.
    """
    target_name = _type_name(target, "Target")
    strategy = _strategy(naming_strategy)
    hooks = {
        "before_map": _hook_name(before_map, "before_map"),
        "after_map": _hook_name(after_map, "after_map"),
        "factory": _hook_name(factory, "factory"),
    }

    def decorate(cls: C) -> C:
        directive = MappingDirective(
            source=qualified_name(cls),
            target=target_name,
            bidirectional=bidirectional,
            enable_flattening=enable_flattening,
            generate_projection=generate_projection,
            update_target=update_target,
            include_private_members=include_private_members,
            naming_strategy=strategy,
            **hooks,
        )
        # Read from __dict__ so subclasses never inherit a base's directives
        existing = cls.__dict__.get(_DIRECTIVES_ATTR, ())
        setattr(cls, _DIRECTIVES_ATTR, (*existing, directive))
        _remember_reference(cls, target)
        return cls

    return decorate


def map_derived_type(source: type | str, target: type | str) -> Callable[[C], C]:
    """Declare a derived-type pair for the polymorphic mapping of the decorated base."""
    source_name = _type_name(source, "Derived source")
    target_name = _type_name(target, "Derived target")

    def decorate(cls: C) -> C:
        existing = cls.__dict__.get(_DERIVED_ATTR, ())
        setattr(cls, _DERIVED_ATTR, (*existing, DerivedTypeMapping(source_name, target_name)))
        _remember_reference(cls, source)
        _remember_reference(cls, target)
        return cls

    return decorate


def declared_directives(cls: type) -> tuple[MappingDirective, ...]:
    """``map_to`` records declared directly on ``cls``, in declaration order.

    Decorators apply bottom-up, so the stored order is reversed here.
    """
    return tuple(reversed(cls.__dict__.get(_DIRECTIVES_ATTR, ())))


def declared_derived_types(cls: type) -> tuple[DerivedTypeMapping, ...]:
    """``map_derived_type`` records declared directly on ``cls``, in declaration order."""
    return tuple(reversed(cls.__dict__.get(_DERIVED_ATTR, ())))


def referenced_types(cls: type) -> tuple[type, ...]:
    """Classes passed by object to the directives of ``cls``."""
    return tuple(cls.__dict__.get(_REFERENCES_ATTR, ()))


def member_directives(
    annotations: Iterable[Any],
    metadata: dict[str, Any] | None = None,
) -> tuple[str | None, bool]:
    """Read ``(rename_to, ignored)`` from Annotated extras and field metadata."""
    rename_to: str | None = None
    ignored = False
    for extra in annotations:
        if isinstance(extra, MapProperty):
            rename_to = extra.target
        elif isinstance(extra, MapIgnore):
            ignored = True
    if metadata:
        if metadata.get(METADATA_RENAME):
            rename_to = str(metadata[METADATA_RENAME])
        if metadata.get(METADATA_IGNORE):
            ignored = True
    return rename_to, ignored


def extract_directives(
    graph: TypeGraph,
) -> tuple[tuple[MappingDirective, ...], tuple[Diagnostic, ...]]:
    """Resolve every directive in the graph.

    Type names are resolved to qualified names; derived-type pairs of a class
    are attached to each of its object directives. Unresolvable references
    become MAP014 diagnostics and the directive is dropped.
    """
    directives: list[MappingDirective] = []
    diagnostics: list[Diagnostic] = []

    for descriptor in graph.descriptors:
        if not descriptor.directives:
            continue
        anchor = descriptor.anchor()

        derived: list[DerivedTypeMapping] = []
        for pair in descriptor.derived_type_mappings:
            source = graph.resolve(pair.source, descriptor.module)
            target = graph.resolve(pair.target, descriptor.module)
            for name, resolved in ((pair.source, source), (pair.target, target)):
                if resolved is None:
                    diagnostics.append(UNRESOLVED_TYPE.create(anchor, name, descriptor.name))
            if source is not None and target is not None:
                derived.append(DerivedTypeMapping(source, target))

        for directive in descriptor.directives:
            target = graph.resolve(directive.target, descriptor.module)
            if target is None:
                diagnostics.append(UNRESOLVED_TYPE.create(anchor, directive.target, descriptor.name))
                continue
            directives.append(
                replace(
                    directive,
                    source=descriptor.qualified_name,
                    target=target,
                    derived_types=tuple(derived),
                    location=directive.location or anchor,
                )
            )

    return tuple(directives), tuple(diagnostics)
