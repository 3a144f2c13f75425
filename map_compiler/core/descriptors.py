"""Type graph descriptors.

Frozen dataclasses describing a program's types as seen by the mapping
compiler. A descriptor is a snapshot: it is built once per pass by the
TypeGraph and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from map_compiler.core.enums import ContainerKind, TypeKind, TypeRefKind

if TYPE_CHECKING:
    from map_compiler.core.directives import DerivedTypeMapping, MappingDirective


@dataclass(frozen=True)
class SourceLocation:
    """Anchor for diagnostics: file, line and the symbol it points at."""

    symbol: str
    path: str | None = None
    line: int | None = None

    def __str__(self) -> str:
        if self.path is None:
            return self.symbol
        if self.line is None:
            return f"{self.path}: {self.symbol}"
        return f"{self.path}:{self.line}: {self.symbol}"


@dataclass(frozen=True)
class TypeRef:
    """Declared type of a member."""

    name: str
    kind: TypeRefKind
    args: tuple[TypeRef, ...] = ()
    container: ContainerKind | None = None
    nullable: bool = False

    @property
    def element(self) -> TypeRef | None:
        """Element type of a collection reference."""
        if self.kind is TypeRefKind.COLLECTION and self.args:
            return self.args[0]
        return None

    def non_null(self) -> TypeRef:
        """The same reference without its nullability."""
        if not self.nullable:
            return self
        return TypeRef(self.name, self.kind, self.args, self.container, False)

    def same_type(self, other: TypeRef) -> bool:
        """Structural identity, ignoring nullability."""
        return (
            self.name == other.name
            and self.kind is other.kind
            and self.container is other.container
            and len(self.args) == len(other.args)
            and all(a.same_type(b) for a, b in zip(self.args, other.args, strict=True))
        )

    def display(self) -> str:
        """Short human-readable form used in messages."""
        base = self.name.rsplit(".", 1)[-1]
        if self.kind is TypeRefKind.COLLECTION and self.container is not None:
            base = self.container.value
        if self.args:
            base += "[" + ", ".join(arg.display() for arg in self.args) + "]"
        if self.nullable:
            base += " | None"
        return base


@dataclass(frozen=True)
class GenericParameter:
    """A type parameter of an open generic type, kept verbatim for emission."""

    name: str
    bound: str | None = None
    constraints: tuple[str, ...] = ()
    covariant: bool = False
    contravariant: bool = False


@dataclass(frozen=True)
class MemberDescriptor:
    """A single member (field, attribute or property) of a type."""

    name: str
    type: TypeRef
    init: bool = True
    init_name: str = ""
    settable: bool = True
    readable: bool = True
    required: bool = False
    private: bool = False
    rename_to: str | None = None
    ignored: bool = False
    declared_in: str = ""

    @property
    def constructor_keyword(self) -> str:
        return self.init_name or self.name

    @property
    def writable(self) -> bool:
        """True if a mapping can populate this member."""
        return self.init or self.settable


@dataclass(frozen=True)
class TypeDescriptor:
    """Immutable description of one type in the program."""

    name: str
    module: str
    kind: TypeKind
    members: tuple[MemberDescriptor, ...] = ()
    enum_values: tuple[str, ...] = ()
    generic_parameters: tuple[GenericParameter, ...] = ()
    ancestors: tuple[str, ...] = ()
    abstract: bool = False
    extensible: bool = True
    callables: tuple[str, ...] = ()
    directives: tuple[MappingDirective, ...] = ()
    derived_type_mappings: tuple[DerivedTypeMapping, ...] = ()
    location: SourceLocation | None = field(default=None, compare=False)

    @property
    def qualified_name(self) -> str:
        return f"{self.module}.{self.name}"

    @property
    def package(self) -> str:
        """Top-level package the type ships in."""
        return self.module.split(".", 1)[0]

    @property
    def is_generic(self) -> bool:
        return bool(self.generic_parameters)

    def member(self, name: str) -> MemberDescriptor | None:
        """Look up a member by exact name."""
        for member in self.members:
            if member.name == name:
                return member
        return None

    def anchor(self) -> SourceLocation:
        """Location used when reporting diagnostics about this type."""
        return self.location or SourceLocation(self.qualified_name)
