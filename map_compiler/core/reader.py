"""Type Graph Reader - snapshots Python classes into immutable descriptors.

Supported shapes:
    dataclasses              -> CLASS (RECORD when frozen)
    pydantic models          -> CLASS (RECORD when frozen)
    typing.NamedTuple        -> STRUCT
    typing.Protocol          -> INTERFACE
    enum.Enum                -> ENUM
    plain annotated classes  -> CLASS

Classes referenced by member annotations or by directives are pulled into
the graph transitively, so a graph built from a handful of entry points is
closed over everything the mapper needs to plan them.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import importlib
import inspect
import logging
import sys
import types
import typing
from collections import deque
from collections.abc import Iterable, Iterator
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from types import ModuleType
from typing import Annotated, Any, ClassVar, ForwardRef, TypeVar, Union, get_args, get_origin
from uuid import UUID

from pydantic import BaseModel

from map_compiler.core.descriptors import (
    GenericParameter,
    MemberDescriptor,
    SourceLocation,
    TypeDescriptor,
    TypeRef,
)
from map_compiler.core.directives import (
    declared_derived_types,
    declared_directives,
    member_directives,
    qualified_name,
    referenced_types,
)
from map_compiler.core.enums import ContainerKind, TypeKind, TypeRefKind
from map_compiler.core.exceptions import TypeGraphError, TypeNotFoundError, UnsupportedTypeError

logger = logging.getLogger(__name__)

SCALAR_NAMES: dict[type, str] = {
    int: "int",
    float: "float",
    str: "str",
    bool: "bool",
    bytes: "bytes",
    Decimal: "decimal.Decimal",
    UUID: "uuid.UUID",
    datetime: "datetime.datetime",
    date: "datetime.date",
    time: "datetime.time",
}

_CONTAINERS: dict[Any, ContainerKind] = {
    list: ContainerKind.LIST,
    tuple: ContainerKind.TUPLE,
    set: ContainerKind.SET,
    frozenset: ContainerKind.FROZENSET,
    collections.abc.Sequence: ContainerKind.LIST,
    collections.abc.MutableSequence: ContainerKind.LIST,
    collections.abc.Collection: ContainerKind.LIST,
    collections.abc.Iterable: ContainerKind.LIST,
    collections.abc.Set: ContainerKind.FROZENSET,
    collections.abc.MutableSet: ContainerKind.SET,
}

# Bases whose attributes are never members or hooks of a user type
_FRAMEWORK_MODULES = frozenset({"builtins", "typing", "typing_extensions", "enum", "abc"})

_OPAQUE_ANY = TypeRef("typing.Any", TypeRefKind.OPAQUE)


def _is_framework(cls: type) -> bool:
    return cls.__module__ in _FRAMEWORK_MODULES or cls.__module__.startswith("pydantic")


def _is_pydantic(cls: type) -> bool:
    return isinstance(cls, type) and issubclass(cls, BaseModel) and cls is not BaseModel


def _is_namedtuple(cls: type) -> bool:
    return issubclass(cls, tuple) and hasattr(cls, "_fields")


def _type_label(value: Any) -> str:
    if value is None:
        return "None"
    if isinstance(value, str):
        return value
    if isinstance(value, ForwardRef):
        return value.__forward_arg__
    if isinstance(value, type):
        return value.__name__ if value.__module__ == "builtins" else qualified_name(value)
    return repr(value)


def _unwrap(annotation: Any) -> tuple[Any, tuple[Any, ...]]:
    """Strip ``Annotated`` wrappers, returning the bare type and collected extras."""
    extras: list[Any] = []
    if get_origin(annotation) is Annotated:
        args = get_args(annotation)
        annotation, extras = args[0], list(args[1:])
    if get_origin(annotation) in (Union, types.UnionType):
        for arg in get_args(annotation):
            if get_origin(arg) is Annotated:
                extras.extend(get_args(arg)[1:])
    return annotation, tuple(extras)


def _class_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except (NameError, TypeError, AttributeError) as e:
        # Unresolvable forward references degrade to the raw annotations
        logger.debug("Falling back to raw annotations for %s: %s", qualified_name(cls), e)
        hints: dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            if klass is object:
                continue
            hints.update(inspect.get_annotations(klass))
        return hints


def _declared_in(cls: type, name: str) -> str:
    for klass in cls.__mro__:
        if name in inspect.get_annotations(klass) or name in vars(klass):
            return qualified_name(klass)
    return qualified_name(cls)


def _location(cls: type) -> SourceLocation:
    try:
        path = inspect.getsourcefile(cls)
    except (TypeError, OSError):
        path = None
    line = getattr(cls, "__firstlineno__", None)
    if line is None and path is not None:
        try:
            line = inspect.getsourcelines(cls)[1]
        except (TypeError, OSError):
            line = None
    return SourceLocation(cls.__qualname__, path, line)


def _is_extensible(cls: type) -> bool:
    """True if generated code can import the class from its module."""
    if "." in cls.__qualname__:
        return False
    module = sys.modules.get(cls.__module__)
    return module is not None and getattr(module, cls.__qualname__, None) is cls


def _generic_parameters(cls: type) -> tuple[GenericParameter, ...]:
    if _is_pydantic(cls):
        params = cls.__pydantic_generic_metadata__.get("parameters", ())
    else:
        params = getattr(cls, "__parameters__", ())
    return tuple(
        GenericParameter(
            name=p.__name__,
            bound=None if p.__bound__ is None else _type_label(p.__bound__),
            constraints=tuple(_type_label(c) for c in p.__constraints__),
            covariant=p.__covariant__,
            contravariant=p.__contravariant__,
        )
        for p in params
        if isinstance(p, TypeVar)
    )


def _callables(cls: type) -> tuple[str, ...]:
    names: set[str] = set()
    for klass in cls.__mro__:
        if klass is object or _is_framework(klass):
            continue
        for name, value in vars(klass).items():
            if name.startswith("__"):
                continue
            if isinstance(value, (staticmethod, classmethod)) or inspect.isfunction(value):
                names.add(name)
    return tuple(sorted(names))


class _GraphBuilder:
    """Describes classes breadth-first, following member and directive references."""

    def __init__(self) -> None:
        self._pending: deque[type] = deque()
        self._seen: set[str] = set()
        self._roots: set[str] = set()
        self._descriptors: list[TypeDescriptor] = []

    def add(self, cls: Any, *, root: bool = True) -> None:
        if not isinstance(cls, type):
            raise UnsupportedTypeError(repr(cls), "only classes can be added to a type graph")
        if root:
            self._roots.add(cls.__module__.split(".", 1)[0])
        name = qualified_name(cls)
        if name in self._seen:
            return
        self._seen.add(name)
        self._pending.append(cls)

    def build(self) -> list[TypeDescriptor]:
        while self._pending:
            cls = self._pending.popleft()
            self._descriptors.append(self._describe(cls))
            for referenced in referenced_types(cls):
                self.add(referenced, root=False)
        return self._descriptors

    # --- Discovery ---

    def _discoverable(self, cls: type) -> bool:
        if cls.__module__ in _FRAMEWORK_MODULES:
            return False
        return (
            issubclass(cls, Enum)
            or dataclasses.is_dataclass(cls)
            or _is_pydantic(cls)
            or _is_namedtuple(cls)
            or bool(declared_directives(cls))
            or cls.__module__.split(".", 1)[0] in self._roots
        )

    def _class_ref(self, cls: type, args: tuple[Any, ...] = ()) -> TypeRef:
        name = qualified_name(cls)
        if issubclass(cls, Enum):
            self.add(cls, root=False)
            return TypeRef(name, TypeRefKind.ENUM)
        if not self._discoverable(cls):
            return TypeRef(name, TypeRefKind.OPAQUE)
        self.add(cls, root=False)
        return TypeRef(name, TypeRefKind.OBJECT, tuple(self.type_ref(a) for a in args))

    def type_ref(self, annotation: Any) -> TypeRef:
        """Translate a (resolved) annotation into a TypeRef."""
        annotation, _ = _unwrap(annotation)
        origin = get_origin(annotation)
        args = get_args(annotation)

        if origin in (Union, types.UnionType):
            options = [a for a in args if a is not type(None)]
            nullable = len(options) < len(args)
            if len(options) == 1:
                ref = self.type_ref(options[0])
                if nullable and not ref.nullable:
                    ref = TypeRef(ref.name, ref.kind, ref.args, ref.container, True)
                return ref
            label = " | ".join(_type_label(o) for o in options)
            return TypeRef(label, TypeRefKind.OPAQUE, nullable=nullable)

        if annotation is Any:
            return _OPAQUE_ANY
        if isinstance(annotation, TypeVar):
            return TypeRef(annotation.__name__, TypeRefKind.TYPE_PARAMETER)
        if isinstance(annotation, (str, ForwardRef)):
            return TypeRef(_type_label(annotation), TypeRefKind.OPAQUE)
        if annotation in SCALAR_NAMES:
            return TypeRef(SCALAR_NAMES[annotation], TypeRefKind.SCALAR)

        container = _CONTAINERS.get(origin if origin is not None else annotation)
        if container is not None:
            if container is ContainerKind.TUPLE and args and not (len(args) == 2 and args[1] is Ellipsis):
                # Heterogeneous tuples are fixed-shape values, not collections
                return TypeRef(repr(annotation), TypeRefKind.OPAQUE)
            element = self.type_ref(args[0]) if args else _OPAQUE_ANY
            return TypeRef(container.value, TypeRefKind.COLLECTION, (element,), container)

        if origin is not None and isinstance(origin, type):
            if origin.__module__ in _FRAMEWORK_MODULES or origin.__module__.startswith("collections"):
                return TypeRef(repr(annotation), TypeRefKind.OPAQUE)
            return self._class_ref(origin, args)

        if isinstance(annotation, type):
            if _is_pydantic(annotation):
                meta = annotation.__pydantic_generic_metadata__
                if meta.get("origin") is not None:
                    return self._class_ref(meta["origin"], tuple(meta.get("args", ())))
            if annotation.__module__ == "builtins":
                return TypeRef(annotation.__name__, TypeRefKind.OPAQUE)
            return self._class_ref(annotation)

        return TypeRef(repr(annotation), TypeRefKind.OPAQUE)

    # --- Description ---

    def _describe(self, cls: type) -> TypeDescriptor:
        logger.debug("Describing %s", qualified_name(cls))
        if issubclass(cls, Enum):
            kind = TypeKind.ENUM
            members: tuple[MemberDescriptor, ...] = ()
            enum_values = tuple(member.name for member in cls)
        else:
            kind = self._kind(cls)
            members = self._members(cls)
            enum_values = ()

        ancestors = tuple(
            qualified_name(base) for base in cls.__mro__[1:] if base is not object and not _is_framework(base)
        )
        return TypeDescriptor(
            name=cls.__qualname__,
            module=cls.__module__,
            kind=kind,
            members=members,
            enum_values=enum_values,
            generic_parameters=() if kind is TypeKind.ENUM else _generic_parameters(cls),
            ancestors=ancestors,
            abstract=inspect.isabstract(cls),
            extensible=_is_extensible(cls),
            callables=_callables(cls),
            directives=declared_directives(cls),
            derived_type_mappings=declared_derived_types(cls),
            location=_location(cls),
        )

    @staticmethod
    def _kind(cls: type) -> TypeKind:
        if getattr(cls, "_is_protocol", False):
            return TypeKind.INTERFACE
        if _is_namedtuple(cls):
            return TypeKind.STRUCT
        if dataclasses.is_dataclass(cls) and cls.__dataclass_params__.frozen:
            return TypeKind.RECORD
        if _is_pydantic(cls) and cls.model_config.get("frozen", False):
            return TypeKind.RECORD
        return TypeKind.CLASS

    def _members(self, cls: type) -> tuple[MemberDescriptor, ...]:
        hints = _class_hints(cls)
        if dataclasses.is_dataclass(cls):
            members = self._dataclass_members(cls, hints)
        elif _is_pydantic(cls):
            members = self._pydantic_members(cls, hints)
        elif _is_namedtuple(cls):
            members = self._namedtuple_members(cls, hints)
        else:
            members = self._plain_members(cls, hints)
        known = {m.name for m in members}
        return tuple(members) + tuple(m for m in self._properties(cls) if m.name not in known)

    def _member(
        self,
        cls: type,
        name: str,
        annotation: Any,
        metadata: Any = None,
        extra_markers: Iterable[Any] = (),
        **flags: Any,
    ) -> MemberDescriptor:
        _, extras = _unwrap(annotation)
        rename_to, ignored = member_directives((*extras, *extra_markers), dict(metadata or {}))
        return MemberDescriptor(
            name=name,
            type=self.type_ref(annotation),
            private=name.startswith("_"),
            rename_to=rename_to,
            ignored=ignored,
            declared_in=_declared_in(cls, name),
            **flags,
        )

    def _dataclass_members(self, cls: type, hints: dict[str, Any]) -> list[MemberDescriptor]:
        frozen = cls.__dataclass_params__.frozen
        members = []
        for f in dataclasses.fields(cls):
            has_default = f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING
            members.append(
                self._member(
                    cls,
                    f.name,
                    hints.get(f.name, f.type),
                    f.metadata,
                    init=f.init,
                    init_name=f.name,
                    settable=not frozen,
                    required=f.init and not has_default,
                )
            )
        return members

    def _pydantic_members(self, cls: type[BaseModel], hints: dict[str, Any]) -> list[MemberDescriptor]:
        frozen = cls.model_config.get("frozen", False)
        members = []
        for name, info in cls.model_fields.items():
            members.append(
                self._member(
                    cls,
                    name,
                    hints.get(name, info.annotation),
                    info.json_schema_extra if isinstance(info.json_schema_extra, dict) else None,
                    extra_markers=info.metadata,
                    init=True,
                    init_name=info.alias or name,
                    settable=not (frozen or bool(info.frozen)),
                    required=info.is_required(),
                )
            )
        return members

    def _namedtuple_members(self, cls: type, hints: dict[str, Any]) -> list[MemberDescriptor]:
        defaults = getattr(cls, "_field_defaults", {})
        return [
            self._member(
                cls,
                name,
                hints.get(name, Any),
                init=True,
                init_name=name,
                settable=False,
                required=name not in defaults,
            )
            for name in cls._fields
        ]

    def _plain_members(self, cls: type, hints: dict[str, Any]) -> list[MemberDescriptor]:
        params: dict[str, inspect.Parameter] = {}
        init_hints: dict[str, Any] = {}
        if cls.__init__ is not object.__init__:
            try:
                signature = inspect.signature(cls.__init__)
            except (TypeError, ValueError) as e:
                raise UnsupportedTypeError(qualified_name(cls), f"unreadable constructor: {e}") from e
            params = {
                name: p
                for name, p in list(signature.parameters.items())[1:]
                if p.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
            }
            try:
                init_hints = typing.get_type_hints(cls.__init__, include_extras=True)
            except (NameError, TypeError, AttributeError):
                init_hints = {}

        names = [n for n, hint in hints.items() if get_origin(hint) is not ClassVar and hint is not ClassVar]
        names += [n for n in params if n not in names]

        members = []
        for name in names:
            param = params.get(name)
            annotation = hints.get(name, init_hints.get(name, Any))
            members.append(
                self._member(
                    cls,
                    name,
                    annotation,
                    init=param is not None,
                    init_name=name,
                    settable=True,
                    required=param is not None and param.default is inspect.Parameter.empty,
                )
            )
        return members

    def _properties(self, cls: type) -> list[MemberDescriptor]:
        seen: dict[str, property] = {}
        for klass in reversed(cls.__mro__):
            if klass is object or _is_framework(klass):
                continue
            for name, value in vars(klass).items():
                if isinstance(value, property):
                    seen[name] = value
        members = []
        for name, prop in seen.items():
            annotation: Any = Any
            if prop.fget is not None:
                try:
                    annotation = typing.get_type_hints(prop.fget, include_extras=True).get("return", Any)
                except (NameError, TypeError, AttributeError):
                    annotation = Any
            members.append(
                self._member(
                    cls,
                    name,
                    annotation,
                    init=False,
                    init_name=name,
                    settable=prop.fset is not None,
                    readable=prop.fget is not None,
                )
            )
        return members


class TypeGraph:
    """Queryable, read-only snapshot of a program's types.

    Built once per generation pass. Descriptors are keyed by qualified name
    (``module.QualName``).

    Raises:
        TypeGraphError: If two descriptors share a qualified name.
    """

    def __init__(self, descriptors: Iterable[TypeDescriptor]) -> None:
        self._types: dict[str, TypeDescriptor] = {}
        self._by_simple_name: dict[str, list[str]] = {}
        for descriptor in descriptors:
            key = descriptor.qualified_name
            if key in self._types:
                raise TypeGraphError(f"Duplicate type in graph: '{key}'")
            self._types[key] = descriptor
            self._by_simple_name.setdefault(descriptor.name, []).append(key)

    @classmethod
    def from_types(cls, *types_: type) -> TypeGraph:
        """Describe the given classes and everything they reference."""
        builder = _GraphBuilder()
        for t in types_:
            builder.add(t)
        return cls(builder.build())

    @classmethod
    def from_modules(cls, *modules: ModuleType | str) -> TypeGraph:
        """Describe every class defined in the given modules.

        Args:
            modules: Module objects or dotted module names to import.

        Raises:
            TypeGraphError: If a module cannot be imported.
        """
        builder = _GraphBuilder()
        for module in modules:
            if isinstance(module, str):
                try:
                    module = importlib.import_module(module)
                except ImportError as e:
                    raise TypeGraphError(f"Cannot import module '{module}': {e}") from e
            for _, klass in inspect.getmembers(module, inspect.isclass):
                if klass.__module__ == module.__name__:
                    builder.add(klass)
        return cls(builder.build())

    def get(self, type_name: str) -> TypeDescriptor:
        """Look up a descriptor by qualified name.

        Raises:
            TypeNotFoundError: If the type is not part of the graph.
        """
        try:
            return self._types[type_name]
        except KeyError:
            raise TypeNotFoundError(type_name) from None

    def has(self, type_name: str) -> bool:
        return type_name in self._types

    def resolve(self, name: str, relative_to: str | None = None) -> str | None:
        """Resolve a directive's type reference to a qualified name.

        Tried in order: the name as given, the name inside ``relative_to``
        (the declaring module), then a unique simple-name match.
        """
        if name in self._types:
            return name
        if relative_to is not None and f"{relative_to}.{name}" in self._types:
            return f"{relative_to}.{name}"
        if "." not in name:
            candidates = self._by_simple_name.get(name, [])
            if len(candidates) == 1:
                return candidates[0]
        return None

    def is_subclass(self, derived: str, base: str) -> bool:
        """True if ``derived`` is ``base`` or inherits from it."""
        if derived == base:
            return True
        descriptor = self._types.get(derived)
        return descriptor is not None and base in descriptor.ancestors

    def closure(self, names: Iterable[str]) -> tuple[TypeDescriptor, ...]:
        """Descriptors reachable from ``names`` through members, bases and directives."""
        queue = deque(n for n in names if n in self._types)
        reached: set[str] = set(queue)

        def visit(name: str | None) -> None:
            if name is not None and name in self._types and name not in reached:
                reached.add(name)
                queue.append(name)

        def visit_ref(ref: TypeRef) -> None:
            visit(ref.name)
            for arg in ref.args:
                visit_ref(arg)

        while queue:
            descriptor = self._types[queue.popleft()]
            for member in descriptor.members:
                visit_ref(member.type)
            for ancestor in descriptor.ancestors:
                visit(ancestor)
            for directive in descriptor.directives:
                visit(self.resolve(directive.target, descriptor.module))
            for pair in descriptor.derived_type_mappings:
                visit(self.resolve(pair.source, descriptor.module))
                visit(self.resolve(pair.target, descriptor.module))
        return tuple(self._types[n] for n in sorted(reached))

    @property
    def descriptors(self) -> tuple[TypeDescriptor, ...]:
        """All descriptors, sorted by qualified name."""
        return tuple(self._types[n] for n in sorted(self._types))

    @property
    def type_names(self) -> list[str]:
        """All qualified type names, sorted alphabetically."""
        return sorted(self._types)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types

    def __iter__(self) -> Iterator[TypeDescriptor]:
        return iter(self.descriptors)

    def __len__(self) -> int:
        return len(self._types)
