"""Property matcher - decides which source member feeds each target member.

Per target member, in target declaration order:

    1. ignored members are skipped
    2. a MapProperty rename on a source member binds first
    3. otherwise the strategy-transformed source name is compared
       case-insensitively with the target name or its constructor alias;
       several hits are an ambiguity
    4. otherwise, with flattening enabled, ``{outer}{inner}`` and
       ``{outer}_{inner}`` over one level of nested source members
    5. otherwise the member is unmatched

Each bound pair is then classified into a ValueConversion.
"""

from __future__ import annotations

from typing import Protocol

from map_compiler.core.descriptors import MemberDescriptor, TypeDescriptor, TypeRef
from map_compiler.core.enums import ConversionKind, MatchKind, NamingStrategy, TypeRefKind
from map_compiler.core.naming import names_match, routine_name
from map_compiler.core.reader import TypeGraph
from map_compiler.mapping.plan import (
    DIRECT,
    UNCONVERTIBLE,
    Ambiguity,
    DanglingRename,
    MatchResult,
    PropertyMapping,
    RoutineRef,
    UnconvertibleMember,
    ValueConversion,
)

_ISO_TYPES = ("datetime.datetime", "datetime.date", "datetime.time")

# (source scalar, target scalar) -> built-in conversion
BUILTIN_CONVERSIONS: dict[tuple[str, str], ConversionKind] = {
    ("int", "str"): ConversionKind.TO_STRING,
    ("float", "str"): ConversionKind.TO_STRING,
    ("bool", "str"): ConversionKind.TO_STRING,
    ("decimal.Decimal", "str"): ConversionKind.TO_STRING,
    ("uuid.UUID", "str"): ConversionKind.TO_STRING,
    **{(name, "str"): ConversionKind.TO_ISO_STRING for name in _ISO_TYPES},
    ("int", "float"): ConversionKind.TO_FLOAT,
    ("int", "decimal.Decimal"): ConversionKind.TO_DECIMAL,
    ("str", "int"): ConversionKind.PARSE_INT,
    ("str", "float"): ConversionKind.PARSE_FLOAT,
    ("str", "decimal.Decimal"): ConversionKind.PARSE_DECIMAL,
    ("str", "bool"): ConversionKind.PARSE_BOOL,
    ("str", "uuid.UUID"): ConversionKind.PARSE_UUID,
    ("str", "datetime.datetime"): ConversionKind.PARSE_DATETIME,
    ("str", "datetime.date"): ConversionKind.PARSE_DATE,
    ("str", "datetime.time"): ConversionKind.PARSE_TIME,
}


def _name_matches(source_name: str, target: MemberDescriptor, strategy: NamingStrategy) -> bool:
    """Compare against the attribute name and, when it differs, the constructor alias."""
    if names_match(source_name, target.name, strategy):
        return True
    alias = target.constructor_keyword
    return alias != target.name and names_match(source_name, alias, strategy)


class ConversionResolver(Protocol):
    """Supplies routines for nested object and enum pairs."""

    def nested(self, source: str, target: str) -> RoutineRef | None: ...

    def enum(self, source: str, target: str) -> RoutineRef | None: ...


class NamingResolver:
    """Resolver that assumes a directly named routine exists for every pair."""

    def __init__(self, graph: TypeGraph) -> None:
        self._graph = graph

    def _ref(self, source: str, target: str) -> RoutineRef | None:
        if not (self._graph.has(source) and self._graph.has(target)):
            return None
        src, tgt = self._graph.get(source), self._graph.get(target)
        return RoutineRef(routine_name(src.name, tgt.name), source, target, tgt.module)

    def nested(self, source: str, target: str) -> RoutineRef | None:
        return self._ref(source, target)

    def enum(self, source: str, target: str) -> RoutineRef | None:
        return self._ref(source, target)


class PropertyMatcher:
    """Matches members of a (source, target) pair.

    Args:
        graph: The pass's type graph.
        resolver: Supplies routines for nested and enum members. Defaults to
            a resolver that names the direct routine of each pair.
    """

    def __init__(self, graph: TypeGraph, resolver: ConversionResolver | None = None) -> None:
        self._graph = graph
        self._resolver = resolver or NamingResolver(graph)

    def match(
        self,
        source: TypeDescriptor,
        target: TypeDescriptor,
        strategy: NamingStrategy = NamingStrategy.IDENTITY,
        flatten: bool = False,
        include_private: bool = False,
        inverse_renames: bool = False,
    ) -> MatchResult:
        """Compute member correspondences.

        ``inverse_renames`` lets a rename declared on a target member bind
        the source member it names; reverse plans of bidirectional mappings
        use it so a rename works in both directions.
        """
        sources = [m for m in source.members if m.readable and (include_private or not m.private)]
        targets = [m for m in target.members if m.writable and (include_private or not m.private)]
        renamed = [m for m in sources if m.rename_to and not m.ignored]
        plain = [m for m in sources if not m.rename_to and not m.ignored]

        mappings: list[PropertyMapping] = []
        unmatched: list[str] = []
        ignored: list[str] = [m.name for m in sources if m.ignored]
        unconvertible: list[UnconvertibleMember] = []
        ambiguous: list[Ambiguity] = []

        for member in targets:
            if member.ignored:
                ignored.append(member.name)
                continue

            hits = [
                s for s in renamed if names_match(s.rename_to or "", member.name, NamingStrategy.IDENTITY)
            ]
            if not hits and inverse_renames and member.rename_to:
                hits = [s for s in plain if names_match(s.name, member.rename_to, NamingStrategy.IDENTITY)]
            kind = MatchKind.DIRECTIVE
            if not hits:
                hits = [s for s in plain if _name_matches(s.name, member, strategy)]
                kind = MatchKind.NAME

            if len(hits) > 1:
                ambiguous.append(Ambiguity(member.name, tuple(s.name for s in hits)))
                continue

            if hits:
                outer = hits[0]
                mapping = self._bind(outer, member, kind, (), outer_nullable=False)
            elif flatten:
                mapping = self._flatten(plain, member, strategy, include_private)
            else:
                mapping = None

            if mapping is None:
                unmatched.append(member.name)
            elif mapping.conversion.kind is ConversionKind.UNCONVERTIBLE:
                unconvertible.append(
                    UnconvertibleMember(
                        ".".join(mapping.source_path),
                        mapping.source_type,
                        member.name,
                        member.type,
                        member.required,
                    )
                )
            else:
                mappings.append(mapping)

        target_names = {m.name.casefold() for m in target.members}
        dangling = tuple(
            DanglingRename(m.name, m.rename_to or "")
            for m in renamed
            if (m.rename_to or "").casefold() not in target_names
        )
        return MatchResult(
            mappings=tuple(mappings),
            unmatched=tuple(unmatched),
            ignored=tuple(ignored),
            unconvertible=tuple(unconvertible),
            dangling_renames=dangling,
            ambiguous=tuple(ambiguous),
        )

    def _bind(
        self,
        source: MemberDescriptor,
        target: MemberDescriptor,
        kind: MatchKind,
        path: tuple[str, ...],
        outer_nullable: bool,
    ) -> PropertyMapping:
        return PropertyMapping(
            source_member=path[0] if path else source.name,
            target_member=target.name,
            target_keyword=target.constructor_keyword,
            source_type=source.type,
            target_type=target.type,
            conversion=self.classify(source.type, target.type),
            match_kind=kind,
            flattened_path=path,
            via_constructor=target.init,
            target_settable=target.settable,
            target_required=target.required,
            outer_nullable=outer_nullable,
        )

    def _flatten(
        self,
        sources: list[MemberDescriptor],
        target: MemberDescriptor,
        strategy: NamingStrategy,
        include_private: bool,
    ) -> PropertyMapping | None:
        for outer in sources:
            if outer.type.kind is not TypeRefKind.OBJECT or not self._graph.has(outer.type.name):
                continue
            nested = self._graph.get(outer.type.name)
            if not nested.kind.is_object:
                continue
            for inner in nested.members:
                if not inner.readable or inner.ignored or (inner.private and not include_private):
                    continue
                for candidate in (f"{outer.name}{inner.name}", f"{outer.name}_{inner.name}"):
                    if _name_matches(candidate, target, strategy):
                        return self._bind(
                            inner,
                            target,
                            MatchKind.FLATTENED,
                            (outer.name, inner.name),
                            outer_nullable=outer.type.nullable,
                        )
        return None

    def classify(self, source: TypeRef, target: TypeRef) -> ValueConversion:
        """Decide how a value of ``source`` type becomes a ``target`` value."""
        if source.same_type(target):
            return DIRECT
        kind = source.kind
        if kind is TypeRefKind.OBJECT and target.kind is TypeRefKind.OBJECT:
            if not source.args and not target.args and self._graph.is_subclass(source.name, target.name):
                return DIRECT
            if not (self._graph.has(target.name) and self._graph.get(target.name).kind.is_object):
                return UNCONVERTIBLE
            routine = self._resolver.nested(source.name, target.name)
            if routine is None:
                return UNCONVERTIBLE
            return ValueConversion(ConversionKind.NESTED, routine=routine, nullable=source.nullable)
        if kind is TypeRefKind.ENUM and target.kind is TypeRefKind.ENUM:
            routine = self._resolver.enum(source.name, target.name)
            if routine is None:
                return UNCONVERTIBLE
            return ValueConversion(ConversionKind.ENUM, routine=routine, nullable=source.nullable)
        if kind is TypeRefKind.COLLECTION and target.kind is TypeRefKind.COLLECTION:
            element = self.classify(source.args[0], target.args[0])
            if element.kind is ConversionKind.UNCONVERTIBLE:
                return UNCONVERTIBLE
            return ValueConversion(
                ConversionKind.COLLECTION,
                element=element,
                container=target.container,
                nullable=source.nullable,
            )
        if kind is TypeRefKind.SCALAR and target.kind is TypeRefKind.SCALAR:
            builtin = BUILTIN_CONVERSIONS.get((source.name, target.name))
            if builtin is not None:
                return ValueConversion(builtin, nullable=source.nullable)
        return UNCONVERTIBLE
