"""Mapping plan builder.

Turns one resolved directive into an immutable MappingPlan or
EnumMappingPlan: member correspondences, nested and enum routines, the
polymorphic dispatch table, the reverse plan of a bidirectional directive
and private helper plans for nested pairs nobody declared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from map_compiler.core.config import GeneratorConfig
from map_compiler.core.descriptors import GenericParameter, TypeDescriptor
from map_compiler.core.directives import MappingDirective
from map_compiler.core.enums import ConversionKind, NamingStrategy, TypeKind
from map_compiler.core.exceptions import PlanCompilationError
from map_compiler.core.naming import (
    helper_routine_name,
    projection_routine_name,
    routine_name,
    update_routine_name,
)
from map_compiler.core.reader import TypeGraph
from map_compiler.mapping.enum_matcher import EnumMatcher
from map_compiler.mapping.index import DirectiveIndex
from map_compiler.mapping.plan import (
    DispatchEntry,
    EnumMappingPlan,
    MappingPlan,
    Plan,
    PropertyMapping,
    RoutineRef,
)
from map_compiler.mapping.property_matcher import PropertyMatcher

logger = logging.getLogger(__name__)


def _helper_name(source: TypeDescriptor, target: TypeDescriptor, strategy: NamingStrategy) -> str:
    name = helper_routine_name(source.name, target.name)
    if strategy is not NamingStrategy.IDENTITY:
        name += f"_{strategy.value}"
    return name


def _projectable(mapping: PropertyMapping) -> bool:
    return mapping.conversion.kind in (ConversionKind.DIRECT, ConversionKind.ENUM)


def _merge_parameters(*owners: TypeDescriptor) -> tuple[GenericParameter, ...]:
    seen: dict[str, GenericParameter] = {}
    for owner in owners:
        for param in owner.generic_parameters:
            seen.setdefault(param.name, param)
    return tuple(seen.values())


@dataclass
class _PlanningContext:
    """Mutable state of one top-level build: recursion path and helpers built so far."""

    owner: MappingDirective
    home_module: str
    path: set[tuple[str, str]] = field(default_factory=set)
    helpers: dict[str, Plan] = field(default_factory=dict)


class _Resolver:
    """ConversionResolver that plans implicit helpers on demand."""

    def __init__(self, builder: PlanBuilder, context: _PlanningContext, strategy: NamingStrategy) -> None:
        self._builder = builder
        self._context = context
        self._strategy = strategy

    def nested(self, source: str, target: str) -> RoutineRef | None:
        declared = self._builder.index.routine_for(source, target)
        if declared is not None:
            return declared
        graph = self._builder.graph
        src, tgt = graph.get(source), graph.get(target)
        if src.kind is TypeKind.ENUM or not tgt.kind.is_object:
            return None
        ref = RoutineRef(
            _helper_name(src, tgt, self._strategy), source, target, self._context.home_module, helper=True
        )
        if (source, target) in self._context.path or ref.name in self._context.helpers:
            return ref
        helper_directive = MappingDirective(
            source=source,
            target=target,
            naming_strategy=self._strategy,
            location=self._context.owner.location,
        )
        plan = self._builder.build_object_plan(helper_directive, ref, self._context)
        self._context.helpers[ref.name] = plan
        return ref

    def enum(self, source: str, target: str) -> RoutineRef | None:
        declared = self._builder.index.routine_for(source, target)
        if declared is not None:
            return declared
        graph = self._builder.graph
        src, tgt = graph.get(source), graph.get(target)
        ref = RoutineRef(
            helper_routine_name(src.name, tgt.name), source, target, self._context.home_module, helper=True
        )
        if ref.name not in self._context.helpers:
            helper_directive = MappingDirective(
                source=source, target=target, location=self._context.owner.location
            )
            self._context.helpers[ref.name] = self._builder.build_enum_plan(helper_directive, ref)
        return ref


class PlanBuilder:
    """Builds plans for resolved directives.

    The builder is stateless between calls; a single instance may be shared
    by worker threads.

    Args:
        graph: The pass's type graph.
        index: All directives of the pass.
        config: Generator settings (enum equivalence groups).
    """

    def __init__(
        self, graph: TypeGraph, index: DirectiveIndex, config: GeneratorConfig | None = None
    ) -> None:
        self.graph = graph
        self.index = index
        self.config = config or GeneratorConfig()
        self._enum_matcher = EnumMatcher(self.config.enum_equivalence_groups)

    def build(self, directive: MappingDirective) -> Plan:
        """Build the plan for one directive.

        Raises:
            TypeNotFoundError: If the directive names a type outside the graph.
            PlanCompilationError: If the plan cannot be assembled.
        """
        source = self.graph.get(directive.source)
        target = self.graph.get(directive.target)
        routine = RoutineRef(
            routine_name(source.name, target.name),
            source.qualified_name,
            target.qualified_name,
            target.module,
        )
        logger.debug("Planning %s", directive.describe())

        if source.kind is TypeKind.ENUM:
            plan = self.build_enum_plan(directive, routine)
            if directive.bidirectional and target.kind is TypeKind.ENUM:
                reverse_routine = RoutineRef(
                    routine_name(target.name, source.name),
                    target.qualified_name,
                    source.qualified_name,
                    target.module,
                )
                reverse = self.build_enum_plan(directive.reversed(), reverse_routine)
                plan = EnumMappingPlan(
                    directive=plan.directive,
                    source=plan.source,
                    target=plan.target,
                    routine=plan.routine,
                    values=plan.values,
                    reverse=reverse,
                )
            return plan

        context = _PlanningContext(owner=directive, home_module=target.module)
        plan = self.build_object_plan(directive, routine, context)

        reverse = None
        if directive.bidirectional and target.kind.is_object and source.kind.is_object:
            reverse_routine = RoutineRef(
                routine_name(target.name, source.name),
                target.qualified_name,
                source.qualified_name,
                target.module,
            )
            reverse = self.build_object_plan(
                directive.reversed(), reverse_routine, context, inverse_renames=True
            )

        projection: tuple[PropertyMapping, ...] = ()
        excluded: tuple[str, ...] = ()
        if directive.generate_projection:
            projection = tuple(m for m in plan.mappings if _projectable(m))
            excluded = tuple(m.target_member for m in plan.mappings if not _projectable(m))

        return MappingPlan(
            directive=plan.directive,
            source=plan.source,
            target=plan.target,
            routine=plan.routine,
            mappings=plan.mappings,
            unmatched=plan.unmatched,
            ignored=plan.ignored,
            unconvertible=plan.unconvertible,
            dangling_renames=plan.dangling_renames,
            ambiguous=plan.ambiguous,
            update_routine=update_routine_name(source.name, target.name) if directive.update_target else None,
            projection_routine=(
                projection_routine_name(source.name, target.name) if directive.generate_projection else None
            ),
            projection=projection,
            projection_excluded=excluded,
            reverse=reverse,
            dispatch=self._dispatch(directive),
            helpers=tuple(context.helpers[name] for name in sorted(context.helpers)),
            generic_parameters=_merge_parameters(source, target),
        )

    def build_object_plan(
        self,
        directive: MappingDirective,
        routine: RoutineRef,
        context: _PlanningContext,
        inverse_renames: bool = False,
    ) -> MappingPlan:
        """Plan member correspondences for an object pair.

        A target that is not an object type yields an empty plan; the
        validator reports it.
        """
        source = self.graph.get(directive.source)
        target = self.graph.get(directive.target)
        if not target.kind.is_object or source.kind is TypeKind.ENUM:
            return MappingPlan(directive=directive, source=source, target=target, routine=routine)

        pair = directive.pair
        context.path.add(pair)
        try:
            matcher = PropertyMatcher(self.graph, _Resolver(self, context, directive.naming_strategy))
            result = matcher.match(
                source,
                target,
                strategy=directive.naming_strategy,
                flatten=directive.enable_flattening,
                include_private=directive.include_private_members,
                inverse_renames=inverse_renames,
            )
        finally:
            context.path.discard(pair)

        return MappingPlan(
            directive=directive,
            source=source,
            target=target,
            routine=routine,
            mappings=result.mappings,
            unmatched=result.unmatched,
            ignored=result.ignored,
            unconvertible=result.unconvertible,
            dangling_renames=() if inverse_renames else result.dangling_renames,
            ambiguous=result.ambiguous,
            generic_parameters=_merge_parameters(source, target),
        )

    def build_enum_plan(self, directive: MappingDirective, routine: RoutineRef) -> EnumMappingPlan:
        source = self.graph.get(directive.source)
        target = self.graph.get(directive.target)
        values = self._enum_matcher.match(source, target) if target.kind is TypeKind.ENUM else ()
        return EnumMappingPlan(
            directive=directive, source=source, target=target, routine=routine, values=values
        )

    def _dispatch(self, directive: MappingDirective) -> tuple[DispatchEntry, ...]:
        entries = []
        for derived in directive.derived_types:
            if derived.source == directive.source:
                raise PlanCompilationError(
                    f"Derived type mapping of {directive.describe()} repeats the base pair"
                )
            routine = self.index.routine_for(derived.source, derived.target)
            if routine is not None:
                entries.append(DispatchEntry(derived.source, derived.target, routine))
        return tuple(entries)
