"""Plan validation - turns plan defects into diagnostics.

Rules run in a fixed order and stop at the first rule that reports an
error, so each plan surfaces its most fundamental problem. Warnings never
stop validation. The reverse plan and the helper plans of an owning plan
are checked with the structural rules and report at the owner's location.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from map_compiler.core.descriptors import SourceLocation, TypeDescriptor
from map_compiler.core.diagnostics import (
    AMBIGUOUS_TARGET_MEMBER,
    DERIVED_TYPE_MISMATCH,
    DERIVED_TYPE_NOT_MAPPED,
    DUPLICATE_DIRECTIVE,
    HOOK_NOT_FOUND,
    MEMBER_NOT_ASSIGNABLE,
    MEMBER_NOT_CONVERTIBLE,
    PROJECTION_UNSUPPORTED,
    RENAME_TARGET_NOT_FOUND,
    REQUIRED_MEMBER_IGNORED,
    REQUIRED_MEMBER_NOT_MAPPED,
    TARGET_MUST_BE_ENUM,
    TARGET_MUST_BE_OBJECT,
    TYPE_NOT_EXTENSIBLE,
    UNMAPPED_ENUM_VALUE,
    Diagnostic,
)
from map_compiler.core.enums import TypeKind
from map_compiler.core.reader import TypeGraph
from map_compiler.mapping.index import DirectiveIndex
from map_compiler.mapping.plan import EnumMappingPlan, MappingPlan, Plan

Rule = Callable[[MappingPlan, SourceLocation], list[Diagnostic]]


def _location(plan: Plan) -> SourceLocation:
    return plan.directive.location or plan.source.anchor()


def _has_error(diagnostics: Iterable[Diagnostic]) -> bool:
    return any(d.is_error for d in diagnostics)


class PlanValidator:
    """Checks plans against the mapping rules.

    Args:
        graph: The pass's type graph.
        index: All directives of the pass.
    """

    def __init__(self, graph: TypeGraph, index: DirectiveIndex) -> None:
        self._graph = graph
        self._index = index

    def validate(self, plan: Plan, conflict: str | None = None) -> tuple[Diagnostic, ...]:
        """Validate a top-level plan.

        Args:
            plan: The plan to check.
            conflict: Duplicate-directive detail from the index, if any.

        Returns:
            Diagnostics in rule order; an empty tuple for a clean plan.
        """
        location = _location(plan)
        if isinstance(plan, EnumMappingPlan):
            return tuple(self._validate_enum(plan, location, conflict))

        rules: list[Rule] = [
            self._target_is_object,
            self._types_extensible,
            lambda p, loc: self._duplicates(p, loc, conflict),
            self._renames_exist,
            self._hooks_exist,
            self._derived_types_derive,
            self._derived_types_mapped,
            self._no_fan_in,
            self._required_members_mapped,
            self._members_assignable,
            self._projection_supported,
            self._conversions,
        ]
        diagnostics = self._run(rules, plan, location)
        if _has_error(diagnostics):
            return tuple(diagnostics)

        if plan.reverse is not None:
            diagnostics += self._run(self._structural_rules(), plan.reverse, location)
            if _has_error(diagnostics):
                return tuple(diagnostics)

        for helper in plan.helpers:
            if isinstance(helper, EnumMappingPlan):
                diagnostics += self._unmapped_enum_values(helper, location)
                continue
            diagnostics += self._run([self._types_extensible, *self._structural_rules()], helper, location)
            if _has_error(diagnostics):
                break
        return tuple(diagnostics)

    def _structural_rules(self) -> list[Rule]:
        return [self._no_fan_in, self._required_members_mapped, self._conversions]

    @staticmethod
    def _run(rules: list[Rule], plan: MappingPlan, location: SourceLocation) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        for rule in rules:
            found = rule(plan, location)
            diagnostics.extend(found)
            if _has_error(found):
                break
        return diagnostics

    # --- Enum plans ---

    def _validate_enum(
        self, plan: EnumMappingPlan, location: SourceLocation, conflict: str | None
    ) -> list[Diagnostic]:
        if plan.target.kind is not TypeKind.ENUM:
            target = plan.target
            return [TARGET_MUST_BE_ENUM.create(location, target.name, plan.source.name, target.kind.value)]
        not_extensible = self._not_extensible(location, plan.source, plan.target)
        if not_extensible:
            return not_extensible
        if conflict is not None:
            return [DUPLICATE_DIRECTIVE.create(location, plan.source.name, plan.target.name, conflict)]
        diagnostics = self._unmapped_enum_values(plan, location)
        if plan.reverse is not None:
            diagnostics += self._unmapped_enum_values(plan.reverse, location)
        return diagnostics

    @staticmethod
    def _unmapped_enum_values(plan: EnumMappingPlan, location: SourceLocation) -> list[Diagnostic]:
        return [
            UNMAPPED_ENUM_VALUE.create(location, plan.source.name, value, plan.target.name)
            for value in plan.unmapped
        ]

    # --- Object plans ---

    @staticmethod
    def _target_is_object(plan: MappingPlan, location: SourceLocation) -> list[Diagnostic]:
        if plan.target.kind.is_object:
            return []
        return [TARGET_MUST_BE_OBJECT.create(location, plan.target.name, plan.target.kind.value)]

    @staticmethod
    def _not_extensible(location: SourceLocation, *types: TypeDescriptor) -> list[Diagnostic]:
        return [TYPE_NOT_EXTENSIBLE.create(location, t.qualified_name) for t in types if not t.extensible]

    def _types_extensible(self, plan: MappingPlan, location: SourceLocation) -> list[Diagnostic]:
        return self._not_extensible(location, plan.source, plan.target)

    @staticmethod
    def _duplicates(plan: MappingPlan, location: SourceLocation, conflict: str | None) -> list[Diagnostic]:
        if conflict is None:
            return []
        return [DUPLICATE_DIRECTIVE.create(location, plan.source.name, plan.target.name, conflict)]

    @staticmethod
    def _renames_exist(plan: MappingPlan, location: SourceLocation) -> list[Diagnostic]:
        return [
            RENAME_TARGET_NOT_FOUND.create(location, rename.source_member, rename.rename_to, plan.target.name)
            for rename in plan.dangling_renames
        ]

    @staticmethod
    def _hooks_exist(plan: MappingPlan, location: SourceLocation) -> list[Diagnostic]:
        hooks = (("before_map", plan.before_map), ("after_map", plan.after_map), ("factory", plan.factory))
        return [
            HOOK_NOT_FOUND.create(location, kind, name, plan.source.name)
            for kind, name in hooks
            if name is not None and name not in plan.source.callables
        ]

    def _derived_types_derive(self, plan: MappingPlan, location: SourceLocation) -> list[Diagnostic]:
        diagnostics = []
        for derived in plan.directive.derived_types:
            if not self._graph.is_subclass(derived.source, plan.directive.source):
                diagnostics.append(
                    DERIVED_TYPE_MISMATCH.create(location, derived.source, plan.directive.source)
                )
            if not self._graph.is_subclass(derived.target, plan.directive.target):
                diagnostics.append(
                    DERIVED_TYPE_MISMATCH.create(location, derived.target, plan.directive.target)
                )
        return diagnostics

    def _derived_types_mapped(self, plan: MappingPlan, location: SourceLocation) -> list[Diagnostic]:
        return [
            DERIVED_TYPE_NOT_MAPPED.create(location, derived.source, derived.target, plan.source.name)
            for derived in plan.directive.derived_types
            if self._index.directive_for(derived.source, derived.target) is None
        ]

    @staticmethod
    def _no_fan_in(plan: MappingPlan, location: SourceLocation) -> list[Diagnostic]:
        return [
            AMBIGUOUS_TARGET_MEMBER.create(
                location, ambiguity.target_member, plan.target.name, ", ".join(ambiguity.source_members)
            )
            for ambiguity in plan.ambiguous
        ]

    @staticmethod
    def _required_members_mapped(plan: MappingPlan, location: SourceLocation) -> list[Diagnostic]:
        if plan.factory is not None:
            return []
        mapped = {m.target_member for m in plan.mappings}
        diagnostics = []
        for member in plan.target.members:
            if not member.init or not member.required or member.name in mapped:
                continue
            rule = REQUIRED_MEMBER_IGNORED if member.ignored else REQUIRED_MEMBER_NOT_MAPPED
            diagnostics.append(rule.create(location, member.name, plan.target.name, plan.source.name))
        return diagnostics

    @staticmethod
    def _members_assignable(plan: MappingPlan, location: SourceLocation) -> list[Diagnostic]:
        reasons = []
        if plan.directive.update_target:
            reasons.append("update_target")
        if plan.factory is not None:
            reasons.append(f"factory '{plan.factory}'")
        if not reasons:
            return []
        return [
            MEMBER_NOT_ASSIGNABLE.create(
                location, mapping.target_member, plan.target.name, " and ".join(reasons)
            )
            for mapping in plan.mappings
            if not mapping.target_settable
        ]

    @staticmethod
    def _projection_supported(plan: MappingPlan, location: SourceLocation) -> list[Diagnostic]:
        if not plan.directive.generate_projection:
            return []
        reasons = []
        if plan.directive.hooks:
            reasons.append("mapping hooks cannot run inside a projection")
        if plan.directive.derived_types:
            reasons.append("derived type dispatch cannot run inside a projection")
        required = {m.target_member for m in plan.mappings if m.target_required}
        uncovered = [name for name in plan.projection_excluded if name in required]
        if uncovered:
            reasons.append(f"required members need conversion: {', '.join(uncovered)}")
        return [
            PROJECTION_UNSUPPORTED.create(location, plan.source.name, plan.target.name, reason)
            for reason in reasons
        ]

    @staticmethod
    def _conversions(plan: MappingPlan, location: SourceLocation) -> list[Diagnostic]:
        return [
            MEMBER_NOT_CONVERTIBLE.create(
                location,
                member.source_member,
                member.source_type.display(),
                member.target_member,
                member.target_type.display(),
                plan.target.name,
            )
            for member in plan.unconvertible
        ]
