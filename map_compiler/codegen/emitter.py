"""Emitter - renders validated plans into Python source.

Plans are grouped into one unit per target namespace (``<module><suffix>``).
Within a unit, routines are ordered by (target name, source name); imports
are sorted; references to routines of other units go through the other
unit's module so units may refer to each other freely.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from map_compiler.codegen.writer import ImportTable, SourceWriter
from map_compiler.core.config import GeneratorConfig
from map_compiler.core.descriptors import TypeDescriptor
from map_compiler.core.enums import ContainerKind, ConversionKind
from map_compiler.core.exceptions import EmissionError
from map_compiler.core.reader import TypeGraph
from map_compiler.mapping.plan import (
    EnumMappingPlan,
    MappingPlan,
    Plan,
    PropertyMapping,
    RoutineRef,
    ValueConversion,
)

logger = logging.getLogger(__name__)

RUNTIME_ALIAS = "_rt"

# Built-in conversions: format string over the value expression, and the module it needs
_BUILTIN_EXPRESSIONS: dict[ConversionKind, tuple[str, str | None]] = {
    ConversionKind.TO_STRING: ("str({0})", None),
    ConversionKind.TO_ISO_STRING: ("{0}.isoformat()", None),
    ConversionKind.TO_FLOAT: ("float({0})", None),
    ConversionKind.TO_DECIMAL: ("decimal.Decimal({0})", "decimal"),
    ConversionKind.PARSE_INT: ("int({0})", None),
    ConversionKind.PARSE_FLOAT: ("float({0})", None),
    ConversionKind.PARSE_DECIMAL: ("decimal.Decimal({0})", "decimal"),
    ConversionKind.PARSE_UUID: ("uuid.UUID({0})", "uuid"),
    ConversionKind.PARSE_DATETIME: ("datetime.datetime.fromisoformat({0})", "datetime"),
    ConversionKind.PARSE_DATE: ("datetime.date.fromisoformat({0})", "datetime"),
    ConversionKind.PARSE_TIME: ("datetime.time.fromisoformat({0})", "datetime"),
}

_COMPREHENSIONS: dict[ContainerKind, str] = {
    ContainerKind.LIST: "[{expr} for {var} in {value}]",
    ContainerKind.TUPLE: "tuple({expr} for {var} in {value})",
    ContainerKind.SET: "{{{expr} for {var} in {value}}}",
    ContainerKind.FROZENSET: "frozenset({expr} for {var} in {value})",
}


@dataclass(frozen=True)
class GeneratedUnit:
    """One generated module."""

    module: str
    namespace: str
    source: str
    routines: tuple[str, ...] = ()

    @property
    def path(self) -> Path:
        """Path of the unit relative to an output root."""
        return Path(*self.module.split(".")).with_suffix(".py")


def _sort_key(plan: Plan) -> tuple[str, str]:
    return (plan.target.name, plan.source.name)


class _UnitRenderer:
    """Renders the plans of one namespace."""

    def __init__(self, emitter: Emitter, namespace: str, plans: list[Plan]) -> None:
        self._emitter = emitter
        self._namespace = namespace
        self._plans = sorted(plans, key=_sort_key)
        self._helpers: dict[str, Plan] = {}
        for plan in self._plans:
            if isinstance(plan, MappingPlan):
                for helper in plan.helpers:
                    self._helpers.setdefault(helper.routine.name, helper)
        self._imports = ImportTable(reserved=self._reserved_names())
        self._public: list[str] = []
        self._typevars: dict[str, str] = {}

    # --- Names ---

    def _all_plans(self) -> list[Plan]:
        plans: list[Plan] = []
        for plan in self._plans:
            plans.append(plan)
            if plan.reverse is not None:
                plans.append(plan.reverse)
        plans.extend(self._helpers[name] for name in sorted(self._helpers))
        return plans

    def _reserved_names(self) -> set[str]:
        names = {"source", "target", "exc", "item", "typing", "datetime", "decimal", "uuid", RUNTIME_ALIAS}
        for plan in self._all_plans():
            names.add(plan.routine.name)
            if isinstance(plan, MappingPlan):
                names.update(n for n in (plan.update_routine, plan.projection_routine) if n)
                names.update(p.name for p in plan.generic_parameters)
        return names

    def _register(self, descriptor: TypeDescriptor) -> None:
        self._imports.add_class(descriptor.qualified_name, descriptor.module, descriptor.name)

    def _register_classes(self) -> None:
        graph_lookup = self._emitter.lookup
        for plan in self._all_plans():
            self._register(plan.source)
            self._register(plan.target)
            if isinstance(plan, MappingPlan):
                for entry in plan.dispatch:
                    self._register(graph_lookup(entry.source, plan))
        self._imports.freeze()

    def _cls(self, descriptor: TypeDescriptor) -> str:
        return self._imports.ref(descriptor.qualified_name)

    def _annotation(self, descriptor: TypeDescriptor) -> str:
        name = self._cls(descriptor)
        if descriptor.generic_parameters:
            name += "[" + ", ".join(p.name for p in descriptor.generic_parameters) + "]"
        return name

    def _call(self, routine: RoutineRef) -> str:
        if routine.helper or routine.home_module == self._namespace:
            return routine.name
        module = self._imports.add_module(self._emitter.unit_module(routine.home_module))
        return f"{module}.{routine.name}"

    def _runtime(self, name: str) -> str:
        alias = self._imports.add_runtime(self._emitter.config.runtime_module, RUNTIME_ALIAS)
        return f"{alias}.{name}"

    # --- Expressions ---

    def _convert(self, conversion: ValueConversion, value: str, depth: int = 0) -> str:
        kind = conversion.kind
        if kind is ConversionKind.DIRECT:
            return value
        if kind is ConversionKind.PARSE_BOOL:
            expr = f"{self._runtime('parse_bool')}({value})"
        elif kind in _BUILTIN_EXPRESSIONS:
            template, module = _BUILTIN_EXPRESSIONS[kind]
            if module is not None:
                self._imports.add_module(module)
            expr = template.format(value)
        elif kind in (ConversionKind.NESTED, ConversionKind.ENUM):
            if conversion.routine is None:
                raise EmissionError(f"{kind.value} conversion of '{value}' has no routine")
            expr = f"{self._call(conversion.routine)}({value})"
        elif kind is ConversionKind.COLLECTION:
            if conversion.element is None or conversion.container is None:
                raise EmissionError(f"Collection conversion of '{value}' has no element conversion")
            var = "item" if depth == 0 else f"item_{depth}"
            element = self._convert(conversion.element, var, depth + 1)
            expr = _COMPREHENSIONS[conversion.container].format(expr=element, var=var, value=value)
        else:
            raise EmissionError(f"Cannot emit {kind.value} conversion of '{value}'")
        if conversion.nullable:
            return f"None if {value} is None else {expr}"
        return expr

    def _value(self, mapping: PropertyMapping) -> str:
        path = "source." + ".".join(mapping.source_path)
        expr = self._convert(mapping.conversion, path)
        if mapping.is_flattened and mapping.outer_nullable:
            outer = f"source.{mapping.source_path[0]}"
            if mapping.conversion.nullable and mapping.conversion.kind is not ConversionKind.DIRECT:
                expr = f"({expr})"
            return f"None if {outer} is None else {expr}"
        return expr

    # --- Routines ---

    def _signature(self, plan: MappingPlan) -> str:
        source, target = self._annotation(plan.source), self._annotation(plan.target)
        return f"def {plan.routine.name}(source: {source}) -> {target}:"

    def _track_generics(self, plan: MappingPlan) -> None:
        for param in plan.generic_parameters:
            if param.name in self._typevars:
                continue
            args = [repr(param.name)]
            args += [repr(c) for c in param.constraints]
            if param.bound is not None:
                args.append(f"bound={param.bound!r}")
            if param.covariant:
                args.append("covariant=True")
            if param.contravariant:
                args.append("contravariant=True")
            self._imports.add_module("typing")
            self._typevars[param.name] = f"{param.name} = typing.TypeVar({', '.join(args)})"

    def _before_hook(self, writer: SourceWriter, plan: MappingPlan) -> None:
        if plan.before_map is None:
            return
        source_cls = self._cls(plan.source)
        with writer.block("try:"):
            writer.line(f"{source_cls}.{plan.before_map}(source)")
        with writer.block("except Exception as exc:"):
            writer.line(f"raise {self._runtime('MappingHookError')}({plan.before_map!r}, str(exc)) from exc")

    def _after_hook(self, writer: SourceWriter, plan: MappingPlan) -> None:
        if plan.after_map is not None:
            writer.line(f"{self._cls(plan.source)}.{plan.after_map}(source, target)")

    def _constructor_call(self, plan: MappingPlan, mappings: list[PropertyMapping]) -> list[str]:
        target_cls = self._cls(plan.target)
        if not mappings:
            return [f"{target_cls}()"]
        lines = [f"{target_cls}("]
        odd = []
        for mapping in mappings:
            if mapping.target_keyword.isidentifier():
                lines.append(f"    {mapping.target_keyword}={self._value(mapping)},")
            else:
                odd.append(mapping)
        if odd:
            lines.append("    **{")
            lines.extend(f"        {m.target_keyword!r}: {self._value(m)}," for m in odd)
            lines.append("    },")
        lines.append(")")
        return lines

    def _dispatch(self, writer: SourceWriter, plan: MappingPlan) -> None:
        if not plan.dispatch:
            return
        with writer.block("match source:"):
            for entry in plan.dispatch:
                derived = self._cls(self._emitter.lookup(entry.source, plan))
                with writer.block(f"case {derived}():"):
                    writer.line(f"return {self._call(entry.routine)}(source)")
        error_cls = self._runtime("UnknownDerivedTypeError")
        error = f"{error_cls}({plan.source.qualified_name!r}, type(source).__qualname__)"
        if plan.source.abstract or plan.target.abstract:
            writer.line(f"raise {error}")
            return
        with writer.block(f"if type(source) is not {self._cls(plan.source)}:"):
            writer.line(f"raise {error}")

    def _forward(self, writer: SourceWriter, plan: MappingPlan, docstring: bool) -> None:
        self._track_generics(plan)
        with writer.block(self._signature(plan)):
            if docstring:
                writer.line(f'"""Map ``{plan.source.name}`` to ``{plan.target.name}``."""')
            self._dispatch(writer, plan)
            if plan.dispatch and (plan.source.abstract or plan.target.abstract):
                return
            self._before_hook(writer, plan)

            if plan.factory is not None:
                writer.line(f"target = {self._cls(plan.source)}.{plan.factory}()")
                for mapping in plan.mappings:
                    writer.line(f"target.{mapping.target_member} = {self._value(mapping)}")
            else:
                init = [m for m in plan.mappings if m.via_constructor]
                assigned = [m for m in plan.mappings if not m.via_constructor]
                call = self._constructor_call(plan, init)
                if not assigned and plan.after_map is None:
                    writer.line(f"return {call[0]}")
                    writer.lines(call[1:])
                    return
                writer.line(f"target = {call[0]}")
                writer.lines(call[1:])
                for mapping in assigned:
                    writer.line(f"target.{mapping.target_member} = {self._value(mapping)}")
            self._after_hook(writer, plan)
            writer.line("return target")

    def _update(self, writer: SourceWriter, plan: MappingPlan) -> None:
        name = plan.update_routine
        header = (
            f"def {name}(source: {self._annotation(plan.source)}, "
            f"target: {self._annotation(plan.target)}) -> None:"
        )
        with writer.block(header):
            writer.line(f'"""Copy ``{plan.source.name}`` members onto an existing ``{plan.target.name}``."""')
            self._before_hook(writer, plan)
            for mapping in plan.mappings:
                writer.line(f"target.{mapping.target_member} = {self._value(mapping)}")
            self._after_hook(writer, plan)

    def _projection(self, writer: SourceWriter, plan: MappingPlan) -> None:
        target = self._annotation(plan.target)
        with writer.block(f"def {plan.projection_routine}() -> {self._runtime('Projection')}[{target}]:"):
            names = f"``{plan.target.name}`` members from ``{plan.source.name}``"
            writer.line(f'"""Side-effect-free selection of {names}."""')
            writer.line(f"return {self._runtime('Projection')}(")
            writer.line(f"    {self._cls(plan.source)},")
            writer.line(f"    {self._cls(plan.target)},")
            writer.line("    (")
            field_cls = self._runtime("ProjectedField")
            for mapping in plan.projection:
                args = (
                    f"{mapping.target_member!r}, {mapping.target_keyword!r}, "
                    f"{mapping.source_path!r}, {mapping.via_constructor!r}"
                )
                if mapping.conversion.routine is not None:
                    args += f", convert={self._call(mapping.conversion.routine)}"
                writer.line(f"        {field_cls}({args}),")
            writer.line("    ),")
            writer.line(")")

    def _enum(self, writer: SourceWriter, plan: EnumMappingPlan, docstring: bool) -> None:
        source_cls, target_cls = self._cls(plan.source), self._cls(plan.target)
        with writer.block(f"def {plan.routine.name}(source: {source_cls}) -> {target_cls}:"):
            if docstring:
                writer.line(f'"""Map ``{plan.source.name}`` values to ``{plan.target.name}``."""')
            with writer.block("match source:"):
                for value in plan.values:
                    if not value.matched:
                        continue
                    for name in (value.source_value, value.target_value or ""):
                        if not name.isidentifier():
                            raise EmissionError(f"Enum value '{name}' cannot be referenced in generated code")
                    with writer.block(f"case {source_cls}.{value.source_value}:"):
                        writer.line(f"return {target_cls}.{value.target_value}")
                with writer.block("case _:"):
                    error = self._runtime("UnmappedEnumValueError")
                    names = f"{plan.source.qualified_name!r}, {plan.target.qualified_name!r}"
                    writer.line(f"raise {error}({names}, source)")

    def _routine(self, writer: SourceWriter, plan: Plan, public: bool) -> None:
        writer.blank(2)
        if public:
            self._public.append(plan.routine.name)
        if isinstance(plan, EnumMappingPlan):
            self._enum(writer, plan, docstring=public)
            return
        self._forward(writer, plan, docstring=public)
        if not public:
            return
        if plan.update_routine is not None:
            writer.blank(2)
            self._public.append(plan.update_routine)
            self._update(writer, plan)
        if plan.projection_routine is not None:
            writer.blank(2)
            self._public.append(plan.projection_routine)
            self._projection(writer, plan)

    def render(self) -> GeneratedUnit:
        self._register_classes()
        body = SourceWriter()
        for plan in self._plans:
            self._routine(body, plan, public=True)
            if plan.reverse is not None:
                self._routine(body, plan.reverse, public=True)
        for name in sorted(self._helpers):
            self._routine(body, self._helpers[name], public=False)

        module = self._emitter.unit_module(self._namespace)
        out = SourceWriter()
        out.line(f'"""{self._emitter.config.header}')
        out.blank()
        out.line(f'Mappings into ``{self._namespace}``."""')
        out.blank()
        out.line("from __future__ import annotations")
        out.blank()
        out.lines(self._imports.render())
        if self._typevars:
            out.blank()
            out.lines([self._typevars[name] for name in sorted(self._typevars)])
        out.blank()
        out.line("__all__ = [")
        out.lines([f"    {name!r}," for name in self._public])
        out.line("]")
        source = out.render() + body.render()
        return GeneratedUnit(
            module=module, namespace=self._namespace, source=source, routines=tuple(self._public)
        )


class Emitter:
    """Renders valid plans into generated units.

    Args:
        config: Generator settings (unit suffix, runtime module, header).
        graph: The pass's type graph, consulted for the derived types of
            dispatch tables.
    """

    def __init__(self, config: GeneratorConfig | None = None, graph: TypeGraph | None = None) -> None:
        self.config = config or GeneratorConfig()
        self._graph = graph

    def unit_module(self, namespace: str) -> str:
        return namespace + self.config.unit_suffix

    def lookup(self, qualified: str, plan: Plan) -> TypeDescriptor:
        if self._graph is None or not self._graph.has(qualified):
            raise EmissionError(
                f"Type '{qualified}' referenced by {plan.directive.describe()} is unknown to the emitter"
            )
        return self._graph.get(qualified)

    def emit(self, plans: Iterable[Plan]) -> tuple[GeneratedUnit, ...]:
        """Group plans by target namespace and render one unit per namespace."""
        by_namespace: dict[str, list[Plan]] = {}
        for plan in plans:
            by_namespace.setdefault(plan.home_module, []).append(plan)
        units = []
        for namespace in sorted(by_namespace):
            logger.debug("Emitting %d plan(s) into %s", len(by_namespace[namespace]), namespace)
            units.append(_UnitRenderer(self, namespace, by_namespace[namespace]).render())
        return tuple(units)

    def emit_unit(self, namespace: str, plans: Iterable[Plan]) -> GeneratedUnit:
        """Render one unit regardless of the plans' home namespace."""
        return _UnitRenderer(self, namespace, list(plans)).render()
