"""Mapping generator - one pass from type graph to generated units.

The generator extracts directives from a TypeGraph, builds and validates
one plan per directive (optionally on a worker pool, memoized by content
hash) and emits every plan without errors. Compiler errors never escape a
pass: they are reported as diagnostics of the directive they came from.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from pathlib import Path

from map_compiler.codegen.emitter import Emitter, GeneratedUnit
from map_compiler.core.cache import CacheEntry, PlanCache, plan_key
from map_compiler.core.config import GeneratorConfig
from map_compiler.core.diagnostics import PLAN_FAILED, Diagnostic
from map_compiler.core.directives import MappingDirective, extract_directives
from map_compiler.core.exceptions import MapCompilerError
from map_compiler.core.reader import TypeGraph
from map_compiler.mapping.builder import PlanBuilder
from map_compiler.mapping.index import DirectiveIndex
from map_compiler.mapping.plan import MappingPlan, Plan, RoutineRef, ValueConversion
from map_compiler.mapping.validation import PlanValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one generation pass."""

    units: tuple[GeneratedUnit, ...]
    diagnostics: tuple[Diagnostic, ...]
    plans: tuple[Plan, ...]

    @property
    def errors(self) -> tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.is_error)

    @property
    def warnings(self) -> tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if not d.is_error)

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self.diagnostics)

    def unit(self, module: str) -> GeneratedUnit:
        """Look up a generated unit by module name.

        Raises:
            KeyError: If no unit has that name.
        """
        for unit in self.units:
            if unit.module == module:
                return unit
        raise KeyError(module)


def _conversion_routines(conversion: ValueConversion) -> Iterator[RoutineRef]:
    if conversion.routine is not None:
        yield conversion.routine
    if conversion.element is not None:
        yield from _conversion_routines(conversion.element)


def _referenced_routines(plan: Plan) -> Iterator[RoutineRef]:
    """Public routines of other directives that ``plan`` calls."""
    if not isinstance(plan, MappingPlan):
        return
    for mapping in plan.mappings:
        for routine in _conversion_routines(mapping.conversion):
            if not routine.helper:
                yield routine
    for entry in plan.dispatch:
        yield entry.routine
    for sub_plan in (plan.reverse, *plan.helpers):
        if sub_plan is not None:
            yield from _referenced_routines(sub_plan)


class MappingGenerator:
    """Runs generation passes.

    Args:
        config: Generator settings. Defaults to ``GeneratorConfig()``.
        cache: Plan cache shared across passes. Defaults to a new cache
            sized by ``config.cache_size``.
    """

    def __init__(self, config: GeneratorConfig | None = None, cache: PlanCache | None = None) -> None:
        self.config = config or GeneratorConfig()
        self.cache = cache if cache is not None else PlanCache(self.config.cache_size)

    @classmethod
    def from_pyproject(cls, path: Path | str) -> MappingGenerator:
        """Create a generator configured from ``[tool.map_compiler]``.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        return cls(GeneratorConfig.from_pyproject(path))

    def generate(self, graph: TypeGraph) -> GenerationResult:
        """Run one pass over a type graph."""
        directives, diagnostics = extract_directives(graph)
        index = DirectiveIndex(directives, graph)
        builder = PlanBuilder(graph, index, self.config)
        validator = PlanValidator(graph, index)
        logger.debug("Generation pass over %d type(s), %d directive(s)", len(graph), len(directives))

        def plan_one(position: int) -> CacheEntry:
            return self._plan(position, index.directives[position], graph, index, builder, validator)

        positions = range(len(directives))
        if self.config.max_workers > 1 and len(directives) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                entries = list(pool.map(plan_one, positions))
        else:
            entries = [plan_one(p) for p in positions]

        all_diagnostics = list(diagnostics)
        valid: list[tuple[MappingDirective, Plan]] = []
        for directive, (plan, plan_diagnostics) in zip(directives, entries, strict=True):
            all_diagnostics.extend(plan_diagnostics)
            if plan is not None and not any(d.is_error for d in plan_diagnostics):
                valid.append((directive, plan))

        emitted, cascaded = self._drop_dependents(valid)
        all_diagnostics.extend(cascaded)

        emitter = Emitter(self.config, graph)
        units = emitter.emit(emitted)
        ordered = tuple(sorted(all_diagnostics, key=Diagnostic.sort_key))
        logger.info(
            "Generated %d unit(s) from %d plan(s); %d error(s), %d warning(s)",
            len(units),
            len(emitted),
            sum(1 for d in ordered if d.is_error),
            sum(1 for d in ordered if not d.is_error),
        )
        return GenerationResult(units=units, diagnostics=ordered, plans=tuple(emitted))

    def generate_types(self, *types: type) -> GenerationResult:
        """Convenience: build a graph from classes and run a pass."""
        return self.generate(TypeGraph.from_types(*types))

    def generate_modules(self, *modules: str) -> GenerationResult:
        """Convenience: build a graph from module names and run a pass."""
        return self.generate(TypeGraph.from_modules(*modules))

    def _plan(
        self,
        position: int,
        directive: MappingDirective,
        graph: TypeGraph,
        index: DirectiveIndex,
        builder: PlanBuilder,
        validator: PlanValidator,
    ) -> CacheEntry:
        derived = (name for pair in directive.derived_types for name in (pair.source, pair.target))
        closure = graph.closure([directive.source, directive.target, *derived])
        key = plan_key(directive, closure, index.fingerprint(), self.config.fingerprint())
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Plan cache hit for %s", directive.describe())
            return cached

        try:
            plan = builder.build(directive)
            plan = replace(plan, fingerprint=key)
            entry: CacheEntry = (plan, validator.validate(plan, index.conflict(position)))
        except MapCompilerError as e:
            logger.debug("Planning %s failed: %s", directive.describe(), e)
            location = directive.location or graph.get(directive.source).anchor()
            entry = (None, (PLAN_FAILED.create(location, directive.source, directive.target, str(e)),))
        self.cache.put(key, entry)
        return entry

    @staticmethod
    def _drop_dependents(valid: list[tuple[MappingDirective, Plan]]) -> tuple[list[Plan], list[Diagnostic]]:
        """Withhold plans that call routines of mappings that will not be emitted.

        Repeats until stable, since withholding one plan can strand another.
        """
        kept = list(valid)
        diagnostics: list[Diagnostic] = []
        changed = True
        while changed:
            changed = False
            provided: set[tuple[str, str]] = set()
            for _, plan in kept:
                provided.add((plan.home_module, plan.routine.name))
                if plan.reverse is not None:
                    provided.add((plan.home_module, plan.reverse.routine.name))
            for position, (directive, plan) in enumerate(kept):
                missing = sorted(
                    r.name for r in _referenced_routines(plan) if (r.home_module, r.name) not in provided
                )
                if missing:
                    detail = f"depends on routine '{missing[0]}' whose mapping has errors"
                    location = directive.location or plan.source.anchor()
                    diagnostics.append(
                        PLAN_FAILED.create(location, directive.source, directive.target, detail)
                    )
                    del kept[position]
                    changed = True
                    break
        return [plan for _, plan in kept], diagnostics
