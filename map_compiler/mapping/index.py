"""Directive index - lookups across all directives of a pass.

The builder asks it which routine maps a nested pair; the validator asks it
whether a directive conflicts with another one.
"""

from __future__ import annotations

from collections.abc import Sequence

from map_compiler.core.directives import MappingDirective
from map_compiler.core.enums import TypeKind
from map_compiler.core.naming import projection_routine_name, routine_name, update_routine_name
from map_compiler.core.reader import TypeGraph
from map_compiler.mapping.plan import RoutineRef


class DirectiveIndex:
    """Immutable index over the resolved directives of one pass.

    Directives are addressed by position, since two identical duplicates
    compare equal.
    """

    def __init__(self, directives: Sequence[MappingDirective], graph: TypeGraph) -> None:
        self._directives = tuple(directives)
        self._graph = graph
        self._forward: dict[tuple[str, str], int] = {}
        self._reverse: dict[tuple[str, str], int] = {}
        for position, directive in enumerate(self._directives):
            self._forward.setdefault(directive.pair, position)
            if directive.bidirectional:
                self._reverse.setdefault((directive.target, directive.source), position)
        self._conflicts = self._find_conflicts()

    @property
    def directives(self) -> tuple[MappingDirective, ...]:
        return self._directives

    def _simple(self, name: str) -> str:
        if self._graph.has(name):
            return self._graph.get(name).name
        return name.rsplit(".", 1)[-1]

    def _home(self, directive: MappingDirective) -> str:
        if self._graph.has(directive.target):
            return self._graph.get(directive.target).module
        return directive.target.rsplit(".", 1)[0]

    def directive_for(self, source: str, target: str) -> MappingDirective | None:
        """The declared directive for a pair, if any."""
        position = self._forward.get((source, target))
        return None if position is None else self._directives[position]

    def routine_for(self, source: str, target: str) -> RoutineRef | None:
        """Routine generated for a pair by a declared or bidirectional directive."""
        position = self._forward.get((source, target))
        if position is None:
            position = self._reverse.get((source, target))
        if position is None:
            return None
        name = routine_name(self._simple(source), self._simple(target))
        return RoutineRef(name, source, target, self._home(self._directives[position]))

    def routine_names(self, directive: MappingDirective) -> tuple[str, ...]:
        """Every public routine a directive generates."""
        src, tgt = self._simple(directive.source), self._simple(directive.target)
        names = [routine_name(src, tgt)]
        if directive.bidirectional:
            names.append(routine_name(tgt, src))
        source_kind = self._graph.get(directive.source).kind if self._graph.has(directive.source) else None
        if source_kind is not TypeKind.ENUM:
            if directive.update_target:
                names.append(update_routine_name(src, tgt))
            if directive.generate_projection:
                names.append(projection_routine_name(src, tgt))
        return tuple(names)

    def conflict(self, position: int) -> str | None:
        """Why the directive at ``position`` clashes with another, or None."""
        return self._conflicts.get(position)

    def _find_conflicts(self) -> dict[int, str]:
        conflicts: dict[int, str] = {}
        by_pair: dict[tuple[str, str], list[int]] = {}
        for position, directive in enumerate(self._directives):
            by_pair.setdefault(directive.pair, []).append(position)

        for positions in by_pair.values():
            if len(positions) > 1:
                for position in positions:
                    conflicts.setdefault(position, f"{len(positions)} directives for the same pair")

        for position, directive in enumerate(self._directives):
            if not directive.bidirectional:
                continue
            reverse_pair = (directive.target, directive.source)
            for other in by_pair.get(reverse_pair, []):
                detail = f"reverse of bidirectional mapping '{directive.describe()}'"
                conflicts.setdefault(other, detail)
                other_name = self._directives[other].describe()
                conflicts.setdefault(position, f"reverse pair also declared as '{other_name}'")

        owners: dict[tuple[str, str], list[int]] = {}
        for position, directive in enumerate(self._directives):
            for name in self.routine_names(directive):
                owners.setdefault((self._home(directive), name), []).append(position)
        for (home, name), positions in sorted(owners.items()):
            distinct = sorted(set(positions))
            if len(distinct) > 1:
                for position in distinct:
                    conflicts.setdefault(position, f"routine '{name}' in '{home}' generated more than once")
        return conflicts

    def fingerprint(self) -> str:
        """Summary of all directives, in order, for cache keys."""
        return "\n".join(repr(d) for d in self._directives)
