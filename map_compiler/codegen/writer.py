"""Source text helpers for the emitter: an indenting line writer and an import table."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from map_compiler.core.exceptions import EmissionError

INDENT = "    "


class SourceWriter:
    """Accumulates indented source lines."""

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._level = 0

    def line(self, text: str = "") -> None:
        self._lines.append(INDENT * self._level + text if text else "")

    def lines(self, texts: list[str]) -> None:
        for text in texts:
            self.line(text)

    def blank(self, count: int = 1) -> None:
        self._lines.extend([""] * count)

    @contextmanager
    def block(self, header: str) -> Iterator[None]:
        """Write ``header`` and indent everything written inside the block."""
        self.line(header)
        self._level += 1
        try:
            yield
        finally:
            self._level -= 1

    def render(self) -> str:
        return "\n".join(self._lines).rstrip() + "\n"


class ImportTable:
    """Imports of one generated unit.

    Classes are registered first (``add_class``), then ``freeze`` assigns
    local names: the simple name when unique in the unit, a module-qualified
    alias otherwise. Modules are imported whole and referenced by their
    dotted name, so they can be added at any time.
    """

    def __init__(self, reserved: set[str] | None = None) -> None:
        self._classes: dict[str, tuple[str, str]] = {}
        self._modules: set[str] = set()
        self._aliased: dict[str, str] = {}
        self._runtime: str | None = None
        self._reserved = set(reserved or ())
        self._frozen = False

    def add_class(self, qualified: str, module: str, name: str) -> None:
        if self._frozen:
            raise EmissionError(f"Import table is frozen; cannot add '{qualified}'")
        self._classes.setdefault(qualified, (module, name))

    def add_module(self, module: str) -> str:
        self._modules.add(module)
        return module

    def add_runtime(self, module: str, alias: str) -> str:
        self._runtime = f"import {module} as {alias}"
        return alias

    def freeze(self) -> None:
        by_name: dict[str, list[str]] = {}
        for qualified, (_, name) in self._classes.items():
            by_name.setdefault(name, []).append(qualified)
        for name, owners in by_name.items():
            for qualified in owners:
                module = self._classes[qualified][0]
                clash = len(owners) > 1 or name in self._reserved
                self._aliased[qualified] = f"{module.replace('.', '_')}_{name}" if clash else name
        self._frozen = True

    def ref(self, qualified: str) -> str:
        """Local name of a registered class."""
        try:
            return self._aliased[qualified]
        except KeyError:
            raise EmissionError(f"Class '{qualified}' was not registered for import") from None

    def render(self) -> list[str]:
        plain = sorted(f"import {m}" for m in self._modules)
        if self._runtime is not None:
            plain = sorted([*plain, self._runtime])
        grouped: dict[str, list[str]] = {}
        for qualified, (module, name) in self._classes.items():
            alias = self._aliased.get(qualified, name)
            grouped.setdefault(module, []).append(name if alias == name else f"{name} as {alias}")
        from_lines = [
            f"from {module} import {', '.join(sorted(names))}" for module, names in sorted(grouped.items())
        ]
        return [*plain, *from_lines]
