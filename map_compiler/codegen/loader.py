"""Materialize generated units in-process, or write them to disk."""

from __future__ import annotations

import importlib
import logging
import sys
import types
from collections.abc import Iterable
from pathlib import Path

from map_compiler.codegen.emitter import GeneratedUnit
from map_compiler.core.exceptions import EmissionError

logger = logging.getLogger(__name__)


def load_units(units: Iterable[GeneratedUnit]) -> dict[str, types.ModuleType]:
    """Execute generated units as modules registered in ``sys.modules``.

    Every module is registered before any is executed, so units that
    reference each other load in any order. Existing modules of the same
    name are replaced.

    Returns:
        Loaded modules keyed by module name.

    Raises:
        EmissionError: If a unit fails to compile or execute.
    """
    units = list(units)
    modules: dict[str, types.ModuleType] = {}
    for unit in units:
        module = types.ModuleType(unit.module)
        module.__file__ = f"<generated {unit.module}>"
        sys.modules[unit.module] = module
        modules[unit.module] = module
        parent_name, _, child = unit.module.rpartition(".")
        if parent_name:
            parent = sys.modules.get(parent_name) or importlib.import_module(parent_name)
            setattr(parent, child, module)

    for unit in units:
        logger.debug("Loading generated unit %s", unit.module)
        try:
            code = compile(unit.source, modules[unit.module].__file__, "exec")
            exec(code, modules[unit.module].__dict__)
        except Exception as e:
            _unregister(modules)
            raise EmissionError(f"Generated unit '{unit.module}' failed to load: {e}") from e
    return modules


def _unregister(modules: dict[str, types.ModuleType]) -> None:
    """Drop modules registered by a failed load, and their parent attributes."""
    for name, module in modules.items():
        if sys.modules.get(name) is module:
            del sys.modules[name]
        parent_name, _, child = name.rpartition(".")
        parent = sys.modules.get(parent_name) if parent_name else None
        if parent is not None and getattr(parent, child, None) is module:
            delattr(parent, child)


def write_units(units: Iterable[GeneratedUnit], root: Path | str) -> list[Path]:
    """Write units below ``root`` following their module paths.

    Returns:
        Paths of the files whose content changed.
    """
    root = Path(root)
    changed = []
    for unit in units:
        path = root / unit.path
        if path.exists() and path.read_text(encoding="utf-8") == unit.source:
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(unit.source, encoding="utf-8")
        logger.debug("Wrote %s", path)
        changed.append(path)
    return changed


def stale_units(units: Iterable[GeneratedUnit], root: Path | str) -> list[Path]:
    """Paths under ``root`` whose content differs from the generated units."""
    root = Path(root)
    return [
        root / unit.path
        for unit in units
        if not (root / unit.path).exists() or (root / unit.path).read_text(encoding="utf-8") != unit.source
    ]
