"""Unit tests for loading and writing generated units."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from map_compiler.codegen.emitter import GeneratedUnit
from map_compiler.codegen.loader import load_units, stale_units, write_units
from map_compiler.core.exceptions import EmissionError

GOOD = GeneratedUnit("loader_good_mappings", "loader_good", "def answer():\n    return 42\n", ("answer",))
BROKEN = GeneratedUnit("loader_broken_mappings", "loader_broken", "raise RuntimeError('boom')\n")


@pytest.fixture(autouse=True)
def _clean_modules():
    yield
    for name in (GOOD.module, BROKEN.module):
        sys.modules.pop(name, None)


class TestLoadUnits:
    def test_loads_and_registers(self) -> None:
        modules = load_units([GOOD])
        assert modules[GOOD.module].answer() == 42
        assert sys.modules[GOOD.module] is modules[GOOD.module]

    def test_failed_load_unregisters_every_unit(self) -> None:
        with pytest.raises(EmissionError, match="loader_broken_mappings") as exc_info:
            load_units([GOOD, BROKEN])
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert GOOD.module not in sys.modules
        assert BROKEN.module not in sys.modules

    def test_syntax_error_unregisters(self) -> None:
        unit = GeneratedUnit(BROKEN.module, BROKEN.namespace, "def broken(:\n")
        with pytest.raises(EmissionError):
            load_units([unit])
        assert BROKEN.module not in sys.modules


class TestWriteUnits:
    def test_write_then_up_to_date(self, tmp_path: Path) -> None:
        assert write_units([GOOD], tmp_path) == [tmp_path / "loader_good_mappings.py"]
        assert write_units([GOOD], tmp_path) == []
        assert stale_units([GOOD], tmp_path) == []

    def test_stale_after_edit(self, tmp_path: Path) -> None:
        write_units([GOOD], tmp_path)
        (tmp_path / "loader_good_mappings.py").write_text("# edited\n", encoding="utf-8")
        assert stale_units([GOOD], tmp_path) == [tmp_path / "loader_good_mappings.py"]
