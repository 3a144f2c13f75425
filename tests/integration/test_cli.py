"""Integration tests for the map-compiler command line."""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

import pytest

from map_compiler.cli import main

COMMON = """\
from dataclasses import dataclass


@dataclass
class AddressDto:
    city: str
"""

DTOS = """\
from dataclasses import dataclass

from clishop.common import AddressDto


@dataclass
class OrderDto:
    id: int
    address: AddressDto
"""

MODELS = """\
from dataclasses import dataclass

from map_compiler import map_to

from clishop.common import AddressDto
from clishop.dtos import OrderDto


@map_to(AddressDto)
@dataclass
class Address:
    city: str


@map_to(OrderDto)
@dataclass
class Order:
    id: int
    address: Address
"""

BROKEN = """\
from dataclasses import dataclass

from map_compiler import map_to


@dataclass
class TargetDto:
    id: int
    name: str


@map_to(TargetDto)
@dataclass
class Source:
    id: int
"""


@pytest.fixture
def project(tmp_path: Path, write_module, monkeypatch: pytest.MonkeyPatch):
    """A small package of models in a temporary directory used as the working directory."""
    write_module("clishop/__init__.py", "")
    write_module("clishop/common.py", COMMON)
    write_module("clishop/dtos.py", DTOS)
    write_module("clishop/models.py", MODELS)
    write_module("clishop/broken.py", BROKEN)
    monkeypatch.chdir(tmp_path)
    saved_path = list(sys.path)
    yield tmp_path
    sys.path[:] = saved_path
    for name in [m for m in sys.modules if m == "clishop" or m.startswith("clishop.")]:
        del sys.modules[name]


class TestStdout:
    def test_prints_units(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["clishop.models"]) == 0
        out = capsys.readouterr().out
        assert "# --- clishop.common_mappings ---" in out
        assert "# --- clishop.dtos_mappings ---" in out
        assert "clishop.common_mappings.map_address_to_address_dto(source.address)" in out


class TestOutputDirectory:
    def test_writes_units(self, project: Path) -> None:
        assert main(["clishop.models", "-o", str(project)]) == 0
        assert (project / "clishop" / "common_mappings.py").is_file()
        assert (project / "clishop" / "dtos_mappings.py").is_file()

    def test_written_units_import_and_run(self, project: Path) -> None:
        assert main(["clishop.models", "-o", str(project)]) == 0
        importlib.invalidate_caches()
        models = importlib.import_module("clishop.models")
        mappings = importlib.import_module("clishop.dtos_mappings")
        dto = mappings.map_order_to_order_dto(models.Order(1, models.Address("Lima")))
        assert dto.address.city == "Lima"
        assert type(dto).__name__ == "OrderDto"

    def test_unchanged_units_not_rewritten(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["clishop.models", "-o", str(project)])
        capsys.readouterr()
        assert main(["clishop.models", "-o", str(project)]) == 0
        assert "wrote" not in capsys.readouterr().out


class TestCheck:
    def test_up_to_date(self, project: Path) -> None:
        main(["clishop.models", "-o", str(project)])
        assert main(["clishop.models", "-o", str(project), "--check"]) == 0

    def test_stale_unit(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["clishop.models", "-o", str(project)])
        (project / "clishop" / "dtos_mappings.py").write_text("# edited\n", encoding="utf-8")
        assert main(["clishop.models", "-o", str(project), "--check"]) == 1
        assert "out of date" in capsys.readouterr().err

    def test_missing_unit(self, project: Path) -> None:
        assert main(["clishop.models", "-o", str(project), "--check"]) == 1


class TestFailures:
    def test_mapping_errors(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["clishop.broken"]) == 1
        err = capsys.readouterr().err
        assert "MAP004" in err
        assert "'name'" in err

    def test_unknown_module(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["clishop.missing"]) == 2
        assert "Cannot import module" in capsys.readouterr().err

    def test_invalid_config(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        (project / "pyproject.toml").write_text("[tool.map_compiler]\nmax_workers = 0\n", encoding="utf-8")
        assert main(["clishop.models"]) == 2
        assert "max_workers" in capsys.readouterr().err

    def test_explicit_config(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        config = project / "settings.toml"
        config.write_text('[tool.map_compiler]\nunit_suffix = "_maps"\n', encoding="utf-8")
        assert main(["clishop.models", "--config", str(config)]) == 0
        assert "# --- clishop.dtos_maps ---" in capsys.readouterr().out


class TestVerbose:
    def test_verbose_enables_debug(self, project: Path) -> None:
        logger = logging.getLogger("map_compiler")
        previous = logger.level
        try:
            main(["clishop.models", "-v"])
            assert logger.level == logging.DEBUG
        finally:
            logger.setLevel(previous)
