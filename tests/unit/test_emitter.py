"""Unit tests for the emitter and its source helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import pytest

from map_compiler.codegen.emitter import Emitter, GeneratedUnit
from map_compiler.codegen.writer import ImportTable, SourceWriter
from map_compiler.core.config import GeneratorConfig
from map_compiler.core.directives import map_to
from map_compiler.core.exceptions import EmissionError
from map_compiler.core.generator import MappingGenerator

MODULE = __name__


class Size(Enum):
    SMALL = 1
    LARGE = 2


class SizeDto(Enum):
    SMALL = 1
    LARGE = 2


@dataclass
class ShirtDto:
    size: SizeDto
    label: str


@map_to(ShirtDto, update_target=True, generate_projection=True)
@dataclass
class Shirt:
    size: Size
    label: str


@map_to(SizeDto)
class SizeTag(Enum):
    SMALL = 1
    LARGE = 2


class TestSourceWriter:
    def test_blocks_indent(self) -> None:
        writer = SourceWriter()
        with writer.block("def f():"):
            writer.line("return 1")
        assert writer.render() == "def f():\n    return 1\n"

    def test_blank_lines_have_no_indent(self) -> None:
        writer = SourceWriter()
        with writer.block("if x:"):
            writer.line("a = 1")
            writer.line()
            writer.line("b = 2")
        assert "\n\n" in writer.render()

    def test_render_strips_trailing_blank_lines(self) -> None:
        writer = SourceWriter()
        writer.line("x = 1")
        writer.blank(3)
        assert writer.render() == "x = 1\n"


class TestImportTable:
    def test_unique_names_imported_plainly(self) -> None:
        table = ImportTable()
        table.add_class("pkg.models.User", "pkg.models", "User")
        table.freeze()
        assert table.ref("pkg.models.User") == "User"
        assert table.render() == ["from pkg.models import User"]

    def test_clashing_names_aliased(self) -> None:
        table = ImportTable()
        table.add_class("pkg.a.User", "pkg.a", "User")
        table.add_class("pkg.b.User", "pkg.b", "User")
        table.freeze()
        assert table.ref("pkg.a.User") == "pkg_a_User"
        assert table.render() == [
            "from pkg.a import User as pkg_a_User",
            "from pkg.b import User as pkg_b_User",
        ]

    def test_reserved_name_aliased(self) -> None:
        table = ImportTable(reserved={"source"})
        table.add_class("pkg.source", "pkg", "source")
        table.freeze()
        assert table.ref("pkg.source") == "pkg_source"

    def test_module_and_runtime_imports_sorted(self) -> None:
        table = ImportTable()
        table.add_module("uuid")
        table.add_runtime("map_compiler.runtime", "_rt")
        table.add_module("decimal")
        table.freeze()
        assert table.render() == ["import decimal", "import map_compiler.runtime as _rt", "import uuid"]

    def test_frozen_table_rejects_classes(self) -> None:
        table = ImportTable()
        table.freeze()
        with pytest.raises(EmissionError):
            table.add_class("pkg.User", "pkg", "User")

    def test_unregistered_ref(self) -> None:
        with pytest.raises(EmissionError):
            ImportTable().ref("pkg.User")


class TestEmitter:
    @pytest.fixture
    def unit(self, generator: MappingGenerator) -> GeneratedUnit:
        result = generator.generate_types(Shirt, SizeTag)
        assert not result.has_errors
        (unit,) = result.units
        return unit

    def test_unit_named_after_target_namespace(self, unit: GeneratedUnit) -> None:
        assert unit.module == f"{MODULE}_mappings"
        assert unit.namespace == MODULE
        assert str(unit.path) == f"{MODULE}_mappings.py"

    def test_header_and_future_import(self, unit: GeneratedUnit) -> None:
        lines = unit.source.splitlines()
        assert lines[0] == '"""Generated by map_compiler. Do not edit.'
        assert "from __future__ import annotations" in lines

    def test_public_routines(self, unit: GeneratedUnit) -> None:
        assert unit.routines == (
            "map_shirt_to_shirt_dto",
            "update_shirt_dto_from_shirt",
            "project_shirt_to_shirt_dto",
            "map_size_tag_to_size_dto",
        )
        assert "__all__ = [" in unit.source

    def test_private_enum_helper(self, unit: GeneratedUnit) -> None:
        assert "def _map_size_to_size_dto(source: Size) -> SizeDto:" in unit.source
        assert "_map_size_to_size_dto" not in unit.routines

    def test_enum_routine_uses_match(self, unit: GeneratedUnit) -> None:
        assert "case SizeTag.SMALL:" in unit.source
        assert "raise _rt.UnmappedEnumValueError(" in unit.source

    def test_imports(self, unit: GeneratedUnit) -> None:
        assert f"from {MODULE} import Shirt, ShirtDto, Size, SizeDto, SizeTag" in unit.source
        assert "import map_compiler.runtime as _rt" in unit.source

    def test_projection_converts_enum_members(self, unit: GeneratedUnit) -> None:
        field = "_rt.ProjectedField('size', 'size', ('size',), True, convert=_map_size_to_size_dto),"
        assert field in unit.source

    def test_source_compiles(self, unit: GeneratedUnit) -> None:
        compile(unit.source, unit.module, "exec")

    def test_custom_suffix_and_header(self) -> None:
        config = GeneratorConfig(unit_suffix="_gen", header="Custom header.")
        result = MappingGenerator(config).generate_types(Shirt)
        (unit,) = result.units
        assert unit.module == f"{MODULE}_gen"
        assert unit.source.startswith('"""Custom header.')

    def test_lookup_without_graph(self, generator: MappingGenerator) -> None:
        plan = generator.generate_types(Shirt).plans[0]
        with pytest.raises(EmissionError, match="unknown to the emitter"):
            Emitter().lookup(f"{MODULE}.Shirt", plan)

    def test_emit_unit_ignores_home_namespace(self, generator: MappingGenerator) -> None:
        plans = generator.generate_types(Shirt).plans
        unit = Emitter().emit_unit("elsewhere", plans)
        assert unit.module == "elsewhere_mappings"
