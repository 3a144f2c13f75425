"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from types import ModuleType

import pytest

from map_compiler.codegen.loader import load_units
from map_compiler.core.cache import PlanCache
from map_compiler.core.config import GeneratorConfig
from map_compiler.core.generator import GenerationResult, MappingGenerator


@pytest.fixture
def config() -> GeneratorConfig:
    """Default generator configuration."""
    return GeneratorConfig()


@pytest.fixture
def generator(config: GeneratorConfig) -> MappingGenerator:
    """Generator with a private plan cache."""
    return MappingGenerator(config, PlanCache())


@pytest.fixture
def compile_types(generator: MappingGenerator):
    """Helper that runs a pass over classes and loads the generated units.

    Usage:
        result, modules = compile_types(Person, PersonDto)
        modules["test_x_mappings"].map_person_to_person_dto(person)
    """

    def _compile(*types: type) -> tuple[GenerationResult, dict[str, ModuleType]]:
        result = generator.generate_types(*types)
        return result, load_units(result.units)

    return _compile


@pytest.fixture
def write_module(tmp_path: Path):
    """Helper to write Python modules into the temp directory.

    Usage:
        write_module("shop/models.py", "class Order: ...")
    """

    def _write(relative_path: str, content: str) -> Path:
        file_path = tmp_path / relative_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
        return file_path

    return _write
