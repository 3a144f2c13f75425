"""Generator configuration.

GeneratorConfig is a Pydantic model for type-safe generator settings. It can
be built in code or loaded from the ``[tool.map_compiler]`` table of a
``pyproject.toml``.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from map_compiler.core.exceptions import ConfigurationError

DEFAULT_EQUIVALENCE_GROUPS: tuple[tuple[str, ...], ...] = (("None", "Unknown", "Default"),)

_TOOL_TABLE = "map_compiler"


class GeneratorConfig(BaseModel):
    """Configuration for a generation pass."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enum_equivalence_groups: tuple[tuple[str, ...], ...] = DEFAULT_EQUIVALENCE_GROUPS
    max_workers: int = Field(default=1, ge=1)
    unit_suffix: str = "_mappings"
    runtime_module: str = "map_compiler.runtime"
    cache_size: int = Field(default=256, ge=0)
    header: str = "Generated by map_compiler. Do not edit."

    @field_validator("enum_equivalence_groups")
    @classmethod
    def _groups_have_members(cls, groups: tuple[tuple[str, ...], ...]) -> tuple[tuple[str, ...], ...]:
        for group in groups:
            if len(group) < 2:
                raise ValueError(f"equivalence group {list(group)} needs at least two values")
        return groups

    @field_validator("unit_suffix")
    @classmethod
    def _suffix_is_identifier(cls, suffix: str) -> str:
        if not suffix or not ("x" + suffix).isidentifier():
            raise ValueError(f"unit_suffix {suffix!r} must extend a module name")
        return suffix

    @classmethod
    def from_mapping(cls, data: dict[str, Any], source: str = "<mapping>") -> GeneratorConfig:
        """Validate a plain mapping into a config.

        Raises:
            ConfigurationError: If a key is unknown or a value is invalid.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
            )
            raise ConfigurationError(source, details) from e

    @classmethod
    def from_pyproject(cls, path: Path | str) -> GeneratorConfig:
        """Load ``[tool.map_compiler]`` from a pyproject file.

        A missing table yields the defaults.

        Raises:
            ConfigurationError: If the file cannot be read or parsed, or the
                table holds invalid settings.
        """
        path = Path(path)
        try:
            with path.open("rb") as fh:
                document = tomllib.load(fh)
        except OSError as e:
            raise ConfigurationError(str(path), f"cannot read file: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(str(path), f"invalid TOML: {e}") from e

        table = document.get("tool", {}).get(_TOOL_TABLE, {})
        if not isinstance(table, dict):
            raise ConfigurationError(str(path), f"[tool.{_TOOL_TABLE}] must be a table")
        return cls.from_mapping(table, source=str(path))

    def fingerprint(self) -> str:
        """Stable serialization used in plan cache keys."""
        return self.model_dump_json()
