"""Runtime support imported by generated mapping modules.

Generated code depends on this module only: the typed runtime errors, the
boolean parser used by ``str -> bool`` conversions and ``Projection``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from map_compiler.core.exceptions import (
    MappingHookError,
    MappingRuntimeError,
    ProjectionColumnError,
    UnknownDerivedTypeError,
    UnmappedEnumValueError,
)

T = TypeVar("T")

COLUMN_SEPARATOR = "__"

_TRUE = frozenset({"true", "1", "yes", "y", "on"})
_FALSE = frozenset({"false", "0", "no", "n", "off"})


def parse_bool(value: str) -> bool:
    """Parse the usual textual spellings of a boolean.

    Raises:
        ValueError: If ``value`` is not a recognised spelling.
    """
    text = value.strip().casefold()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Cannot parse {value!r} as a boolean")


@dataclass(frozen=True)
class ProjectedField:
    """One selected target member and the source attribute path feeding it.

    ``convert`` is the enum routine for members whose enum type differs
    between source and target; it is never called with ``None``.
    """

    target_member: str
    keyword: str
    path: tuple[str, ...]
    via_constructor: bool = True
    convert: Callable[[Any], Any] | None = None

    @property
    def column(self) -> str:
        """Row key for the field: the source path joined with ``__``."""
        return COLUMN_SEPARATOR.join(self.path)

    def value(self, raw: Any) -> Any:
        if raw is None or self.convert is None:
            return raw
        return self.convert(raw)


class Projection(Generic[T]):
    """Side-effect-free selection of source members into a target type.

    A projection carries no hooks, nested construction or conversions other
    than enum lookups, so it can be pushed down to a query layer: ``columns``
    names what to select, ``map_one`` / ``map_many`` build targets from the
    fetched rows. Enum columns hold source enum members.

    Args:
        source: The source class.
        target: The class to construct.
        fields: Selected members in target declaration order.
    """

    def __init__(self, source: type, target: type[T], fields: Iterable[ProjectedField]) -> None:
        self._source = source
        self._target = target
        self._fields = tuple(fields)

    @property
    def source(self) -> type:
        return self._source

    @property
    def target(self) -> type[T]:
        return self._target

    @property
    def fields(self) -> tuple[ProjectedField, ...]:
        return self._fields

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(f.column for f in self._fields)

    @property
    def paths(self) -> dict[str, tuple[str, ...]]:
        """Target member -> source attribute path."""
        return {f.target_member: f.path for f in self._fields}

    def _build(self, values: Mapping[str, Any]) -> T:
        kwargs = {f.keyword: values[f.target_member] for f in self._fields if f.via_constructor}
        instance = self._target(**kwargs)
        for f in self._fields:
            if not f.via_constructor:
                setattr(instance, f.target_member, values[f.target_member])
        return instance

    def select(self, obj: Any) -> dict[str, Any]:
        """Read the selected values from a source object.

        A ``None`` link on a flattened path yields ``None``.
        """
        values = {}
        for f in self._fields:
            value = obj
            for attribute in f.path:
                if value is None:
                    break
                value = getattr(value, attribute)
            values[f.target_member] = f.value(value)
        return values

    def apply(self, obj: Any) -> T:
        """Project a source object into a new target instance."""
        return self._build(self.select(obj))

    def map_one(self, row: Mapping[str, Any]) -> T:
        """Build a target from a row keyed by ``columns``.

        Raises:
            ProjectionColumnError: If the row lacks selected columns.
        """
        missing = [f.column for f in self._fields if f.column not in row]
        if missing:
            raise ProjectionColumnError(self._target.__name__, missing)
        return self._build({f.target_member: f.value(row[f.column]) for f in self._fields})

    def map_many(self, rows: Iterable[Mapping[str, Any]]) -> list[T]:
        """Map all rows via map_one."""
        return [self.map_one(row) for row in rows]

    def __repr__(self) -> str:
        return f"Projection({self._source.__name__} -> {self._target.__name__}, columns={list(self.columns)})"


__all__ = [
    "COLUMN_SEPARATOR",
    "MappingHookError",
    "MappingRuntimeError",
    "ProjectedField",
    "Projection",
    "ProjectionColumnError",
    "UnknownDerivedTypeError",
    "UnmappedEnumValueError",
    "parse_bool",
]
