"""Enumerations shared by the reader, matchers, validator and emitter."""

from __future__ import annotations

from enum import Enum


class TypeKind(Enum):
    """Shape of a described type."""

    CLASS = "class"
    RECORD = "record"
    STRUCT = "struct"
    ENUM = "enum"
    INTERFACE = "interface"

    @property
    def is_object(self) -> bool:
        return self in (TypeKind.CLASS, TypeKind.RECORD, TypeKind.STRUCT)


class TypeRefKind(Enum):
    """Kind of a member's declared type."""

    SCALAR = "scalar"
    OBJECT = "object"
    ENUM = "enum"
    COLLECTION = "collection"
    TYPE_PARAMETER = "type_parameter"
    OPAQUE = "opaque"


class ContainerKind(Enum):
    """Concrete container a collection member is rebuilt into."""

    LIST = "list"
    TUPLE = "tuple"
    SET = "set"
    FROZENSET = "frozenset"


class NamingStrategy(Enum):
    """How source member names are transformed before matching."""

    IDENTITY = "identity"
    LOWER_FIRST = "lower_first"
    UNDERSCORE = "underscore"
    HYPHEN = "hyphen"


class MatchKind(Enum):
    """How a correspondence was established."""

    DIRECTIVE = "directive"
    NAME = "name"
    FLATTENED = "flattened"
    EXACT = "exact"
    CASE_INSENSITIVE = "case_insensitive"
    EQUIVALENCE = "equivalence"


class ConversionKind(Enum):
    """How a source value becomes a target value."""

    DIRECT = "direct"
    TO_STRING = "to_string"
    TO_ISO_STRING = "to_iso_string"
    TO_FLOAT = "to_float"
    TO_DECIMAL = "to_decimal"
    PARSE_INT = "parse_int"
    PARSE_FLOAT = "parse_float"
    PARSE_DECIMAL = "parse_decimal"
    PARSE_BOOL = "parse_bool"
    PARSE_UUID = "parse_uuid"
    PARSE_DATETIME = "parse_datetime"
    PARSE_DATE = "parse_date"
    PARSE_TIME = "parse_time"
    NESTED = "nested"
    ENUM = "enum"
    COLLECTION = "collection"
    UNCONVERTIBLE = "unconvertible"

    @property
    def is_builtin(self) -> bool:
        return self not in (
            ConversionKind.DIRECT,
            ConversionKind.NESTED,
            ConversionKind.ENUM,
            ConversionKind.COLLECTION,
            ConversionKind.UNCONVERTIBLE,
        )


class Severity(Enum):
    """Diagnostic severity."""

    ERROR = "error"
    WARNING = "warning"


class DiagnosticCategory(Enum):
    """Diagnostic namespace."""

    OBJECT_MAPPING = "ObjectMapping"
    ENUM_MAPPING = "EnumMapping"
