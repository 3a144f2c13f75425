"""Unit tests for the TypeGraph reader."""

from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Annotated, Generic, NamedTuple, Protocol, TypeVar

import pytest
from pydantic import BaseModel, ConfigDict, Field

from map_compiler.core.directives import MapIgnore, MapProperty, map_derived_type, map_to
from map_compiler.core.enums import ContainerKind, TypeKind, TypeRefKind
from map_compiler.core.exceptions import TypeGraphError, TypeNotFoundError, UnsupportedTypeError
from map_compiler.core.reader import TypeGraph

T = TypeVar("T", bound="Tag")

MODULE = __name__


class Color(Enum):
    RED = 1
    GREEN = 2


@dataclass
class Tag:
    label: str


@map_to(Tag)
@dataclass
class Label:
    label: str


@dataclass
class Address:
    street: str
    city: str


@dataclass
class Customer:
    id: int
    name: Annotated[str, MapProperty("full_name")]
    secret: Annotated[str, MapIgnore()]
    address: Address | None
    tags: list[Tag]
    color: Color = Color.RED
    created: datetime = field(default_factory=datetime.now)
    internal: int = field(default=0, init=False, metadata={"map_ignore": True})


@dataclass(frozen=True)
class Point:
    x: int
    y: int


class Pair(NamedTuple):
    left: int
    right: int = 0


class Account(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: int = Field(alias="accountId")
    owner: str
    locked: bool = Field(default=False, frozen=True)


class FrozenAccount(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int


class Greeter(Protocol):
    def greet(self) -> str: ...


class Plain:
    nickname: str

    def __init__(self, name: str, age: int = 0) -> None:
        self.name = name
        self.age = age

    @property
    def display(self) -> str:
        return self.name

    def validate(self) -> None:
        pass


class Box(Generic[T]):
    def __init__(self, item: T) -> None:
        self.item = item


@map_to("ShapeDto")
@map_derived_type("Square", "SquareDto")
class Shape(ABC):
    @abstractmethod
    def area(self) -> float: ...


class Square(Shape):
    def __init__(self, side: float) -> None:
        self.side = side

    def area(self) -> float:
        return self.side * self.side


@dataclass
class ShapeDto:
    side: float


@dataclass
class SquareDto(ShapeDto):
    pass


def make_local() -> type:
    @dataclass
    class Local:
        value: int

    return Local


def _get(graph: TypeGraph, name: str):
    return graph.get(f"{MODULE}.{name}")


class TestDiscovery:
    def test_from_types_follows_member_references(self) -> None:
        graph = TypeGraph.from_types(Customer)
        assert graph.has(f"{MODULE}.Address")
        assert graph.has(f"{MODULE}.Tag")
        assert graph.has(f"{MODULE}.Color")

    def test_from_types_follows_directive_references(self) -> None:
        graph = TypeGraph.from_types(Label)
        assert graph.has(f"{MODULE}.Tag")

    def test_string_references_are_not_followed(self) -> None:
        graph = TypeGraph.from_types(Shape)
        assert not graph.has(f"{MODULE}.ShapeDto")

    def test_scalars_are_not_described(self) -> None:
        graph = TypeGraph.from_types(Customer)
        assert not graph.has("datetime.datetime")

    def test_from_modules(self) -> None:
        graph = TypeGraph.from_modules(MODULE)
        assert f"{MODULE}.Plain" in graph
        assert f"{MODULE}.Box" in graph

    def test_from_modules_unknown_module(self) -> None:
        with pytest.raises(TypeGraphError, match="Cannot import module"):
            TypeGraph.from_modules("no_such_module_for_map_compiler")

    def test_only_classes_can_be_added(self) -> None:
        with pytest.raises(UnsupportedTypeError):
            TypeGraph.from_types(42)  # type: ignore[arg-type]

    def test_descriptors_sorted(self) -> None:
        graph = TypeGraph.from_types(Customer)
        assert graph.type_names == sorted(graph.type_names)
        assert [d.qualified_name for d in graph] == graph.type_names

    def test_duplicate_descriptor_rejected(self) -> None:
        descriptor = _get(TypeGraph.from_types(Tag), "Tag")
        with pytest.raises(TypeGraphError, match="Duplicate"):
            TypeGraph([descriptor, descriptor])


class TestKinds:
    @pytest.mark.parametrize(
        ("cls", "kind"),
        [
            (Customer, TypeKind.CLASS),
            (Point, TypeKind.RECORD),
            (Pair, TypeKind.STRUCT),
            (Color, TypeKind.ENUM),
            (Greeter, TypeKind.INTERFACE),
            (Account, TypeKind.CLASS),
            (FrozenAccount, TypeKind.RECORD),
            (Plain, TypeKind.CLASS),
        ],
    )
    def test_kind(self, cls: type, kind: TypeKind) -> None:
        graph = TypeGraph.from_types(cls)
        assert _get(graph, cls.__qualname__).kind is kind

    def test_enum_values_in_declaration_order(self) -> None:
        graph = TypeGraph.from_types(Color)
        assert _get(graph, "Color").enum_values == ("RED", "GREEN")

    def test_abstract(self) -> None:
        graph = TypeGraph.from_types(Shape, Square)
        assert _get(graph, "Shape").abstract
        assert not _get(graph, "Square").abstract

    def test_ancestors(self) -> None:
        graph = TypeGraph.from_types(Square)
        assert _get(graph, "Square").ancestors == (f"{MODULE}.Shape",)
        assert graph.is_subclass(f"{MODULE}.Square", f"{MODULE}.Shape")
        assert not graph.is_subclass(f"{MODULE}.Shape", f"{MODULE}.Square")

    def test_nested_class_not_extensible(self) -> None:
        graph = TypeGraph.from_types(make_local())
        (descriptor,) = graph.descriptors
        assert not descriptor.extensible

    def test_module_class_extensible(self) -> None:
        assert _get(TypeGraph.from_types(Tag), "Tag").extensible


class TestDataclassMembers:
    def test_member_order_and_flags(self) -> None:
        customer = _get(TypeGraph.from_types(Customer), "Customer")
        names = [m.name for m in customer.members]
        assert names == ["id", "name", "secret", "address", "tags", "color", "created", "internal"]
        assert customer.member("id").required
        assert not customer.member("color").required
        assert not customer.member("internal").init

    def test_member_directives(self) -> None:
        customer = _get(TypeGraph.from_types(Customer), "Customer")
        assert customer.member("name").rename_to == "full_name"
        assert customer.member("secret").ignored
        assert customer.member("internal").ignored

    def test_type_refs(self) -> None:
        customer = _get(TypeGraph.from_types(Customer), "Customer")
        address = customer.member("address").type
        assert address.kind is TypeRefKind.OBJECT
        assert address.nullable
        tags = customer.member("tags").type
        assert tags.kind is TypeRefKind.COLLECTION
        assert tags.container is ContainerKind.LIST
        assert tags.element.name == f"{MODULE}.Tag"
        assert customer.member("color").type.kind is TypeRefKind.ENUM
        assert customer.member("created").type.name == "datetime.datetime"

    def test_frozen_members_not_settable(self) -> None:
        point = _get(TypeGraph.from_types(Point), "Point")
        assert all(not m.settable for m in point.members)


class TestOtherMembers:
    def test_namedtuple(self) -> None:
        pair = _get(TypeGraph.from_types(Pair), "Pair")
        assert pair.member("left").required
        assert not pair.member("right").required
        assert not pair.member("left").settable

    def test_pydantic_alias_and_frozen_field(self) -> None:
        account = _get(TypeGraph.from_types(Account), "Account")
        assert account.member("account_id").constructor_keyword == "accountId"
        assert account.member("account_id").required
        assert not account.member("locked").required
        assert not account.member("locked").settable
        assert account.member("owner").settable

    def test_plain_class_members(self) -> None:
        plain = _get(TypeGraph.from_types(Plain), "Plain")
        nickname = plain.member("nickname")
        assert not nickname.init
        assert nickname.settable
        assert plain.member("name").required
        assert not plain.member("age").required

    def test_read_only_property(self) -> None:
        plain = _get(TypeGraph.from_types(Plain), "Plain")
        display = plain.member("display")
        assert display.readable
        assert not display.settable
        assert not display.writable

    def test_callables(self) -> None:
        plain = _get(TypeGraph.from_types(Plain), "Plain")
        assert "validate" in plain.callables

    def test_generic_parameters(self) -> None:
        box = _get(TypeGraph.from_types(Box), "Box")
        (param,) = box.generic_parameters
        assert param.name == "T"
        assert param.bound == "Tag"
        assert box.member("item").type.kind is TypeRefKind.TYPE_PARAMETER


class TestLookup:
    def test_get_unknown(self) -> None:
        graph = TypeGraph.from_types(Tag)
        with pytest.raises(TypeNotFoundError):
            graph.get("nowhere.Missing")

    def test_resolve(self) -> None:
        graph = TypeGraph.from_types(Shape, ShapeDto, SquareDto)
        qualified = f"{MODULE}.ShapeDto"
        assert graph.resolve(qualified) == qualified
        assert graph.resolve("ShapeDto", MODULE) == qualified
        assert graph.resolve("ShapeDto") == qualified
        assert graph.resolve("Unknown") is None

    def test_closure(self) -> None:
        graph = TypeGraph.from_types(Customer, Pair)
        names = {d.qualified_name for d in graph.closure([f"{MODULE}.Customer"])}
        assert f"{MODULE}.Address" in names
        assert f"{MODULE}.Pair" not in names

    def test_directives_recorded(self) -> None:
        shape = _get(TypeGraph.from_types(Shape), "Shape")
        (directive,) = shape.directives
        assert directive.target == "ShapeDto"
        assert shape.derived_type_mappings[0].target == "SquareDto"

    def test_dataclass_fields_helper_consistent(self) -> None:
        customer = _get(TypeGraph.from_types(Customer), "Customer")
        init_fields = [f.name for f in dataclasses.fields(Customer) if f.init]
        assert [m.name for m in customer.members if m.init] == init_fields
