"""Unit tests for PlanValidator rules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated

import pytest

from map_compiler.core.directives import MapIgnore, MapProperty, extract_directives, map_derived_type, map_to
from map_compiler.core.enums import Severity
from map_compiler.core.generator import GenerationResult, MappingGenerator
from map_compiler.core.reader import TypeGraph
from map_compiler.mapping.builder import PlanBuilder
from map_compiler.mapping.index import DirectiveIndex
from map_compiler.mapping.validation import PlanValidator

MODULE = __name__


class Shade(Enum):
    LIGHT = 1
    DARK = 2


class ShadeDto(Enum):
    LIGHT = 1


@dataclass
class UserDto:
    id: int
    email: str


@dataclass(frozen=True)
class UserRecord:
    id: int
    email: str


# --- MAP004 ---


@map_to(UserDto)
@dataclass
class UserMissingEmail:
    id: int


@map_to(UserDto)
@dataclass
class UserWithEmail:
    id: int
    email: str


@map_to(UserDto)
@dataclass
class UserWithRenamedEmail:
    id: int
    mail: Annotated[str, MapProperty("email")]


@dataclass
class BadgeDto:
    name: str
    secret: Annotated[str, MapIgnore()]


@dataclass
class OptionalSecretBadgeDto:
    name: str
    secret: Annotated[str, MapIgnore()] = ""


@map_to(BadgeDto)
@dataclass
class Badge:
    name: str


@map_to(OptionalSecretBadgeDto)
@dataclass
class OptionalSecretBadge:
    name: str


@map_to(BadgeDto, factory="blank")
@dataclass
class FactoryBadge:
    name: str

    @staticmethod
    def blank() -> BadgeDto:
        return BadgeDto("", "issued")


# --- Single-rule failures ---


@map_to(Shade)
@dataclass
class ToEnum:
    id: int


@map_to(UserDto)
@map_to(UserDto)
@dataclass
class DeclaredTwice:
    id: int
    email: str


@map_to(UserDto)
@dataclass
class DanglingRename:
    id: int
    email: str
    nick: Annotated[str, MapProperty("nickname")]


@map_to(UserDto, before_map="check")
@dataclass
class MissingHook:
    id: int
    email: str


@map_to(UserDto, before_map="check", after_map="done")
@dataclass
class WithHooks:
    id: int
    email: str

    def check(self) -> None:
        pass

    def done(self, target: UserDto) -> None:
        pass


@map_to(UserDto)
@dataclass
class Ambiguous:
    id: int
    email: str
    EMAIL: str


@map_to(UserRecord, update_target=True)
@dataclass
class UpdatesRecord:
    id: int
    email: str


@map_to(UserDto, generate_projection=True, after_map="done")
@dataclass
class ProjectedWithHook:
    id: int
    email: str

    def done(self, target: UserDto) -> None:
        pass


@dataclass
class LooseUserDto:
    id: int = 0
    email: str = ""


@map_to(LooseUserDto)
@dataclass
class Unconvertible:
    id: bytes
    email: str


@map_to(UserDto)
@dataclass
class DanglingAndMissing:
    id: int
    nick: Annotated[str, MapProperty("nickname")]


# --- Polymorphism ---


@dataclass
class ItemDto:
    sku: str


@dataclass
class BookDto(ItemDto):
    pass


@dataclass
class Unrelated:
    sku: str


@map_to(ItemDto)
@map_derived_type("Book", BookDto)
@dataclass
class Item:
    sku: str


@dataclass
class Book(Item):
    pass


@map_to(ItemDto)
@map_derived_type("Gadget", "Unrelated")
@dataclass
class Stock:
    sku: str


@dataclass
class Gadget(Stock):
    pass


# --- Enums ---


@map_to(UserDto)
class ShadeToClass(Enum):
    LIGHT = 1


@map_to(ShadeDto)
class Tone(Enum):
    LIGHT = 1
    DARK = 2


# --- Cascade ---


@dataclass
class AccountDto:
    owner: UserDto


@map_to(AccountDto)
@dataclass
class Account:
    owner: UserMissingEmail


def make_local() -> type:
    @map_to(UserDto)
    @dataclass
    class LocalUser:
        id: int
        email: str

    return LocalUser


@pytest.fixture
def run(generator: MappingGenerator):
    def _run(*types: type) -> GenerationResult:
        return generator.generate_types(*types)

    return _run


def _ids(result: GenerationResult) -> list[str]:
    return [d.id for d in result.diagnostics]


class TestRequiredMembers:
    def test_missing_required_member_reported_once(self, run) -> None:
        result = run(UserMissingEmail)
        assert _ids(result) == ["MAP004"]
        assert "'email'" in result.diagnostics[0].message
        assert result.units == ()

    def test_matching_member_clears_error(self, run) -> None:
        assert _ids(run(UserWithEmail)) == []

    def test_rename_clears_error(self, run) -> None:
        assert _ids(run(UserWithRenamedEmail)) == []

    def test_ignored_required_member_reported(self, run) -> None:
        result = run(Badge)
        assert _ids(result) == ["MAP004"]
        assert "'secret'" in result.diagnostics[0].message
        assert "ignored" in result.diagnostics[0].message
        assert result.units == ()

    def test_ignored_member_with_default_allowed(self, run) -> None:
        assert _ids(run(OptionalSecretBadge)) == []

    def test_factory_supplies_ignored_member(self, run) -> None:
        assert _ids(run(FactoryBadge)) == []


class TestObjectRules:
    @pytest.mark.parametrize(
        ("cls", "rule"),
        [
            (ToEnum, "MAP002"),
            (DanglingRename, "MAP003"),
            (MissingHook, "MAP005"),
            (Ambiguous, "MAP007"),
            (UpdatesRecord, "MAP011"),
            (ProjectedWithHook, "MAP009"),
        ],
    )
    def test_rule(self, run, cls: type, rule: str) -> None:
        assert set(_ids(run(cls))) == {rule}

    def test_duplicate_reported_for_each_directive(self, run) -> None:
        assert _ids(run(DeclaredTwice)) == ["MAP006", "MAP006"]

    def test_nested_class_not_extensible(self, run) -> None:
        result = run(make_local())
        assert _ids(result) == ["MAP001"]

    def test_hooks_found(self, run) -> None:
        assert _ids(run(WithHooks)) == []

    def test_unconvertible_member_is_a_warning(self, run) -> None:
        result = run(Unconvertible)
        assert _ids(result) == ["MAP010"]
        assert not result.has_errors
        assert len(result.units) == 1

    def test_first_failing_rule_wins(self, run) -> None:
        assert _ids(run(DanglingAndMissing)) == ["MAP003"]

    def test_diagnostic_location_points_at_source(self, run) -> None:
        (diagnostic,) = run(UserMissingEmail).diagnostics
        assert diagnostic.location.symbol == "UserMissingEmail"
        assert diagnostic.location.path is not None
        assert diagnostic.location.path.endswith("test_validation.py")


class TestPolymorphicRules:
    def test_derived_pair_needs_own_directive(self, run) -> None:
        assert _ids(run(Item, Book)) == ["MAP008"]

    def test_derived_type_must_derive(self, run) -> None:
        assert _ids(run(Stock, Gadget, Unrelated)) == ["MAP012"]


class TestEnumRules:
    def test_enum_target_must_be_enum(self, run) -> None:
        assert _ids(run(ShadeToClass)) == ["ENUM001"]

    def test_unmapped_value_warning(self, run) -> None:
        result = run(Tone)
        (warning,) = result.diagnostics
        assert warning.id == "ENUM002"
        assert warning.severity is Severity.WARNING
        assert "Tone.DARK" in warning.message
        assert not result.has_errors
        assert len(result.units) == 1


class TestCascade:
    def test_dependent_plan_withheld(self, run) -> None:
        result = run(Account, UserMissingEmail)
        assert sorted(_ids(result)) == ["MAP004", "MAP099"]
        cascaded = next(d for d in result.diagnostics if d.id == "MAP099")
        assert "map_user_missing_email_to_user_dto" in cascaded.message
        assert result.units == ()


class TestValidatorDirectly:
    def test_clean_plan_has_no_diagnostics(self) -> None:
        graph = TypeGraph.from_types(UserWithEmail)
        directives, _ = extract_directives(graph)
        index = DirectiveIndex(directives, graph)
        plan = PlanBuilder(graph, index).build(directives[0])
        assert PlanValidator(graph, index).validate(plan) == ()

    def test_conflict_detail_reported(self) -> None:
        graph = TypeGraph.from_types(UserWithEmail)
        directives, _ = extract_directives(graph)
        index = DirectiveIndex(directives, graph)
        plan = PlanBuilder(graph, index).build(directives[0])
        (diagnostic,) = PlanValidator(graph, index).validate(plan, conflict="declared elsewhere")
        assert diagnostic.id == "MAP006"
        assert "declared elsewhere" in diagnostic.message
