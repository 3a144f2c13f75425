"""
Example 02: Enum Mapping

This example demonstrates enum mapping by name, case-insensitive match and
equivalence groups, and what happens with a value that has no counterpart.
"""

from enum import Enum

from map_compiler import GeneratorConfig, MappingGenerator, UnmappedEnumValueError, load_units, map_to


class PetStatusDto(Enum):
    Unknown = "unknown"
    Available = "available"
    Sold = "sold"
    Archived = "archived"


@map_to(PetStatusDto, bidirectional=True)
class PetStatus(Enum):
    NONE = 0
    AVAILABLE = 1
    SOLD = 2
    DELETED = 3


class PriorityDto(Enum):
    Low = 1
    High = 2


@map_to(PriorityDto)
class Priority(Enum):
    LOW = 1
    HIGH = 2
    URGENT = 3


def main():
    # "Deleted" and "Archived" are not in the default groups
    config = GeneratorConfig(
        enum_equivalence_groups=(
            ("None", "Unknown", "Default"),
            ("Deleted", "Archived", "Removed"),
        ),
    )
    result = MappingGenerator(config).generate_types(PetStatus, PetStatusDto, Priority, PriorityDto)

    print("=== Enum Mapping ===\n")

    print("1. Diagnostics:")
    for diagnostic in result.diagnostics:
        print(f"   {diagnostic}")
    print()

    mappings = load_units(result.units)[result.units[0].module]

    print("2. Forward and reverse:")
    for status in PetStatus:
        dto = mappings.map_pet_status_to_pet_status_dto(status)
        back = mappings.map_pet_status_dto_to_pet_status(dto)
        print(f"   {status.name} -> {dto.name} -> {back.name}")
    print()

    print("3. Unmapped value:")
    try:
        mappings.map_priority_to_priority_dto(Priority.URGENT)
    except UnmappedEnumValueError as e:
        print(f"   {type(e).__name__}: {e}")


if __name__ == "__main__":
    main()
