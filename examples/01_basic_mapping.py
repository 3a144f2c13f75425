"""
Example 01: Basic Mapping

This example demonstrates generating a mapping routine between a dataclass and a Pydantic model.
"""

from dataclasses import dataclass, field
from typing import Annotated

from pydantic import BaseModel

from map_compiler import MapIgnore, MappingGenerator, MapProperty, load_units, map_to


class UserDto(BaseModel):
    """User model exposed over the API"""
    id: int
    name: str
    email: str
    active: bool


@map_to(UserDto)
@dataclass
class User:
    """User model used inside the application"""
    id: int
    full_name: Annotated[str, MapProperty("name")]
    email: str
    active: bool = True
    password_hash: Annotated[str, MapIgnore()] = field(default="", repr=False)


def main():
    generator = MappingGenerator()
    result = generator.generate_types(User, UserDto)

    print("=== Basic Mapping ===\n")

    # Any diagnostics found while planning
    print("1. Diagnostics:")
    for diagnostic in result.diagnostics:
        print(f"   {diagnostic}")
    if not result.diagnostics:
        print("   none")
    print()

    # The generated source
    unit = result.units[0]
    print(f"2. Generated unit {unit.module}:")
    print(unit.source)

    # Load the unit and call the routine
    print("3. Calling the generated routine:")
    mappings = load_units(result.units)[unit.module]
    user = User(id=1, full_name="Alice", email="alice@example.com", password_hash="x")
    dto = mappings.map_user_to_user_dto(user)
    print(f"   Type: {type(dto).__name__}")
    print(f"   Data: {dto}")


if __name__ == "__main__":
    main()
