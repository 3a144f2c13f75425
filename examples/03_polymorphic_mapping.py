"""
Example 03: Polymorphic Mapping and Hooks

This example demonstrates dispatch over derived types and the before/after map hooks.
"""

from dataclasses import dataclass

from map_compiler import MappingGenerator, MappingHookError, load_units, map_derived_type, map_to


@dataclass
class AnimalDto:
    name: str
    checked: bool = False


@dataclass
class DogDto(AnimalDto):
    breed: str = ""


@dataclass
class CatDto(AnimalDto):
    lives: int = 9


@map_to(AnimalDto, before_map="validate", after_map="mark_checked")
@map_derived_type("Dog", DogDto)
@map_derived_type("Cat", CatDto)
@dataclass
class Animal:
    name: str

    def validate(self):
        if not self.name:
            raise ValueError("an animal needs a name")

    def mark_checked(self, target):
        target.checked = True


@map_to(DogDto)
@dataclass
class Dog(Animal):
    breed: str = ""


@map_to(CatDto)
@dataclass
class Cat(Animal):
    lives: int = 9


def main():
    result = MappingGenerator().generate_types(Animal, Dog, Cat)

    print("=== Polymorphic Mapping ===\n")
    print(result.units[0].source)

    mappings = load_units(result.units)[result.units[0].module]

    print("1. Dispatch:")
    for animal in (Dog("Rex", "beagle"), Cat("Tom", 7), Animal("Generic")):
        print(f"   {animal} -> {mappings.map_animal_to_animal_dto(animal)}")
    print()

    print("2. Before-map hook:")
    try:
        mappings.map_animal_to_animal_dto(Animal(""))
    except MappingHookError as e:
        print(f"   {type(e).__name__}: {e}")


if __name__ == "__main__":
    main()
