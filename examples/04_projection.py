"""
Example 04: Projections and Update Routines

This example demonstrates flattened members, the generated projection for
row-shaped data, and updating an existing target in place.
"""

from dataclasses import dataclass

from map_compiler import MappingGenerator, load_units, map_to


@dataclass
class Address:
    city: str
    zip: str


@dataclass
class VenueRow:
    title: str
    address_city: str
    address_zip: str


@map_to(VenueRow, enable_flattening=True, generate_projection=True, update_target=True)
@dataclass
class Venue:
    title: str
    address: Address


def main():
    result = MappingGenerator().generate_types(Venue, VenueRow)
    mappings = load_units(result.units)[result.units[0].module]

    print("=== Projections ===\n")

    print("1. Flattened mapping:")
    venue = Venue("Opera", Address("Oslo", "0150"))
    row = mappings.map_venue_to_venue_row(venue)
    print(f"   {row}\n")

    print("2. Projection:")
    projection = mappings.project_venue_to_venue_row()
    print(f"   {projection!r}")
    rows = projection.map_many(
        [
            {"title": "Opera", "address__city": "Oslo", "address__zip": "0150"},
            {"title": "Arena", "address__city": "Bergen", "address__zip": "5003"},
        ]
    )
    for r in rows:
        print(f"   - {r}")
    print()

    print("3. Update in place:")
    venue.title = "Opera House"
    mappings.update_venue_row_from_venue(venue, row)
    print(f"   {row}")


if __name__ == "__main__":
    main()
