"""
Example 05: Writing Units to Disk

This example demonstrates writing generated units into a source tree and
checking whether they are up to date, the way ``map-compiler --check`` does.
"""

import sys
import tempfile
from pathlib import Path

from map_compiler import GeneratorConfig, MappingGenerator, write_units
from map_compiler.codegen.loader import stale_units

MODELS = '''\
from dataclasses import dataclass

from map_compiler import map_to


@dataclass
class OrderDto:
    id: int
    total: str


@map_to(OrderDto)
@dataclass
class Order:
    id: int
    total: float
'''


def main():
    root = Path(tempfile.mkdtemp())
    package = root / "shop"
    package.mkdir()
    (package / "__init__.py").write_text("")
    (package / "models.py").write_text(MODELS)
    sys.path.insert(0, str(root))

    # Same settings a [tool.map_compiler] table would give
    config = GeneratorConfig.from_mapping({"unit_suffix": "_maps"})
    result = MappingGenerator(config).generate_modules("shop.models")

    print("=== Writing Units ===\n")

    print("1. First write:")
    for path in write_units(result.units, root):
        print(f"   wrote {path.relative_to(root)}")
    print()

    print("2. Second write (nothing changed):")
    print(f"   {len(write_units(result.units, root))} file(s) written\n")

    print("3. Check after a manual edit:")
    (package / "models_maps.py").write_text("# edited\n")
    for path in stale_units(result.units, root):
        print(f"   out of date: {path.relative_to(root)}")

    # Clean up
    for file in sorted(root.rglob("*"), reverse=True):
        if file.is_dir():
            file.rmdir()
        else:
            file.unlink()
    root.rmdir()


if __name__ == "__main__":
    main()
