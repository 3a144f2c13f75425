"""Command-line interface for map_compiler."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from map_compiler.codegen.loader import stale_units, write_units
from map_compiler.core.config import GeneratorConfig
from map_compiler.core.exceptions import ConfigurationError, TypeGraphError
from map_compiler.core.generator import MappingGenerator
from map_compiler.core.reader import TypeGraph

logger = logging.getLogger(__name__)


def _load_config(path: Path | None) -> GeneratorConfig:
    if path is not None:
        return GeneratorConfig.from_pyproject(path)
    default = Path("pyproject.toml")
    if default.is_file():
        return GeneratorConfig.from_pyproject(default)
    return GeneratorConfig()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="map-compiler",
        description="Generate object and enum mapping modules from map_to directives.",
    )
    parser.add_argument(
        "modules",
        nargs="+",
        help="Dotted names of the modules declaring mapped types",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Root directory for generated modules (default: print to stdout)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Exit with status 1 if generated modules under --output are missing or out of date",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="pyproject.toml holding [tool.map_compiler] (default: ./pyproject.toml if present)",
    )
    parser.add_argument(
        "--path",
        type=Path,
        default=Path("."),
        help="Directory prepended to sys.path before importing modules (default: .)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) output",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING, format="%(message)s")
    if args.verbose:
        logging.getLogger("map_compiler").setLevel(logging.DEBUG)

    sys.path.insert(0, str(args.path.resolve()))
    try:
        config = _load_config(args.config)
        graph = TypeGraph.from_modules(*args.modules)
    except (ConfigurationError, TypeGraphError) as e:
        print(f"map-compiler: {e}", file=sys.stderr)
        return 2

    result = MappingGenerator(config).generate(graph)
    for diagnostic in result.diagnostics:
        print(diagnostic, file=sys.stderr)

    output = args.output or Path(".")
    if args.check:
        stale = stale_units(result.units, output)
        for path in stale:
            print(f"out of date: {path}", file=sys.stderr)
        return 1 if stale or result.has_errors else 0

    if args.output is not None:
        for path in write_units(result.units, args.output):
            logger.info("wrote %s", path)
            print(f"wrote {path}")
    else:
        for unit in result.units:
            print(f"# --- {unit.module} ---")
            print(unit.source)

    return 1 if result.has_errors else 0
