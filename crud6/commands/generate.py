#!/usr/bin/env python3
"""
Schema generation command.

Scans a database and writes one schema JSON file per table. When a named
connection is given the files go to a subfolder of the same name so the
schema service picks them up for ``model@connection`` routes.

Usage:
  crud6-generate [--database NAME] [--output-dir DIR] [--no-create] [--no-update] [--no-delete] [--no-list] ...
"""
import argparse
import os
import sys
from typing import Dict, List, Optional

from crud6.commands.common import add_scan_arguments, build_scanner, resolve_engine, scan
from crud6.config import get_settings
from crud6.schema.generator import SchemaGenerator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="crud6-generate", description="Generate CRUD6 schema files from a database.")
    add_scan_arguments(parser)
    parser.add_argument("-r", "--output-dir", help="Directory to write schemas to (default: CRUD6_SCHEMA_DIRECTORY)")
    for operation in ("create", "update", "delete", "list"):
        parser.add_argument(f"--no-{operation}", action="store_true", help=f"Disable the {operation} operation")
    return parser


def crud_options(args: argparse.Namespace) -> Dict[str, bool]:
    options = dict(get_settings().crud_options)
    for operation in ("create", "update", "delete", "list"):
        if getattr(args, f"no_{operation}"):
            options[operation] = False
    return options


def output_directory(args: argparse.Namespace) -> str:
    directory = args.output_dir or get_settings().schema_directory
    if args.database:
        directory = os.path.join(directory, args.database)
    return directory


def format_options(options: Dict[str, bool]) -> str:
    lines = ["Operation | Enabled", "----------+--------"]
    lines.extend(f"{operation:<9} | {'yes' if enabled else 'no'}" for operation, enabled in options.items())
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    options = crud_options(args)
    directory = output_directory(args)
    try:
        engine = resolve_engine(args.url, args.database)
        tables, relationships = scan(build_scanner(engine, args.database), args)
        if not tables:
            print("No tables found to generate schemas for.", file=sys.stderr)
            return 1
        files = SchemaGenerator(directory, options).generate_schemas(tables, relationships)
    except Exception as exc:
        print(f"Schema generation failed: {exc}", file=sys.stderr)
        return 1

    print(f"Generated {len(files)} schema file(s) in {directory}:")
    for path in files:
        print(f"  - {path}")
    print("")
    print(format_options(options))
    return 0


if __name__ == "__main__":
    sys.exit(main())
