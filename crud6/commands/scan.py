#!/usr/bin/env python3
"""
Database scan command.

Prints tables, columns, keys and detected relationships of a database, either
as a readable report or as JSON.

Usage:
  crud6-scan [--database NAME] [--tables a,b] [--output table|json] [--detect-implicit] [--sample-size N] [--url URL]
"""
import argparse
import json
import sys
from typing import Dict, List, Optional

from crud6.commands.common import add_scan_arguments, build_scanner, resolve_engine, scan


def _column_line(column: Dict) -> str:
    parts = [f"{column['name']} ({column['type']}"]
    if column.get("length"):
        parts[0] += f", {column['length']}"
    parts[0] += ")"
    if not column.get("nullable", True):
        parts.append("NOT NULL")
    if column.get("autoincrement"):
        parts.append("AUTO_INCREMENT")
    return " ".join(parts)


def format_report(tables: Dict, relationships: Dict) -> str:
    referenced_by: Dict[str, List[str]] = {}
    for name, found in relationships.items():
        for reference in found["references"]:
            referenced_by.setdefault(reference["table"], []).append(f"{name} via {reference['localKey']}")

    lines: List[str] = [f"Found {len(tables)} table(s)", ""]
    for name, info in tables.items():
        lines.append(f"Table: {name}")
        lines.append(f"  Primary Key: {', '.join(info['primaryKey']) or '(none)'}")
        lines.append("  Columns:")
        lines.extend(f"    - {_column_line(column)}" for column in info["columns"].values())
        if info["foreignKeys"]:
            lines.append("  Foreign Keys:")
            for fk in info["foreignKeys"].values():
                lines.append(
                    f"    - {', '.join(fk['localColumns'])} -> {fk['foreignTable']}.{', '.join(fk['foreignColumns'])}"
                )
        references = relationships.get(name, {}).get("references") or []
        if references:
            lines.append("  References:")
            for reference in references:
                kind = reference["type"]
                if kind == "implicit":
                    kind += f", {round(reference.get('confidence', 0) * 100)}% confidence"
                lines.append(
                    f"    - {reference['table']} via {reference['localKey']} -> {reference['foreignKey']} ({kind})"
                )
        if referenced_by.get(name):
            lines.append("  Referenced By:")
            lines.extend(f"    - {entry}" for entry in referenced_by[name])
        lines.append("")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="crud6-scan", description="Scan a database for tables and relationships.")
    add_scan_arguments(parser)
    parser.add_argument("-o", "--output", choices=("table", "json"), default="table", help="Output format")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        engine = resolve_engine(args.url, args.database)
        tables, relationships = scan(build_scanner(engine, args.database), args)
    except Exception as exc:
        print(f"Scan failed: {exc}", file=sys.stderr)
        return 1

    if args.output == "json":
        print(json.dumps({"tables": tables, "relationships": relationships}, indent=2, default=str))
    else:
        print(format_report(tables, relationships))
    return 0


if __name__ == "__main__":
    sys.exit(main())
