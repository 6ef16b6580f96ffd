"""Shared option handling for the scan and generate commands."""
import argparse
import logging
import os
from typing import Dict, List, Optional, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from crud6.config import get_settings
from crud6.db.scanner import DatabaseScanner

logger = logging.getLogger("crud6.commands")


def add_scan_arguments(parser: argparse.ArgumentParser) -> None:
    settings = get_settings()
    parser.add_argument("-d", "--database", help="Named database connection (CRUD6_CONNECTION_<NAME>)")
    parser.add_argument("-t", "--tables", help="Comma-separated list of tables to include")
    parser.add_argument("-i", "--detect-implicit", action="store_true",
                        default=settings.relationship_detection.detect_implicit,
                        help="Detect relationships from column naming and data sampling")
    parser.add_argument("-s", "--sample-size", type=int, default=settings.relationship_detection.sample_size,
                        help="Rows sampled per candidate relationship (0 disables sampling)")
    parser.add_argument("--url", help="Database URL; overrides --database and DATABASE_URL")


def resolve_engine(url: Optional[str] = None, database: Optional[str] = None) -> Engine:
    if url:
        return create_engine(url)
    if os.getenv("DATABASE_URL") and not database:
        return create_engine(os.environ["DATABASE_URL"])
    # crud6.db.database builds the default engine at import time
    from crud6.db.database import get_engine
    return get_engine(database)


def build_scanner(engine: Engine, connection: Optional[str] = None) -> DatabaseScanner:
    detection = get_settings().relationship_detection
    scanner = DatabaseScanner(engine, connection_name=connection)
    scanner.set_table_prefixes(detection.table_prefixes)
    scanner.set_confidence_threshold(detection.confidence_threshold)
    return scanner


def split_tables(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


def scan(scanner: DatabaseScanner, args: argparse.Namespace) -> Tuple[Dict, Dict]:
    """Scan the database and return ``(tables, relationships)`` without excluded tables."""
    tables = scanner.scan_database(split_tables(args.tables) or None)
    excluded = set(get_settings().exclude_tables)
    tables = {name: info for name, info in tables.items() if name not in excluded}
    relationships = scanner.detect_relationships(tables, args.detect_implicit, args.sample_size)
    logger.info("scan_complete: tables=%d implicit=%s", len(tables), args.detect_implicit)
    return tables, relationships
