"""Command-line demo: seed a record and reconcile every retrieval path."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import yaml

from typed_records.config import ReconcilerConfig
from typed_records.engine import MemoryEngine
from typed_records.errors import EngineFailure, MissingIdentityField
from typed_records.parsing.projection_parser import parse_projections
from typed_records.parsing.query_lexer import escape_if_keyword
from typed_records.reconcile import Reconciler, ReconciliationReport
from typed_records.store import RecordStore

BUILDING_SHAPES = """
# The shapes a caller might declare for one building record
BuildingWithThing { id: record_id, address: string }
BuildingWithRid { rid: string identity, address: string }
BuildingWithRidOption { rid: string? identity, address: string }
Building { address: string }
"""


async def run(
    collection: str,
    key: str,
    address: str,
    config: ReconcilerConfig,
    shapes_text: str = BUILDING_SHAPES,
) -> ReconciliationReport:
    """Seed one record into a fresh engine and verify all shapes against it."""
    async with MemoryEngine() as engine:
        store = RecordStore(engine)
        seeded = await store.query(
            f"CREATE {escape_if_keyword(collection)} SET id = $rid, address = $addr",
            {"rid": key, "addr": address},
        )
        seeded.rows(0)
        reconciler = Reconciler(store, config)
        return await reconciler.verify(collection, parse_projections(shapes_text))


def _print_identity(report: ReconciliationReport) -> None:
    for entry in report.entries:
        for record in entry.records:
            try:
                tbl_id = record.get_tbl_id()
            except MissingIdentityField:
                continue
            print(f"get_tbl_id: {tbl_id}")
            print(f"get_id:     {record.get_id()}")
            print(f"get_tbl:    {record.get_tbl()}")
            return


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    arg_parser = argparse.ArgumentParser(
        description="Reconcile whole-collection and query retrieval of record identities"
    )
    arg_parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to a YAML config file (optional)",
    )
    arg_parser.add_argument(
        "--collection",
        default="building_tbl",
        help="Collection to seed and verify (default: building_tbl)",
    )
    arg_parser.add_argument(
        "--key",
        default="1234567890",
        help="Key of the seeded record (default: 1234567890)",
    )
    arg_parser.add_argument(
        "--address",
        default="123 Main St",
        help="Address of the seeded record (default: '123 Main St')",
    )
    arg_parser.add_argument(
        "--shapes",
        type=Path,
        default=None,
        help="File with projection definitions to verify instead of the built-in ones",
    )
    arg_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log at DEBUG level",
    )
    args = arg_parser.parse_args(argv)

    try:
        config = ReconcilerConfig(args.config)
        level = logging.DEBUG if args.verbose else config.log_level
        shapes_text = args.shapes.read_text(encoding="utf-8") if args.shapes else BUILDING_SHAPES
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        report = asyncio.run(run(args.collection, args.key, args.address, config, shapes_text))
    except (SyntaxError, ValueError, EngineFailure) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    print(report.format())
    _print_identity(report)
    return 0 if report.passed else 1


if __name__ == "__main__":
    sys.exit(main())
