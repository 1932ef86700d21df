import argparse
import json
import sys
from pathlib import Path
from typing import List
import logging

if __package__ in {None, ""}:
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
    __package__ = "synonyms"

from katalog.storage import load_catalog_index

from . import generator, storage

DEFAULT_INDEX = Path("catalogs/index.json")
DEFAULT_OUTPUT = Path("catalogs/synonyms.json")


def build(args: argparse.Namespace) -> None:
    """Build the synonym table from the catalog index and write it as JSON."""

    index = load_catalog_index(args.index)
    if not len(index):
        raise SystemExit(f"no catalog entries in {args.index}")
    table = generator.build_synonym_map(index.items)

    if args.output:
        storage.save_synonyms(table, args.output)
        print(f"Wrote {args.output} with {len(table)} keys")
    else:
        data = {token: alts for token, alts in sorted(table.entries.items())}
        sys.stdout.buffer.write(json.dumps(data, ensure_ascii=False, indent=2).encode("utf-8"))


def validate(args: argparse.Namespace) -> None:
    """Validate synonym data from a JSON file."""

    if not args.input.exists():
        raise SystemExit(f"synonym table not found: {args.input}")
    try:
        storage.validate_synonym_data(storage.read_synonym_json(args.input))
        storage.validate_synonyms(storage.load_synonyms(args.input))
    except ValueError as e:
        raise SystemExit(f"invalid synonym table: {e}")

    print(f"Synonym table '{args.input}' OK")


def stats(args: argparse.Namespace) -> None:
    """Show statistics about synonyms."""

    table = storage.load_synonyms(args.input)
    total_keys = len(table.entries)
    total_alternatives = sum(len(v) for v in table.entries.values())

    print(f"Keys: {total_keys}")
    print(f"Alternatives: {total_alternatives}")


def main(argv: List[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Synonym table utility")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("build", help="build synonyms.json from the catalog index")
    p.add_argument("--index", type=Path, default=DEFAULT_INDEX, help="catalog index JSON")
    p.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT,
        help="write result to this file ('-' for stdout)",
    )
    p.set_defaults(func=build)

    p = sub.add_parser("validate", help="validate synonym data")
    p.add_argument("input", type=Path)
    p.set_defaults(func=validate)

    p = sub.add_parser("stats", help="show statistics")
    p.add_argument("input", type=Path)
    p.set_defaults(func=stats)

    parser.add_argument("-v", "--verbose", action="count", default=0, help="increase verbosity")

    args = parser.parse_args(argv)
    if getattr(args, "output", None) == Path("-"):
        args.output = None

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    args.func(args)


if __name__ == "__main__":
    main()
