#!/usr/bin/env python3
"""Try the candidate search from the command line.

Example::

    python scripts/try_lookup.py "Blutentnahme aus der Vene" --payer ÖGK
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BASE_DIR))

from katalog.finder import CandidateFinder  # noqa: E402
from katalog.payer import detect_payer  # noqa: E402
from katalog.storage import load_catalog_index, load_rules  # noqa: E402
from synonyms.storage import load_synonyms  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Kandidatensuche testen")
    parser.add_argument("query")
    parser.add_argument("--payer", help="Träger; ohne Angabe aus dem Text erkannt")
    parser.add_argument("--limit", type=int, default=10)
    args = parser.parse_args()

    index = load_catalog_index(BASE_DIR / "catalogs" / "index.json")
    finder = CandidateFinder(
        index,
        synonyms=load_synonyms(BASE_DIR / "catalogs" / "synonyms.json"),
        rules=load_rules(BASE_DIR / "rules" / "catalog_rules.json"),
    )
    payer = args.payer or detect_payer(args.query)
    print(f"{payer or 'alle Träger'}, '{args.query}' ->")
    for entry in finder.find(args.query, payer, limit=args.limit):
        print(f"  {entry.payer:8} {entry.pos:>5}  {entry.title}  [{entry.points}]")


if __name__ == "__main__":
    main()
