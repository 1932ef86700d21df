#!/usr/bin/env python3
"""Build ``catalogs/index.json`` from every catalog PDF in ``catalogs/``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BASE_DIR))

from katalog.pdf_import import build_index  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Katalogindex aus PDFs erzeugen")
    parser.add_argument("--catalogs", type=Path, default=BASE_DIR / "catalogs", help="Ordner mit den PDFs")
    parser.add_argument("--output", type=Path, default=BASE_DIR / "catalogs" / "index.json")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        build_index(args.catalogs, args.output)
    except FileNotFoundError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
