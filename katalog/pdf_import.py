"""Aufbau von ``catalogs/index.json`` aus den Honorarkatalog-PDFs.

Jede PDF in ``catalogs/`` wird mit ``pdfplumber`` in Textzeilen zerlegt. Eine
Zeile, die mit einer Positionsnummer beginnt, startet einen Eintrag; bis zu
zwei Folgezeilen werden angehängt, solange noch kein Punkte-/€-Wert erkennbar
ist. Eine direkt folgende Hinweiszeile ("nur einmal", "höchstens", ...) wird
als ``notes`` übernommen.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pdfplumber

from .models import CatalogEntry
from .payer import guess_payer_from_filename

logger = logging.getLogger(__name__)

SOFT_HYPHEN = "\u00ad"
MAX_CONTINUATION_LINES = 2
MIN_TITLE_LENGTH = 4

_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_DASH_RE = re.compile(r"[-–]\s*$")

# Punkte-/€-Notation: "5/II", "20 P", "€ 14,30", "12,5"
_POINTS = r"\d+\s*/\s*[IVX]+|\d+\s*P\b|€\s*\d+(?:[.,]\d+)?|\d+(?:[.,]\d+)?"
POINTS_RE = re.compile(_POINTS, re.IGNORECASE)

# erlaubte Nummernformen: 12, 54, 300, 11a, 12c, 178v
CODE_START_RE = re.compile(r"^\s*(\d{1,4}[a-z]?)(?=\s)", re.IGNORECASE)

LINE_PATTERNS: Sequence[re.Pattern[str]] = (
    # "12c Demenzpatienten – Angehörigengespräch AL 5/II" (mit Zusatzspalte)
    re.compile(rf"^\s*(\d{{1,4}}[a-z]?)\s+(.+?)\s+(?:[A-ZÄÖÜ]{{1,3}}\s+)?({_POINTS})\s*$"),
    # "56 Intramuskuläre Injektion 2/I ..." (ohne Zusatzspalte, Rest ignoriert)
    re.compile(rf"^\s*(\d{{1,4}}[a-z]?)\s+(.+?)\s+({_POINTS})(?:\s.*)?$"),
    # "11a Subcutane Injektion 2"
    re.compile(r"^\s*(\d{1,3}[a-z])\s+(.+?)\s+(\d+(?:[.,]\d+)?)\s*$"),
)

HINT_RE = re.compile(
    r"nicht verrechenbar|nur einmal|höchstens|limitiert|dokumentier|hinweis",
    re.IGNORECASE,
)


def clean_line(line: str) -> str:
    return _WHITESPACE_RE.sub(" ", line.replace(SOFT_HYPHEN, "")).strip()


def join_wrapped(line: str, continuation: str) -> str:
    """Hängt eine Folgezeile an; ein Trennstrich am Zeilenende verbindet ohne Leerzeichen."""
    if _TRAILING_DASH_RE.search(line):
        return clean_line(_TRAILING_DASH_RE.sub("", line) + continuation)
    return clean_line(line + " " + continuation)


def has_points(line: str) -> bool:
    """Punkte-/€-Wert hinter der führenden Positionsnummer vorhanden?"""
    rest = CODE_START_RE.sub("", line, count=1)
    return bool(POINTS_RE.search(rest))


def _match_line(text: str) -> Optional[tuple[str, str, str]]:
    for rx in LINE_PATTERNS:
        m = rx.match(text)
        if not m:
            continue
        pos, title, points = (g.strip() for g in m.groups())
        if pos and len(title) >= MIN_TITLE_LENGTH:
            return pos, title, points
        return None
    return None


def parse_catalog_lines(lines: Iterable[str], payer: str, source: str = "") -> List[CatalogEntry]:
    """Erzeugt Katalogeinträge aus den Textzeilen eines Katalogs."""
    raw = [c for c in (clean_line(ln) for ln in lines) if c]
    entries: List[CatalogEntry] = []
    i = 0
    while i < len(raw):
        line = raw[i]
        if not CODE_START_RE.match(line):
            i += 1
            continue

        # Umbrüche "Ange- / hörigengespräch" zusammenkleben
        glued = line
        j = i + 1
        while j < len(raw) and j <= i + MAX_CONTINUATION_LINES and not has_points(glued):
            nxt = raw[j]
            if CODE_START_RE.match(nxt):
                break
            glued = join_wrapped(glued, nxt)
            j += 1

        match = _match_line(glued)
        if match is None:
            i += 1
            continue

        pos, title, points = match
        notes = ""
        if j < len(raw) and HINT_RE.search(raw[j]) and not CODE_START_RE.match(raw[j]):
            notes = raw[j]
            j += 1
        entries.append(CatalogEntry(payer=payer, pos=pos, title=title, points=points, notes=notes, source=source))
        i = j
    return entries


def extract_pdf_lines(path: Path) -> List[str]:
    lines: List[str] = []
    with pdfplumber.open(path) as pdf:
        for page in pdf.pages:
            text = page.extract_text() or ""
            lines.extend(text.splitlines())
    return lines


def parse_pdf(path: Path) -> List[CatalogEntry]:
    payer = guess_payer_from_filename(path.name)
    entries = parse_catalog_lines(extract_pdf_lines(path), payer, source=path.name)
    logger.info("  %s: %s Positionen (%s)", path.name, len(entries), payer)
    return entries


def merge_entries(entries: Iterable[CatalogEntry]) -> List[CatalogEntry]:
    """Dedupliziert nach Träger und Positionsnummer (letzter gewinnt) und sortiert."""
    by_key: Dict[tuple[str, str], CatalogEntry] = {}
    for entry in entries:
        by_key[(entry.payer, entry.pos)] = entry
    return sorted(by_key.values(), key=lambda e: (e.payer, e.pos))


def entry_to_dict(entry: CatalogEntry) -> Dict[str, str]:
    return {
        "payer": entry.payer,
        "pos": entry.pos,
        "title": entry.title,
        "points": entry.points,
        "notes": entry.notes,
        "source": entry.source,
    }


def build_index(catalog_dir: Path, out_file: Path) -> int:
    """Liest alle PDFs aus ``catalog_dir`` und schreibt den Index nach ``out_file``."""
    pdfs = sorted(p for p in catalog_dir.iterdir() if p.suffix.lower() == ".pdf")
    if not pdfs:
        raise FileNotFoundError(f"Keine PDFs im Ordner {catalog_dir} gefunden.")

    collected: List[CatalogEntry] = []
    for path in pdfs:
        logger.info("→ Lese %s", path.name)
        try:
            collected.extend(parse_pdf(path))
        except Exception as exc:
            # Einzelne defekte PDFs überspringen, der Rest wird trotzdem indexiert
            logger.warning("Fehler beim Lesen: %s (%s)", path.name, exc)

    items = merge_entries(collected)
    payload = {
        "generatedAt": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "items": [entry_to_dict(e) for e in items],
    }
    out_file.parent.mkdir(parents=True, exist_ok=True)
    out_file.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info("✓ %s Positionen nach %s geschrieben", len(items), out_file)
    return len(items)
