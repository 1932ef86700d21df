"""Nachträgliche Prüfung der Modellantwort gegen die Kandidatenliste.

Die Prüfung ist weich: Sie erkennt Positionsnummern, die nicht freigegeben
wurden, und ersetzt die Antwort dann durch eine lokal erzeugte Rückfrage mit
den erlaubten Kandidaten. Ob eine freigegebene Nummer fachlich passt, kann sie
nicht beurteilen.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from katalog.models import CatalogEntry
from prompts import render_candidate_table
from utils import POSITION_CODE_RE, dedupe_preserve_order

logger = logging.getLogger(__name__)

# Zahlen, die keine Positionsnummern sind (Punkte, Beträge, Mengen, Dauer, Daten)
_NON_CODE_NUMBERS: Sequence[re.Pattern[str]] = (
    re.compile(r"\b\d{1,2}\.\d{1,2}\.\d{2,4}\b"),
    re.compile(r"\b\d+\s*/\s*[ivx]+\b", re.IGNORECASE),
    re.compile(r"€\s*\d+(?:[.,]\d+)?"),
    re.compile(r"\b\d+(?:[.,]\d+)?\s*(?:€|eur\b|euro\b)", re.IGNORECASE),
    re.compile(r"\b\d+[.,]\d+\b"),
    re.compile(r"\b\d+\s*(?:punkte|pkt)\b", re.IGNORECASE),
    # "5 P" nur als eigene Tabellenzelle
    re.compile(r"(?<=\|)[ \t]*\d+[ \t]*p\.?[ \t]*(?=\||$)", re.IGNORECASE | re.MULTILINE),
    # Multiplikator nur ohne Leerzeichen: 2x, 3×, 2mal
    re.compile(r"\b\d+(?:×|x\b|mal\b)", re.IGNORECASE),
    re.compile(r"\b\d+\s*(?:min|minute|minuten|std|stunde|stunden|h)\b", re.IGNORECASE),
    re.compile(r"\b\d+\s*(?:j|jahr|jahre|jahren)\b", re.IGNORECASE),
    re.compile(r"\b\d+\s*%"),
)

_LIST_MARKER_RE = re.compile(r"^(\s*)(\d+)[.)](?=\s)")

# Mengenangaben wie "2 pro Quartal" nur in Punkte- und Zusatzinfo-Spalte einer Tabellenzeile
_CELL_QUANTITY_RE = re.compile(r"\b\d+\s*(?:×|x\b|mal\b|pro\b|je\b|per\b)", re.IGNORECASE)

# Stellen, an denen eine Zahl immer als Positionsnummer zählt
_EXPLICIT_CODE_RE: Sequence[re.Pattern[str]] = (
    re.compile(r"\bpos(?:ition)?(?:\.-?\s*nr)?\.?\s*:?\s*(\d{1,4}[a-z]?)\b", re.IGNORECASE),
    re.compile(r"^[ \t]*\|?[ \t]*(\d{1,4}[a-z]?)[ \t]*\|", re.IGNORECASE | re.MULTILINE),
)
_COPY_PASTE_RE = re.compile(r"copy-paste-liste\s*:([^\n]*)", re.IGNORECASE)

CLARIFICATION_INTRO = (
    "Die Antwort des Modells enthielt nicht freigegebene Positionsnummern ({codes}). "
    "Aus dem Honorarkatalog kommen nur folgende Positionen in Frage:"
)
CLARIFICATION_QUESTION = (
    "Rückfrage: Welche dieser Leistungen wurde erbracht? Bitte die Eingabe präzisieren."
)


@dataclass
class ValidationResult:
    allowed: List[str] = field(default_factory=list)
    used: List[str] = field(default_factory=list)
    illegal: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.illegal


def _blank(match: re.Match) -> str:
    return " " * len(match.group(0))


def _strip_list_markers(text: str) -> str:
    """Entfernt fortlaufende Aufzählungen 1., 2., … am Zeilenanfang, sonst nichts."""
    expected = 1
    lines = []
    for line in text.split("\n"):
        m = _LIST_MARKER_RE.match(line)
        if m and int(m.group(2)) in (expected, 1):
            expected = int(m.group(2)) + 1
            line = m.group(1) + " " * (m.end() - m.end(1)) + line[m.end():]
        lines.append(line)
    return "\n".join(lines)


def _blank_cell_quantities(text: str) -> str:
    lines = []
    for line in text.split("\n"):
        parts = line.split("|", 2)
        if len(parts) == 3:
            line = parts[0] + "|" + parts[1] + "|" + _CELL_QUANTITY_RE.sub(_blank, parts[2])
        lines.append(line)
    return "\n".join(lines)


def _explicit_codes(text: str) -> List[Tuple[int, str]]:
    found = [(m.start(1), m.group(1)) for rx in _EXPLICIT_CODE_RE for m in rx.finditer(text)]
    for m in _COPY_PASTE_RE.finditer(text):
        found.extend((m.start(1) + c.start(), c.group(0)) for c in POSITION_CODE_RE.finditer(m.group(1)))
    return found


def extract_codes(text: str) -> List[str]:
    """Alle positionsnummer-förmigen Tokens (kleingeschrieben, ohne Duplikate).

    Nummern nach "Pos."/"Position", in der ersten Tabellenspalte und in der
    Copy-Paste-Liste zählen immer, auch wenn ein Mengen- oder Punktemuster
    sie sonst verdecken würde.
    """
    if not text:
        return []
    cleaned = _blank_cell_quantities(_strip_list_markers(text))
    for rx in _NON_CODE_NUMBERS:
        cleaned = rx.sub(_blank, cleaned)
    found = _explicit_codes(text)
    found.extend((m.start(), m.group(0)) for m in POSITION_CODE_RE.finditer(cleaned))
    return dedupe_preserve_order(code.lower() for _, code in sorted(found))


def validate_reply(reply: str, candidates: Sequence[CatalogEntry]) -> ValidationResult:
    allowed = dedupe_preserve_order(str(c.pos).lower() for c in candidates)
    used = extract_codes(reply)
    allowed_set = set(allowed)
    illegal = [code for code in used if code not in allowed_set]
    return ValidationResult(allowed=allowed, used=used, illegal=illegal)


def build_clarification(illegal: Sequence[str], candidates: Sequence[CatalogEntry]) -> str:
    """Lokale Rückfrage mit der Tabelle der erlaubten Kandidaten."""
    intro = CLARIFICATION_INTRO.format(codes=", ".join(illegal))
    return "\n\n".join([intro, render_candidate_table(candidates), CLARIFICATION_QUESTION])


def enforce_allow_list(reply: str, candidates: Sequence[CatalogEntry]) -> tuple[str, ValidationResult]:
    """Gibt die Antwort unverändert zurück oder ersetzt sie durch eine Rückfrage."""
    result = validate_reply(reply, candidates)
    if result.ok:
        return reply, result
    logger.warning(
        "Modellantwort enthielt nicht freigegebene Positionen %s (erlaubt: %s)",
        result.illegal, result.allowed[:20],
    )
    return build_clarification(result.illegal, candidates), result
