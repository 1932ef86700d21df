"""Erkennung des Versicherungsträgers aus Freitext und Dateinamen.

Die Muster stehen in einer festen Prioritätsreihenfolge; der erste Treffer
gewinnt. Ein nicht erkennbarer Träger ist kein Fehler: :func:`detect_payer`
liefert dann ``None``.
"""

from __future__ import annotations

import re
from typing import Optional, Pattern, Sequence, Tuple

from utils import normalize_text

OEGK = "ÖGK"
BVAEB = "BVAEB"
SVS = "SVS"
KUF = "KUF"
MEDRECH = "MEDRECH"

PAYERS: Tuple[str, ...] = (OEGK, BVAEB, SVS, KUF, MEDRECH)

UNKNOWN_FILE_PAYER = "UNBEKANNT"

# Muster auf normalisiertem Text (ö→o, ü→u)
PAYER_PATTERNS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (OEGK, (
        r"\bogk\b",
        r"\bo g k\b",
        r"\boegk\b",
        r"\bgesundheitskasse\b",
        r"\b[a-z]?gkk\b",
    )),
    (BVAEB, (
        r"\bbvaeb\b",
        r"\bb v a e b\b",
        r"\bbva\b",
        r"\bvaeb\b",
        r"\beisenbahn\w* und bergbau\w*",
    )),
    (SVS, (
        r"\bsvs\b",
        r"\bsva\b",
        r"\bsvb\b",
        r"\b(?:sv|sozialversicherung\w*) der selbst(?:st)?(?:a|ae)ndig\w*",
        r"\bselbst(?:st)?(?:a|ae)ndig\w* versichert\w*",
    )),
    (KUF, (
        r"\bkuf\b",
        r"\bkrankenf(?:u|ue)rsorge\w*",
    )),
    (MEDRECH, (
        r"\bmedrech\b",
    )),
)

_COMPILED: Tuple[Tuple[str, Tuple[Pattern[str], ...]], ...] = tuple(
    (payer, tuple(re.compile(p) for p in patterns)) for payer, patterns in PAYER_PATTERNS
)


def detect_payer(text: str) -> Optional[str]:
    """Return the payer code named in ``text`` or ``None`` if none is recognised."""
    norm = normalize_text(text)
    if not norm:
        return None
    for payer, patterns in _COMPILED:
        if any(rx.search(norm) for rx in patterns):
            return payer
    return None


def strip_payer_mentions(norm_text: str) -> str:
    """Entfernt alle Trägernennungen aus bereits normalisiertem Text."""
    result = norm_text
    for _payer, patterns in _COMPILED:
        for rx in patterns:
            result = rx.sub(" ", result)
    return " ".join(result.split())


# Dateinamen der Honorarkataloge, z. B. "OEGK_Honorarordnung_2024.pdf"
_FILENAME_PATTERNS: Sequence[Tuple[str, Pattern[str]]] = (
    (OEGK, re.compile(r"oegk|ögk|oe-gk|ö\s*g\s*k|gesundheitskasse|gesamtvertrag|honorarkatalog", re.I)),
    (BVAEB, re.compile(r"bvaeb", re.I)),
    (SVS, re.compile(r"(?<![a-z])svs(?![a-z])|sozialversicherungsanstalt", re.I)),
    (KUF, re.compile(r"(?<![a-z])kuf(?![a-z])|kaernten|kärnten|tirol", re.I)),
    (MEDRECH, re.compile(r"medrech", re.I)),
)


def guess_payer_from_filename(filename: str) -> str:
    """Leitet den Träger aus dem PDF-Dateinamen ab (``UNBEKANNT`` ohne Treffer)."""
    fn = filename.lower()
    for payer, rx in _FILENAME_PATTERNS:
        if rx.search(fn):
            return payer
    return UNKNOWN_FILE_PAYER
