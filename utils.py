"""Gemeinsame Text-Hilfsfunktionen für Katalogsuche, Heuristiken und Prüfung.

Alle Vergleiche zwischen Benutzereingabe, Katalogtiteln, Regeln und Synonymen
laufen über :func:`normalize_text`. Änderungen an der Normalisierung wirken
sich daher auf die Suche, die Synonymtabelle und die Regeltabelle gleichzeitig
aus und sollten nur zusammen mit einem Neuaufbau von ``catalogs/synonyms.json``
erfolgen.
"""

# utils.py
import logging
import re
import unicodedata
from typing import Iterable, List, Set

logger = logging.getLogger(__name__)

_DIGRAPHS = {
    "ä": "ae",
    "ö": "oe",
    "ü": "ue",
    "ß": "ss",
}
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Positionsnummern in Honorarkatalogen: 12, 54, 300, 11a, 12c, 178v
POSITION_CODE_RE = re.compile(r"\b\d{1,4}[a-z]?\b", re.IGNORECASE)

# Füllwörter, die beim Token-Fallback keine Aussagekraft haben
STOPWORDS: Set[str] = {
    "aus", "der", "die", "das", "den", "dem", "des", "und", "oder", "mit", "ohne",
    "fur", "bei", "von", "vom", "zum", "zur", "ein", "eine", "einer", "eines",
    "pro", "nach", "auf", "ist", "wurde", "wird", "bitte", "patient", "patientin",
}


def _strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: str, digraphs: bool = False) -> str:
    """Liefert eine vergleichbare Kleinschreibung ohne Diakritika und Sonderzeichen.

    Standardmässig wird das diakritische Zeichen entfernt (ä→a, é→e), ``ß`` wird
    zu ``ss``. Mit ``digraphs=True`` werden deutsche Umlaute als Digraph
    geschrieben (ä→ae, ö→oe, ü→ue). Beide Varianten sind idempotent.
    """
    if not isinstance(text, str) or not text:
        return ""
    value = text.lower()
    if digraphs:
        for umlaut, replacement in _DIGRAPHS.items():
            value = value.replace(umlaut, replacement)
    else:
        value = value.replace("ß", "ss")
    value = _strip_accents(value)
    value = _NON_ALNUM_RE.sub(" ", value)
    return " ".join(value.split())


def tokenize(text: str) -> List[str]:
    """Zerlegt bereits normalisierten Text in Tokens."""
    return [tok for tok in text.split(" ") if tok]


def dedupe_preserve_order(items: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    result: List[str] = []
    for item in items:
        if not item or item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def contains_any(text: str, needles: Iterable[str]) -> bool:
    """``True``, wenn einer der (normalisierten) Begriffe in ``text`` vorkommt."""
    return any(needle and needle in text for needle in needles)


def mask_secret(value: str | None, missing: str = "❌ kein Key") -> str:
    """Kürzt einen API-Key auf eine ungefährliche Vorschau (``sk-abcd…wxyz``)."""
    if not value:
        return missing
    if len(value) <= 11:
        return value[:3] + "…"
    return value[:7] + "…" + value[-4:]
