"""Typische Zusatzpositionen (Add-ons) zu einer Hauptleistung.

Jede Kategorie besteht aus Auslöse-Begriffen für die Anfrage und Titelmustern
für den Katalog. Pro Kategorie wird höchstens ein Eintrag ergänzt: der erste
Eintrag des Trägers, dessen Titel eines der Muster enthält.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from utils import contains_any, normalize_text

from .models import CatalogEntry, CatalogIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddonCategory:
    name: str
    triggers: Tuple[str, ...]
    title_patterns: Tuple[str, ...]


# Begriffe sind bereits normalisiert (ä→a, ß→ss)
ADDON_CATEGORIES: Tuple[AddonCategory, ...] = (
    AddonCategory(
        "first_visit",
        ("erstordination", "erstkontakt", "erstbesuch", "erste ordination", "neuer patient", "neue patientin"),
        ("erstordination", "erstkontakt"),
    ),
    AddonCategory(
        "coordination",
        ("koordination", "erstordination", "erstkontakt"),
        ("koordinationszuschlag", "koordination"),
    ),
    AddonCategory(
        "report",
        ("befundbericht", "bericht", "arztbrief", "befundung"),
        ("befundbericht", "arztbrief", "bericht"),
    ),
    AddonCategory(
        "long_ecg",
        ("langzeit ekg", "langzeitekg", "ekg streifen", "rhythmusstreifen", "langes ekg"),
        ("langzeit ekg", "langzeitekg", "ekg streifen", "rhythmusstreifen"),
    ),
)


def first_entry_with_title(
    entries: Iterable[CatalogEntry], patterns: Sequence[str]
) -> Optional[CatalogEntry]:
    """Erster Eintrag, dessen normalisierter Titel eines der Muster enthält."""
    wanted = [normalize_text(p) for p in patterns]
    for entry in entries:
        if contains_any(normalize_text(entry.title), wanted):
            return entry
    return None


def derive_addons(
    text: str,
    payer: Optional[str],
    index: CatalogIndex,
    categories: Sequence[AddonCategory] = ADDON_CATEGORIES,
) -> List[CatalogEntry]:
    """Gibt die Zusatzpositionen zurück, deren Auslöser im Text vorkommen."""
    norm_text = normalize_text(text)
    if not norm_text:
        return []
    pool = index.entries_for(payer)
    result: List[CatalogEntry] = []
    for category in categories:
        if not contains_any(norm_text, category.triggers):
            continue
        entry = first_entry_with_title(pool, category.title_patterns)
        if entry is None:
            logger.debug("Kein Katalogeintrag für Zusatzkategorie %s (%s)", category.name, payer)
            continue
        if entry.pos not in {e.pos for e in result}:
            result.append(entry)
    return result


def merge_addons(
    candidates: Sequence[CatalogEntry],
    addons: Sequence[CatalogEntry],
    limit: int,
) -> List[CatalogEntry]:
    """Hängt Add-ons an, ohne Duplikate (nach Positionsnummer) und ohne ``limit`` zu überschreiten.

    Add-ons verdrängen dabei die am schlechtesten platzierten Kandidaten.
    """
    if limit <= 0:
        return []
    addon_keys = set()
    unique_addons: List[CatalogEntry] = []
    for addon in addons:
        key = (addon.payer, addon.pos)
        if key in addon_keys:
            continue
        addon_keys.add(key)
        unique_addons.append(addon)
    unique_addons = unique_addons[:limit]
    base = [c for c in candidates if (c.payer, c.pos) not in addon_keys]
    keep = max(limit - len(unique_addons), 0)
    return base[:keep] + unique_addons
