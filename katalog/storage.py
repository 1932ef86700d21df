"""Loaders for the generated catalog index and the preference rule table.

Both artifacts are static JSON files produced offline. Loading never raises
for a missing or unreadable file: the caller receives an explicit fallback
value (empty index, empty rule list) and a log entry, and decides itself
whether the application can serve requests with it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Tuple

from .models import CatalogEntry, CatalogIndex, Rule

logger = logging.getLogger(__name__)


def _read_json(path: Path) -> Any:
    raw = path.read_bytes()
    for enc in ("utf-8-sig", "utf-16"):
        try:
            return json.loads(raw.decode(enc))
        except (UnicodeDecodeError, json.JSONDecodeError):
            continue
    return json.loads(raw.decode("utf-8", errors="replace"))


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, Iterable):
        return ()
    return tuple(_as_str(v) for v in value if _as_str(v))


def entry_from_dict(item: dict) -> CatalogEntry | None:
    """Convert one ``items`` record, ``None`` if payer, pos or title are missing."""
    payer = _as_str(item.get("payer"))
    pos = _as_str(item.get("pos"))
    title = _as_str(item.get("title"))
    if not (payer and pos and title):
        return None
    return CatalogEntry(
        payer=payer,
        pos=pos,
        title=title,
        points=_as_str(item.get("points")),
        notes=_as_str(item.get("notes")),
        source=_as_str(item.get("source")),
    )


def load_catalog_index(path: str | Path) -> CatalogIndex:
    """Return the index stored at ``path`` or an empty index if unavailable."""
    p = Path(path)
    if not p.is_file():
        logger.error("Katalogindex %s nicht gefunden – keine Kandidaten verfügbar", p)
        return CatalogIndex()
    try:
        data = _read_json(p)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Katalogindex %s konnte nicht gelesen werden: %s", p, exc)
        return CatalogIndex()

    if isinstance(data, list):
        raw_items, generated_at = data, ""
    elif isinstance(data, dict):
        raw_items, generated_at = data.get("items") or [], _as_str(data.get("generatedAt"))
    else:
        logger.error("Unerwartetes Katalogindex-Format: %s", type(data).__name__)
        return CatalogIndex()

    items: List[CatalogEntry] = []
    skipped = 0
    for raw in raw_items:
        entry = entry_from_dict(raw) if isinstance(raw, dict) else None
        if entry is None:
            skipped += 1
            continue
        items.append(entry)
    if skipped:
        logger.warning("  %s unvollständige Katalogeinträge übersprungen.", skipped)
    index = CatalogIndex(items=items, generated_at=generated_at)
    logger.info(
        "  ✓ Katalogindex '%s' geladen (%s Einträge, %s Träger).",
        p, len(index), len(index.by_payer),
    )
    return index


def rule_from_dict(item: dict) -> Rule | None:
    prefer = _as_tuple(item.get("prefer"))
    if not prefer:
        return None
    payer = _as_str(item.get("payer")) or None
    return Rule(
        prefer=prefer,
        payer=payer,
        when_all=_as_tuple(item.get("whenAll")),
        when_any=_as_tuple(item.get("whenAny")),
    )


def load_rules(path: str | Path) -> List[Rule]:
    """Return the preference rules at ``path``; an empty list if unavailable."""
    p = Path(path)
    if not p.is_file():
        logger.warning("Regeltabelle %s nicht gefunden – keine bevorzugten Positionen", p)
        return []
    try:
        data = _read_json(p)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Regeltabelle %s konnte nicht gelesen werden: %s", p, exc)
        return []
    if not isinstance(data, list):
        logger.error("Unerwartetes Regeltabellen-Format: %s", type(data).__name__)
        return []
    rules = [r for r in (rule_from_dict(x) for x in data if isinstance(x, dict)) if r]
    logger.info("  ✓ Regeltabelle '%s' geladen (%s Regeln).", p, len(rules))
    return rules
