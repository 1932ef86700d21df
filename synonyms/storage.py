"""Storage helpers for the synonym table.

Loading tolerates UTF-8 (with or without BOM) and UTF-16 files, normalizes
keys and values with :func:`synonyms.normalizer.normalize_term` and rebuilds
the reverse index. Saving writes the plain ``{token: [alternatives]}`` format
consumed by the server.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from utils import dedupe_preserve_order

from .models import SynonymMap
from .normalizer import normalize_term

logger = logging.getLogger(__name__)


def _append_index_entry(target: Dict[str, List[str]], key: str, base: str) -> None:
    if not key:
        return
    bucket = target.setdefault(key, [])
    if base not in bucket:
        bucket.append(base)


def read_synonym_json(path: str | Path) -> Any:
    """Decode and parse the raw JSON at ``path``; ``None`` for an empty file."""
    raw = Path(path).read_bytes()

    def _decode() -> str:
        for enc in ("utf-8-sig", "utf-16"):
            try:
                return raw.decode(enc)
            except UnicodeDecodeError:
                continue
        return raw.decode("utf-8", errors="replace")

    text = _decode()
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        cleaned = "".join(ch for ch in text if ch >= " " or ch in "\n\t\r")
        if not cleaned.strip():
            return None
        return json.loads(cleaned)


def load_synonyms(path: str | Path) -> SynonymMap:
    """Return the table stored at ``path`` or an empty table if not found."""
    p = Path(path)
    table = SynonymMap()
    if not p.exists():
        logger.warning(
            "Synonymtabelle %s nicht gefunden – Erweiterungen deaktiviert", p
        )
        return table
    data = read_synonym_json(p)
    if data is None:
        return table

    if not isinstance(data, dict):
        logger.error("Unerwartetes Synonymtabellen-Format: %s", type(data).__name__)
        return table

    for key, value in data.items():
        token = normalize_term(str(key))
        if not token:
            continue
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            continue
        alternatives = [normalize_term(v) for v in value if isinstance(v, str)]
        alternatives = [a for a in alternatives if a and a != token]
        merged = table.entries.get(token, []) + alternatives
        table.entries[token] = dedupe_preserve_order(merged)

    rebuild_reverse_index(table)
    return table


def save_synonyms(table: SynonymMap, path: str | Path) -> None:
    """Persist ``table`` as JSON at ``path``."""
    p = Path(path)
    data = {token: alts[:] for token, alts in sorted(table.entries.items()) if alts}
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def validate_synonyms(table: SynonymMap) -> None:
    """Raise ``ValueError`` if the table contains malformed entries."""
    for token, alternatives in table.entries.items():
        if not isinstance(token, str) or not token:
            raise ValueError(f"Invalid token: {token!r}")
        if not isinstance(alternatives, list):
            raise ValueError(f"Invalid alternatives for {token}")
        for alt in alternatives:
            if not isinstance(alt, str) or not alt:
                raise ValueError(f"Invalid alternative for {token}: {alt!r}")


def validate_synonym_data(data: Any) -> None:
    """Check raw JSON before loading; :func:`load_synonyms` would silently drop bad values."""
    if not isinstance(data, dict):
        raise ValueError(f"expected an object, got {type(data).__name__}")
    for key, value in data.items():
        if not normalize_term(str(key)):
            raise ValueError(f"Invalid token: {key!r}")
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            raise ValueError(f"Invalid alternatives for {key}: {value!r}")
        for alt in value:
            if not isinstance(alt, str) or not normalize_term(alt):
                raise ValueError(f"Invalid alternative for {key}: {alt!r}")


def rebuild_reverse_index(table: SynonymMap) -> None:
    """Rebuild the alternative → token index of ``table``."""
    table.reverse.clear()
    for token, alternatives in table.entries.items():
        for alt in alternatives:
            _append_index_entry(table.reverse, alt, token)
