"""Synonymerweiterung für die Kandidatensuche.

Das Modul verwaltet den Laufzeitzustand (Aktiv-Flag) der Synonym-Komponente
und erweitert eine tokenisierte Anfrage um die Alternativen aus der
:class:`~synonyms.models.SynonymMap`. ``katalog.finder`` nutzt das Ergebnis
für die Fuzzy-Suche und den Token-Fallback.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Set

from .models import SynonymMap

logger = logging.getLogger(__name__)

# Indicates whether expansion is active.
_enabled: bool = True


def set_synonyms_enabled(enabled: bool) -> None:
    """Aktiviert oder deaktiviert die Synonymerweiterung global."""

    global _enabled
    _enabled = enabled


def synonyms_enabled() -> bool:
    """Gibt ``True`` zurück, wenn die Erweiterung derzeit aktiv ist."""

    return _enabled


def _lookup(token: str, table: SynonymMap) -> List[str]:
    """Alternativen aus Vorwärts- und Rückwärtsindex für ``token``."""
    found: List[str] = list(table.entries.get(token, []))
    for base in table.reverse.get(token, []):
        found.append(base)
        found.extend(table.entries.get(base, []))
    return found


def expand_tokens(tokens: Iterable[str], table: SynonymMap | None) -> List[str]:
    """Erweitert ``tokens`` um alle Synonyme, Reihenfolge bleibt erhalten.

    Die Originaltokens stehen zuerst. Mehrwort-Synonyme (``abnahme blut``)
    werden in ihre Tokens zerlegt, da die Suche tokenbasiert arbeitet.
    """

    originals = [t for t in tokens if t]
    seen: Set[str] = set()
    result: List[str] = []

    def _add(value: str) -> None:
        for part in value.split():
            if part not in seen:
                seen.add(part)
                result.append(part)

    for tok in originals:
        _add(tok)
    if not _enabled or table is None:
        return result

    for tok in originals:
        for alt in _lookup(tok, table):
            _add(alt)
    logger.debug("Synonymerweiterung: %s -> %s", originals, result)
    return result


def expand_query(query: str, table: SynonymMap | None) -> str:
    """Gibt den normalisierten ``query`` samt Synonymen als einen String zurück."""

    if not isinstance(query, str):
        return ""
    return " ".join(expand_tokens(query.split(), table))
