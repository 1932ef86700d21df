"""Erzeugung der Synonymtabelle aus dem Katalogindex.

Die Tabelle wird offline gebaut und als ``catalogs/synonyms.json`` abgelegt.
Aus jedem Titeltoken entstehen einfache Stammformen (``-en``, ``-e``) sowie die
Digraph-Schreibweise von Umlauten (``aerztliche`` für ``ärztliche``), damit
Eingaben ohne Umlaut-Tastatur denselben Katalogbegriff erreichen. Dazu kommen
fachliche Ergänzungen aus :data:`DOMAIN_SYNONYMS`.
"""

from __future__ import annotations

__all__ = ["DOMAIN_SYNONYMS", "build_synonym_map"]

import logging
from typing import Dict, Iterable, List, Mapping

from katalog.models import CatalogEntry
from utils import normalize_text

from .models import SynonymMap
from .storage import rebuild_reverse_index

logger = logging.getLogger(__name__)

# fachliche Erweiterungen
DOMAIN_SYNONYMS: Mapping[str, List[str]] = {
    "blutentnahme": ["blutabnahme", "abnahme blut", "venenpunktion", "venepunktion", "venenblut"],
    "harnstreifentest": ["harnstreifen", "urinstreifen", "urintest", "combi screen"],
    "kapillar": ["kapillarblut", "fingerbeere", "ohrläppchen"],
    "injektion": ["spritze", "injek"],
    "elektrokardiogramm": ["ekg"],
    "erstordination": ["erstkontakt", "erstbesuch"],
}

MIN_STEM_LENGTH = 4


def _stem_variants(token: str) -> List[str]:
    variants: List[str] = []
    if token.endswith("en") and len(token) - 2 >= MIN_STEM_LENGTH:
        variants.append(token[:-2])
    if token.endswith("e") and len(token) - 1 >= MIN_STEM_LENGTH:
        variants.append(token[:-1])
    return variants


def build_synonym_map(
    entries: Iterable[CatalogEntry],
    domain: Mapping[str, List[str]] = DOMAIN_SYNONYMS,
) -> SynonymMap:
    """Baut die Synonymtabelle aus den Katalogtiteln und ``domain``."""

    collected: Dict[str, List[str]] = {}

    def _add(token: str, alternative: str) -> None:
        if not token or not alternative or token == alternative:
            return
        bucket = collected.setdefault(token, [])
        if alternative not in bucket:
            bucket.append(alternative)

    for entry in entries:
        plain_tokens = normalize_text(entry.title).split()
        digraph_tokens = normalize_text(entry.title, digraphs=True).split()
        for tok in plain_tokens:
            for variant in _stem_variants(tok):
                _add(tok, variant)
        # gleiche Tokenanzahl, da beide Varianten nur Buchstaben ersetzen
        if len(plain_tokens) == len(digraph_tokens):
            for plain, digraph in zip(plain_tokens, digraph_tokens):
                if plain != digraph:
                    _add(digraph, plain)

    for key, values in domain.items():
        base = normalize_text(key)
        for value in values:
            _add(base, normalize_text(value))
            spelled = normalize_text(value, digraphs=True)
            if spelled != normalize_text(value):
                _add(spelled, normalize_text(value))

    table = SynonymMap(entries={k: v for k, v in collected.items() if v})
    rebuild_reverse_index(table)
    logger.info("Synonymtabelle erzeugt: %s Schlüssel", len(table))
    return table

