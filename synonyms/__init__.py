"""Synonymtabelle für die Kandidatensuche.

``python -m synonyms build`` erzeugt die Tabelle aus ``catalogs/index.json``;
zur Laufzeit erweitert :func:`expand_tokens` die Suchbegriffe.
"""

from .expander import expand_tokens, set_synonyms_enabled
from .models import SynonymMap
from .storage import load_synonyms, save_synonyms

__all__ = [
    "SynonymMap",
    "expand_tokens",
    "load_synonyms",
    "save_synonyms",
    "set_synonyms_enabled",
]
