"""Kandidatensuche im Honorarkatalog.

Die Suche liefert die Einträge, die dem Modell als einzig erlaubte Auswahl
vorgelegt werden. Ablauf pro Anfrage:

1. Trägerfilter und psychiatrischer Domänenschutz.
2. Blutentnahme-Einschränkung inkl. deterministischem Titeltreffer.
3. Synonymerweiterung und Tippfehlerkorrektur gegen das Titelvokabular.
4. Fuzzy-Suche über die Titel (``rapidfuzz``), sonst Token-Überlappung.
5. Bevorzugte Positionen aus der Regeltabelle nach vorne.
6. Kürzen auf ``limit``.

Alle Texte werden vor dem Vergleich mit :func:`utils.normalize_text`
aufbereitet.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set

from rapidfuzz import fuzz, process
from rapidfuzz.distance import Levenshtein

import intents as intent_rules
from intents import IntentEngine
from synonyms.expander import expand_tokens
from synonyms.models import SynonymMap
from utils import STOPWORDS, contains_any, normalize_text

from .models import CatalogEntry, CatalogIndex, Rule
from .payer import strip_payer_mentions

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 12
# Fuse-artige Schwelle: 0 = exakter Treffer, 1 = alles passt
DEFAULT_THRESHOLD = 0.35
# maximale Levenshtein-Distanz für die Tippfehlerkorrektur einzelner Tokens
DEFAULT_DISTANCE = 2
MIN_CORRECTION_LENGTH = 5
MIN_FALLBACK_TOKEN_LENGTH = 3

# normalisierte Titel, die den deterministischen Blutentnahme-Treffer auslösen
EXACT_BLOOD_DRAW_TITLES: Dict[str, Sequence[str]] = {
    intent_rules.VENOUS: (
        "blutentnahme aus der vene",
        "venose blutentnahme",
        "blutentnahme venos",
        "venenpunktion",
    ),
    intent_rules.CAPILLARY: (
        "blutentnahme aus der kapillare",
        "kapillare blutentnahme",
        "blutentnahme kapillar",
        "kapillarblutentnahme",
    ),
}


def rule_matches(norm_text: str, rule: Rule, payer: Optional[str]) -> bool:
    """Prüft, ob ``rule`` auf den normalisierten Text und Träger zutrifft."""
    if rule.payer and payer and rule.payer != payer:
        return False
    if rule.when_all and not all(normalize_text(k) in norm_text for k in rule.when_all):
        return False
    if rule.when_any and not any(normalize_text(k) in norm_text for k in rule.when_any):
        return False
    return True


class CandidateFinder:
    """Sucht passende Katalogeinträge für eine normalisierte Anfrage."""

    def __init__(
        self,
        index: CatalogIndex,
        synonyms: SynonymMap | None = None,
        rules: Sequence[Rule] = (),
        engine: IntentEngine | None = None,
        limit: int = DEFAULT_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
        distance: int = DEFAULT_DISTANCE,
    ) -> None:
        self.index = index
        self.synonyms = synonyms
        self.rules: List[Rule] = list(rules)
        self.engine = engine or intent_rules.DEFAULT_ENGINE
        self.limit = limit
        self.threshold = min(max(threshold, 0.0), 1.0)
        self.distance = max(distance, 0)
        self._titles: Dict[CatalogEntry, str] = {
            entry: normalize_text(entry.title) for entry in index.items
        }
        vocab: Set[str] = set()
        for title in self._titles.values():
            vocab.update(t for t in title.split() if len(t) >= MIN_CORRECTION_LENGTH)
        self._vocabulary: List[str] = sorted(vocab)

    # --- Hilfen ---------------------------------------------------------

    def title_of(self, entry: CatalogEntry) -> str:
        title = self._titles.get(entry)
        if title is None:
            title = normalize_text(entry.title)
        return title

    def _guarded_pool(self, norm_text: str, payer: Optional[str], found: Set[str]) -> List[CatalogEntry]:
        pool = self.index.entries_for(payer)
        if intent_rules.PSYCHIATRIC not in found:
            pool = [
                e for e in pool
                if not contains_any(self.title_of(e), intent_rules.PSYCHIATRIC_TERMS)
            ]
        if intent_rules.BLOOD_DRAW in found:
            pool = [
                e for e in pool
                if contains_any(self.title_of(e), intent_rules.BLOOD_DRAW_TITLE_TERMS)
            ]
        return pool

    def _correct_typos(self, tokens: Iterable[str]) -> List[str]:
        if not self.distance or not self._vocabulary:
            return []
        corrections: List[str] = []
        known = set(self._vocabulary)
        for tok in tokens:
            if len(tok) < MIN_CORRECTION_LENGTH or tok in known or tok.isdigit():
                continue
            match = process.extractOne(
                tok,
                self._vocabulary,
                scorer=Levenshtein.distance,
                processor=None,
                score_cutoff=self.distance,
            )
            if match is not None:
                corrections.append(match[0])
        return corrections

    def expanded_tokens(self, norm_text: str) -> List[str]:
        """Anfrage-Tokens ohne Trägernennung, ergänzt um Synonyme und Korrekturen."""
        search_text = strip_payer_mentions(norm_text)
        tokens = search_text.split()
        expanded = expand_tokens(tokens, self.synonyms)
        for corrected in self._correct_typos(tokens):
            if corrected not in expanded:
                expanded.append(corrected)
        return expanded

    def preferred_codes(self, norm_text: str, payer: Optional[str]) -> tuple[List[str], Optional[Rule]]:
        """Liefert die ``prefer``-Liste der ersten passenden Regel."""
        for rule in self.rules:
            if rule_matches(norm_text, rule, payer):
                return list(rule.prefer), rule
        return [], None

    # --- Suche ------------------------------------------------------------

    def exact_blood_draw_match(
        self,
        text: str,
        payer: Optional[str],
        found: Optional[Set[str]] = None,
    ) -> Optional[CatalogEntry]:
        """Deterministischer Treffer für "Blutentnahme venös/kapillär" eines Trägers.

        Greift nur bei bekanntem Träger und wenn genau eine der beiden
        Entnahmearten genannt ist.
        """
        norm_text = normalize_text(text)
        if found is None:
            found = self.engine.evaluate(norm_text)
        if payer is None or intent_rules.BLOOD_DRAW not in found:
            return None
        kinds = [k for k in (intent_rules.VENOUS, intent_rules.CAPILLARY) if k in found]
        if len(kinds) != 1:
            return None
        pool = self._guarded_pool(norm_text, payer, found)
        for wanted in EXACT_BLOOD_DRAW_TITLES[kinds[0]]:
            for entry in pool:
                if self.title_of(entry) == wanted:
                    return entry
        return None

    def fuzzy_search(self, query: str, pool: Sequence[CatalogEntry]) -> List[CatalogEntry]:
        if not query or not pool:
            return []
        titles = [self.title_of(e) for e in pool]
        hits = process.extract(
            query,
            titles,
            scorer=fuzz.token_set_ratio,
            processor=None,
            score_cutoff=(1.0 - self.threshold) * 100,
            limit=None,
        )
        hits = sorted(hits, key=lambda h: (-h[1], h[2]))
        return [pool[h[2]] for h in hits]

    def overlap_search(self, tokens: Sequence[str], pool: Sequence[CatalogEntry]) -> List[CatalogEntry]:
        """Fallback: zählt wörtliche Token-Treffer in den normalisierten Titeln."""
        significant = [
            t for t in tokens
            if len(t) >= MIN_FALLBACK_TOKEN_LENGTH and t not in STOPWORDS
        ]
        if not significant:
            return []
        scored = []
        for pos, entry in enumerate(pool):
            title = self.title_of(entry)
            score = sum(1 for t in significant if t in title)
            if score > 0:
                scored.append((score, pos, entry))
        scored.sort(key=lambda s: (-s[0], s[1]))
        return [entry for _score, _pos, entry in scored]

    def find(
        self,
        text: str,
        payer: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[CatalogEntry]:
        """Gibt höchstens ``limit`` Kandidaten zurück, relevanteste zuerst."""
        limit = self.limit if limit is None else limit
        if limit <= 0:
            return []
        norm_text = normalize_text(text)
        found = self.engine.evaluate(norm_text)
        pool = self._guarded_pool(norm_text, payer, found)

        exact = self.exact_blood_draw_match(norm_text, payer, found)
        if exact is not None:
            logger.debug("Deterministischer Blutentnahme-Treffer: %s %s", exact.payer, exact.pos)
            return [exact]

        tokens = self.expanded_tokens(norm_text)
        results = self.fuzzy_search(" ".join(tokens), pool)
        if not results:
            results = self.overlap_search(tokens, pool)

        prefer, rule = self.preferred_codes(norm_text, payer)
        if prefer:
            preferred: List[CatalogEntry] = []
            for code in prefer:
                for entry in pool:
                    if entry.pos != code or entry in preferred:
                        continue
                    if rule is not None and rule.payer and entry.payer != rule.payer:
                        continue
                    preferred.append(entry)
            results = preferred + [e for e in results if e not in preferred]

        return results[:limit]
