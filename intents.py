"""Deklarative Absichtserkennung für normalisierte Abrechnungsanfragen.

Jede Absicht (Intent) ist eine Zeile in :data:`INTENT_RULES`: ein Name und
eine Menge regulärer Ausdrücke, die auf den mit :func:`utils.normalize_text`
aufbereiteten Text angewendet werden. Kandidatensuche, Zusatzleistungen und
Rückfrage-Heuristik fragen nur noch Intent-Namen ab; neue Begriffe werden hier
ergänzt und nicht in den einzelnen Modulen.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Pattern, Sequence, Set, Tuple

# Intent-Namen
PSYCHIATRIC = "psychiatric"
BLOOD_DRAW = "blood_draw"
VENOUS = "venous"
CAPILLARY = "capillary"
DURATION = "duration"
SERVICE = "service"
CONVERSATION = "conversation"
URINE_TEST = "urine_test"
SETTING_CLINIC = "setting_clinic"
SETTING_LAB = "setting_lab"


@dataclass(frozen=True)
class IntentRule:
    """Ein Intent gilt als erkannt, sobald eines der Muster passt."""

    name: str
    patterns: Tuple[str, ...]
    compiled: Tuple[Pattern[str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "compiled", tuple(re.compile(p) for p in self.patterns))

    def search(self, text: str) -> Optional[re.Match]:
        for rx in self.compiled:
            m = rx.search(text)
            if m:
                return m
        return None


# Begriffe für den psychiatrischen Domänenschutz (auch auf Katalogtitel angewendet)
PSYCHIATRIC_TERMS: Tuple[str, ...] = (
    "psychiatr",
    "psychother",
    "psychosomat",
    "psychosozial",
    "psycholog",
)

# Vokabular der Blutentnahme-Positionen im Katalog
BLOOD_DRAW_TITLE_TERMS: Tuple[str, ...] = (
    "blutentnahme",
    "blutabnahme",
    "venenpunktion",
    "venepunktion",
    "kapillarblut",
)

INTENT_RULES: Tuple[IntentRule, ...] = (
    IntentRule(PSYCHIATRIC, tuple(rf"\b{t}\w*" for t in PSYCHIATRIC_TERMS)),
    IntentRule(BLOOD_DRAW, (
        r"\bblut\s?ent?nahme\w*",
        r"\bblut\s?abnahme\w*",
        r"\bblut abgenommen\b",
        r"\bblut abnehmen\b",
        r"\babnahme (?:von )?blut\b",
        r"\bvenen?punktion\w*",
        r"\bkapillarblut\w*",
    )),
    IntentRule(VENOUS, (
        r"\bvene\b",
        r"\bvenen\w*",
        r"\bvenos\w*",
        r"\bvenoes\w*",
        r"\bvenepunktion\w*",
        r"\bvein\b",
    )),
    IntentRule(CAPILLARY, (
        r"\bkapill\w*",
        r"\bfingerbeere\w*",
        r"\bohrlappchen\w*",
        r"\bohrlaeppchen\w*",
        r"\bfinger\b",
    )),
    IntentRule(DURATION, (
        r"\b\d+(?: \d+)?\s?(?:min|mins|minute|minuten|std|stunde|stunden)\b",
        r"\b(?:halbe|viertel|dreiviertel) stunde\b",
        r"\bviertelstunde\b",
    )),
    IntentRule(CONVERSATION, (
        r"\w*gesprach\w*",
        r"\w*gespraech\w*",
        r"\bangehorig\w*",
        r"\bangehoerig\w*",
        r"\baussprache\b",
        r"\baufklarung\w*",
    )),
    IntentRule(URINE_TEST, (
        r"\bharn\w*",
        r"\burin\w*",
        r"\w*streifentest\w*",
        r"\bteststreifen\b",
        r"\bcombi ?screen\b",
    )),
    IntentRule(SETTING_CLINIC, (
        r"\bordination\b",
        r"\bpraxis\b",
        r"\bvor ort\b",
        r"\bselbst\b",
        r"\bim haus\b",
    )),
    IntentRule(SETTING_LAB, (
        r"\blabor\w*",
        r"\blab\b",
        r"\beingeschickt\b",
        r"\beingesandt\b",
    )),
    IntentRule(SERVICE, (
        r"\w*gesprach\w*",
        r"\w*gespraech\w*",
        r"\bberatung\w*",
        r"\w*ordination\b",
        r"\bkonsult\w*",
        r"\w*untersuchung\w*",
        r"\w*therapie\w*",
        r"\w*behandlung\w*",
        r"\bekg\b",
        r"\bvisite\w*",
        r"\w*besuch\w*",
        r"\binfusion\w*",
        r"\binjektion\w*",
        r"\bspritze\w*",
        r"\bimpfung\w*",
        r"\bwund\w*",
        r"\bverband\w*",
        r"\bnaht\w*",
        r"\bblut\w*",
        r"\bharn\w*",
        r"\burin\w*",
        r"\bsono\w*",
        r"\bultraschall\w*",
        r"\bspirometr\w*",
        r"\blungenfunktion\w*",
        r"\bbetreuung\w*",
        r"\btelefon\w*",
        r"\bpsych\w*",
        r"\bbericht\w*",
        r"\bbefund\w*",
    )),
)


class IntentEngine:
    """Wertet eine Intent-Tabelle gegen normalisierten Text aus."""

    def __init__(self, rules: Sequence[IntentRule] = INTENT_RULES) -> None:
        self._rules: List[IntentRule] = list(rules)

    @property
    def names(self) -> List[str]:
        return [r.name for r in self._rules]

    def evaluate(self, text: str) -> Set[str]:
        """Gibt alle Intent-Namen zurück, deren Muster in ``text`` passen."""
        return {rule.name for rule in self._rules if rule.search(text)}

    def matches(self, name: str, text: str) -> bool:
        return any(rule.name == name and rule.search(text) for rule in self._rules)

    def find(self, name: str, text: str) -> Optional[str]:
        """Liefert den ersten Treffer für ``name`` als Text (z. B. ``20 minuten``)."""
        for rule in self._rules:
            if rule.name != name:
                continue
            m = rule.search(text)
            if m:
                return m.group(0)
        return None


DEFAULT_ENGINE = IntentEngine()


def detect_intents(text: str, engine: IntentEngine | None = None) -> Set[str]:
    return (engine or DEFAULT_ENGINE).evaluate(text)


def has_any(intents: Iterable[str], *names: str) -> bool:
    found = set(intents)
    return any(n in found for n in names)
