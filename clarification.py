"""Rückfrage-Heuristik vor dem LLM-Aufruf.

Die Heuristik entscheidet pro Anfrage zwischen ``PROCEED`` und
``NEEDS_CLARIFICATION``. Jede Bedingung ist eine Zeile in einer Regeltabelle
mit fester Reihenfolge und der wörtlichen Rückfrage, die an den Client geht.

* :data:`GUARD_RULES` laufen vor der Kandidatensuche (nur Träger genannt,
  Dauer ohne Leistung).
* :data:`CANDIDATE_RULES` laufen nach Suche und Add-on-Merge.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Set, Tuple

import intents as intent_rules
from katalog.models import CatalogEntry
from katalog.payer import strip_payer_mentions

# Wörter, die neben einem Träger keine Leistung beschreiben
PAYER_FILLER_WORDS: Set[str] = {
    "fur", "bei", "bitte", "versichert", "versicherte", "versicherter",
    "kasse", "krankenkasse", "versicherung", "trager", "versicherungstrager",
    "patient", "patientin", "abrechnen", "abrechnung", "katalog", "honorarkatalog",
    "tarif", "der", "die", "das", "ist", "ich", "was", "wie", "und",
}

QUESTION_PAYER_ONLY = (
    "Welche Leistung wurde erbracht? Bitte die Leistung kurz beschreiben "
    "(z. B. 'Blutentnahme aus der Vene')."
)
QUESTION_BARE_DURATION = (
    "Welche Leistung hat {duration} gedauert? (z. B. Gespräch, Untersuchung, Therapie)"
)
QUESTION_BLOOD_DRAW_KIND = "Wurde das Blut venös oder kapillär abgenommen?"
QUESTION_PAYER = (
    "Für welchen Versicherungsträger gilt der Fall? (ÖGK, BVAEB, SVS, KUF oder Medrech)"
)
QUESTION_CONVERSATION_DURATION = "Wie lange hat das Gespräch gedauert (in Minuten)?"
QUESTION_URINE_SETTING = (
    "Wurde der Harnstreifentest in der Ordination durchgeführt oder an ein Labor geschickt?"
)
QUESTION_NO_CANDIDATES = (
    "Dazu habe ich keinen passenden Katalogeintrag gefunden. Welche Leistung genau "
    "wurde erbracht (z. B. 'ÖGK, Blutentnahme aus der Vene')?"
)


class ClarificationState(enum.Enum):
    NEEDS_CLARIFICATION = "needs_clarification"
    PROCEED = "proceed"


@dataclass
class ClarificationContext:
    """Eingaben der Heuristik; ``candidates`` ist vor der Suche ``None``."""

    text: str
    payer: Optional[str]
    intents: Set[str] = field(default_factory=set)
    candidates: Optional[Sequence[CatalogEntry]] = None

    @property
    def duration(self) -> str:
        return intent_rules.DEFAULT_ENGINE.find(intent_rules.DURATION, self.text) or "die Leistung"


@dataclass(frozen=True)
class ClarificationRule:
    name: str
    condition: Callable[[ClarificationContext], bool]
    question: str

    def render(self, ctx: ClarificationContext) -> str:
        return self.question.format(duration=ctx.duration)


@dataclass(frozen=True)
class ClarificationDecision:
    state: ClarificationState
    rule: Optional[str] = None
    question: Optional[str] = None

    @property
    def needs_clarification(self) -> bool:
        return self.state is ClarificationState.NEEDS_CLARIFICATION


PROCEED = ClarificationDecision(ClarificationState.PROCEED)


def names_payer_only(ctx: ClarificationContext) -> bool:
    if ctx.payer is None:
        return False
    rest = [t for t in strip_payer_mentions(ctx.text).split() if t not in PAYER_FILLER_WORDS]
    return not rest


def _has(ctx: ClarificationContext, *names: str) -> bool:
    return intent_rules.has_any(ctx.intents, *names)


GUARD_RULES: Tuple[ClarificationRule, ...] = (
    ClarificationRule("payer_only", names_payer_only, QUESTION_PAYER_ONLY),
    ClarificationRule(
        "bare_duration",
        lambda c: _has(c, intent_rules.DURATION) and not _has(c, intent_rules.SERVICE),
        QUESTION_BARE_DURATION,
    ),
)

CANDIDATE_RULES: Tuple[ClarificationRule, ...] = (
    ClarificationRule(
        "blood_draw_kind",
        lambda c: _has(c, intent_rules.BLOOD_DRAW)
        and not _has(c, intent_rules.VENOUS, intent_rules.CAPILLARY),
        QUESTION_BLOOD_DRAW_KIND,
    ),
    ClarificationRule(
        "blood_draw_payer",
        lambda c: _has(c, intent_rules.BLOOD_DRAW) and c.payer is None,
        QUESTION_PAYER,
    ),
    ClarificationRule(
        "conversation_duration",
        lambda c: _has(c, intent_rules.CONVERSATION) and not _has(c, intent_rules.DURATION),
        QUESTION_CONVERSATION_DURATION,
    ),
    ClarificationRule(
        "urine_setting",
        lambda c: _has(c, intent_rules.URINE_TEST)
        and not _has(c, intent_rules.SETTING_CLINIC, intent_rules.SETTING_LAB),
        QUESTION_URINE_SETTING,
    ),
    ClarificationRule(
        "no_candidates",
        lambda c: c.candidates is not None and len(c.candidates) == 0,
        QUESTION_NO_CANDIDATES,
    ),
)


class ClarificationHeuristic:
    """Wertet die Regeltabellen in fester Reihenfolge aus; erste Regel gewinnt."""

    def __init__(
        self,
        guard_rules: Sequence[ClarificationRule] = GUARD_RULES,
        candidate_rules: Sequence[ClarificationRule] = CANDIDATE_RULES,
    ) -> None:
        self.guard_rules = tuple(guard_rules)
        self.candidate_rules = tuple(candidate_rules)

    @staticmethod
    def _first(rules: Sequence[ClarificationRule], ctx: ClarificationContext) -> ClarificationDecision:
        for rule in rules:
            if rule.condition(ctx):
                return ClarificationDecision(
                    ClarificationState.NEEDS_CLARIFICATION, rule.name, rule.render(ctx)
                )
        return PROCEED

    def check_guards(self, ctx: ClarificationContext) -> ClarificationDecision:
        return self._first(self.guard_rules, ctx)

    def check(self, ctx: ClarificationContext) -> ClarificationDecision:
        """Prüft die Bedingungen nach der Kandidatensuche."""
        return self._first(self.candidate_rules, ctx)
