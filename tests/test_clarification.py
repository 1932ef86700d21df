import pytest

from clarification import (
    QUESTION_BLOOD_DRAW_KIND,
    QUESTION_CONVERSATION_DURATION,
    QUESTION_NO_CANDIDATES,
    QUESTION_PAYER,
    QUESTION_PAYER_ONLY,
    QUESTION_URINE_SETTING,
    ClarificationContext,
    ClarificationHeuristic,
    ClarificationState,
)
from intents import detect_intents
from katalog.models import CatalogEntry
from katalog.payer import detect_payer
from utils import normalize_text

ENTRY = CatalogEntry("ÖGK", "10", "Therapeutisches Gespräch", "18 P")


def _ctx(text, candidates=None):
    norm = normalize_text(text)
    return ClarificationContext(norm, detect_payer(text), detect_intents(norm), candidates)


@pytest.fixture
def heuristic():
    return ClarificationHeuristic()


def test_bare_duration_asks_for_service(heuristic):
    decision = heuristic.check_guards(_ctx("20 Minuten"))
    assert decision.needs_clarification
    assert decision.rule == "bare_duration"
    assert "20 minuten" in decision.question


@pytest.mark.parametrize("text", ["ÖGK", "ÖGK Patient", "für BVAEB bitte"])
def test_payer_only(heuristic, text):
    decision = heuristic.check_guards(_ctx(text))
    assert decision.rule == "payer_only"
    assert decision.question == QUESTION_PAYER_ONLY


def test_guards_pass_for_real_service(heuristic):
    decision = heuristic.check_guards(_ctx("ÖGK Gespräch 20 Minuten"))
    assert decision.state is ClarificationState.PROCEED
    assert not decision.needs_clarification


@pytest.mark.parametrize(
    "text, rule, question",
    [
        ("ÖGK Blutentnahme", "blood_draw_kind", QUESTION_BLOOD_DRAW_KIND),
        ("Blutentnahme aus der Vene", "blood_draw_payer", QUESTION_PAYER),
        ("ÖGK Angehörigengespräch", "conversation_duration", QUESTION_CONVERSATION_DURATION),
        ("ÖGK Harnstreifentest", "urine_setting", QUESTION_URINE_SETTING),
    ],
)
def test_candidate_rules(heuristic, text, rule, question):
    decision = heuristic.check(_ctx(text, [ENTRY]))
    assert decision.rule == rule
    assert decision.question == question


def test_no_candidates(heuristic):
    decision = heuristic.check(_ctx("ÖGK Nasenspülung", []))
    assert decision.rule == "no_candidates"
    assert decision.question == QUESTION_NO_CANDIDATES


def test_proceed_with_candidates(heuristic):
    assert not heuristic.check(_ctx("ÖGK Gespräch 20 Minuten", [ENTRY])).needs_clarification
    assert not heuristic.check(_ctx("ÖGK Harnstreifentest im Labor", [ENTRY])).needs_clarification


def test_candidate_rules_ignore_missing_candidate_list(heuristic):
    assert not heuristic.check(_ctx("ÖGK Nasenspülung")).needs_clarification
