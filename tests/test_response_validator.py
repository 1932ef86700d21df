import pytest

from katalog.models import CatalogEntry
from response_validator import (
    CLARIFICATION_QUESTION,
    enforce_allow_list,
    extract_codes,
    validate_reply,
)

CANDIDATES = [
    CatalogEntry("ÖGK", "40", "Blutentnahme aus der Vene", "5 P", "nur einmal pro Tag"),
    CatalogEntry("ÖGK", "41", "Blutentnahme aus der Kapillare", "3 P"),
    CatalogEntry("ÖGK", "1a", "Erstordination", "20 P"),
]

MODEL_REPLY = (
    "Pos.-Nr | Leistungstext | Punkte/€ | Zusatzinfo\n"
    "------- | ------------- | -------- | -----------\n"
    "40 | Blutentnahme aus der Vene | 5 P | nur einmal pro Tag\n\n"
    "Copy-Paste-Liste: 40"
)


def test_allowed_reply_passes_unchanged():
    text, result = enforce_allow_list(MODEL_REPLY, CANDIDATES)
    assert result.ok
    assert result.used == ["40"]
    assert text == MODEL_REPLY


def test_illegal_code_detected():
    result = validate_reply("999 | Phantasieleistung | 3 P\n\nCopy-Paste-Liste: 40; 999", CANDIDATES)
    assert not result.ok
    assert result.illegal == ["999"]
    assert result.allowed == ["40", "41", "1a"]


def test_quantities_fees_and_durations_are_not_codes():
    reply = "Position 40, 2x pro Tag, 20 Minuten, € 14,30, 3 Punkte, 10 %, am 12.03.2024, Tarif 5/II"
    assert extract_codes(reply) == ["40"]


def test_list_markers_are_ignored():
    assert extract_codes("1. Position 40\n2. Position 41") == ["40", "41"]


def test_codes_compare_case_insensitive():
    assert validate_reply("Copy-Paste-Liste: 1A; 41", CANDIDATES).ok


def test_empty_reply():
    assert extract_codes("") == []
    assert validate_reply("Bitte präzisieren Sie die Leistung.", CANDIDATES).ok


def test_illegal_reply_replaced_by_candidate_table():
    text, result = enforce_allow_list("Abrechnen: 999", CANDIDATES)
    assert not result.ok
    assert "999" in text.splitlines()[0]
    assert "40 | Blutentnahme aus der Vene | 5 P | nur einmal pro Tag" in text
    assert "Copy-Paste-Liste: 40; 41; 1a" in text
    assert text.endswith(CLARIFICATION_QUESTION)


@pytest.mark.parametrize(
    "reply",
    [
        "999. Langzeit-EKG",
        "999) Langzeit-EKG",
        "Zusätzlich Pos. 999 pro Quartal",
        "Pos. 999 je Sitzung",
        "999 P Langzeit-EKG",
        "Pos. 999 x",
        "Abrechenbar: 999 mal",
    ],
)
def test_code_followed_by_quantity_word_is_still_a_code(reply):
    text, result = enforce_allow_list(reply, CANDIDATES[:1])
    assert result.illegal == ["999"]
    assert text.endswith(CLARIFICATION_QUESTION)


def test_only_sequential_list_markers_are_ignored():
    assert extract_codes("1. Position 40\n2. Position 41\n41. Langzeit-EKG") == ["40", "41"]
    assert extract_codes("1) Erstordination\n999) Phantasieleistung") == ["999"]


def test_quantity_in_notes_column_is_not_a_code():
    reply = (
        "10 | Therapeutisches Gespräch | 18 P | Dauer mindestens 10 Minuten, höchstens 2 pro Quartal\n\n"
        "Copy-Paste-Liste: 10"
    )
    assert extract_codes(reply) == ["10"]


def test_explicit_position_and_copy_paste_list_always_count():
    assert extract_codes("Pos. 999 Punkte") == ["999"]
    assert extract_codes("Copy-Paste-Liste: 40; 999 Punkte") == ["40", "999"]
