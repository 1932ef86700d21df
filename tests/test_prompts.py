from katalog.models import CatalogEntry
from prompts import (
    FEW_SHOTS,
    SYSTEM_PROMPT,
    TABLE_HEADER,
    build_gating_block,
    build_messages,
    format_candidate_line,
    render_candidate_table,
)

VENE = CatalogEntry("ÖGK", "40", "Blutentnahme aus der Vene", "5 P", "nur einmal pro Tag")
KAPILLARE = CatalogEntry("ÖGK", "41", "Blutentnahme aus der Kapillare", "3 P")


def test_candidate_line_with_and_without_notes():
    assert format_candidate_line(VENE) == "- ÖGK | 40 | Blutentnahme aus der Vene | 5 P | nur einmal pro Tag"
    assert format_candidate_line(KAPILLARE) == "- ÖGK | 41 | Blutentnahme aus der Kapillare | 3 P"


def test_gating_block_layout():
    block = build_gating_block([VENE, KAPILLARE])
    lines = block.splitlines()
    assert lines[0] == "DU DARFST AUSSCHLIESSLICH AUS DIESEN KANDIDATEN AUSWÄHLEN:"
    assert lines[1].startswith("- ÖGK | 40 |")
    assert lines[2].startswith("- ÖGK | 41 |")
    assert lines[3] == "Wenn nichts passt, frage nach!"
    assert lines[4] == "Gib IMMER nur Pos.-Nrn. aus dieser Liste zurück."


def test_messages_order():
    messages = build_messages("ÖGK Blutentnahme venös", [VENE])
    assert len(messages) == 2 + len(FEW_SHOTS)
    assert messages[0]["role"] == "system"
    assert messages[0]["content"].startswith(SYSTEM_PROMPT)
    assert "- ÖGK | 40 | Blutentnahme aus der Vene" in messages[0]["content"]
    assert messages[1:-1] == FEW_SHOTS
    assert messages[-1] == {"role": "user", "content": "ÖGK Blutentnahme venös"}


def test_render_table():
    entry = CatalogEntry("SVS", "9", "Therapeutische Aussprache | kurz", "")
    table = render_candidate_table([VENE, entry])
    lines = table.splitlines()
    assert lines[0] == TABLE_HEADER
    assert lines[2] == "40 | Blutentnahme aus der Vene | 5 P | nur einmal pro Tag"
    assert lines[3] == "9 | Therapeutische Aussprache / kurz | - | -"
    assert lines[-1] == "Copy-Paste-Liste: 40; 9"
