import json

import pytest

from katalog import pdf_import
from katalog.models import CatalogEntry
from katalog.pdf_import import (
    build_index,
    clean_line,
    has_points,
    join_wrapped,
    merge_entries,
    parse_catalog_lines,
)

OEGK_LINES = [
    "Honorarordnung ÖGK",
    "40 Blutentnahme aus der Vene 5 P",
    "nur einmal pro Tag verrechenbar",
    "12c Demenzpatienten – Ange-",
    "hörigengespräch AL 5/II",
    "56 Intramuskuläre Injektion 2/I je Injektion",
    "11a Subcutane Injektion 2",
    "600 Kleine Wund\u00adversorgung 12 P",
    "300 Elektrokardiogramm",
    "301 Langzeit-EKG 25 P",
    "17",
]


def _by_pos(entries):
    return {e.pos: e for e in entries}


def test_clean_line_and_helpers():
    assert clean_line("  Kleine   Wund\u00adversorgung ") == "Kleine Wundversorgung"
    assert join_wrapped("Demenzpatienten – Ange-", "hörigengespräch") == "Demenzpatienten – Angehörigengespräch"
    assert join_wrapped("Ärztliches Gespräch", "mit Angehörigen") == "Ärztliches Gespräch mit Angehörigen"
    assert has_points("40 Blutentnahme 5 P")
    assert not has_points("40 Blutentnahme aus der Vene")


def test_parse_catalog_lines():
    entries = _by_pos(parse_catalog_lines(OEGK_LINES, "ÖGK", source="oegk.pdf"))
    assert set(entries) == {"40", "12c", "56", "11a", "600", "301"}

    vene = entries["40"]
    assert (vene.title, vene.points, vene.notes) == ("Blutentnahme aus der Vene", "5 P", "nur einmal pro Tag verrechenbar")
    assert vene.payer == "ÖGK" and vene.source == "oegk.pdf"

    assert entries["12c"].title == "Demenzpatienten – Angehörigengespräch"
    assert entries["12c"].points == "5/II"
    assert (entries["56"].title, entries["56"].points) == ("Intramuskuläre Injektion", "2/I")
    assert (entries["11a"].title, entries["11a"].points) == ("Subcutane Injektion", "2")
    assert entries["600"].title == "Kleine Wundversorgung"
    assert entries["301"].points == "25 P"


def test_euro_amounts():
    entries = parse_catalog_lines(["20 Blutentnahme aus der Vene € 7,50"], "BVAEB")
    assert entries == [CatalogEntry("BVAEB", "20", "Blutentnahme aus der Vene", "€ 7,50")]


def test_merge_entries_last_wins_and_sorted():
    merged = merge_entries([
        CatalogEntry("SVS", "2", "Ordination", "12 P"),
        CatalogEntry("ÖGK", "40", "Blutentnahme", "4 P"),
        CatalogEntry("ÖGK", "40", "Blutentnahme aus der Vene", "5 P"),
    ])
    assert [(e.payer, e.pos) for e in merged] == [("SVS", "2"), ("ÖGK", "40")]
    assert merged[1].points == "5 P"


def test_build_index(tmp_path, monkeypatch):
    catalogs = tmp_path / "catalogs"
    catalogs.mkdir()
    (catalogs / "OEGK_Honorarordnung.pdf").write_bytes(b"")
    (catalogs / "SVS_Leistungskatalog.pdf").write_bytes(b"")
    (catalogs / "kaputt_medrech.pdf").write_bytes(b"")
    (catalogs / "liesmich.txt").write_text("kein Katalog", encoding="utf-8")

    def fake_extract(path):
        if path.name.startswith("kaputt"):
            raise ValueError("beschädigte PDF")
        if path.name.startswith("OEGK"):
            return OEGK_LINES
        return ["31 Venöse Blutentnahme 5 P", "32 Kapillare Blutentnahme 3 P"]

    monkeypatch.setattr(pdf_import, "extract_pdf_lines", fake_extract)
    out_file = tmp_path / "out" / "index.json"
    count = build_index(catalogs, out_file)

    data = json.loads(out_file.read_text(encoding="utf-8"))
    assert count == len(data["items"]) == 8
    assert data["generatedAt"].endswith("Z")
    svs = [i for i in data["items"] if i["payer"] == "SVS"]
    assert [i["pos"] for i in svs] == ["31", "32"]
    assert svs[0]["source"] == "SVS_Leistungskatalog.pdf"


def test_build_index_without_pdfs(tmp_path):
    with pytest.raises(FileNotFoundError):
        build_index(tmp_path, tmp_path / "index.json")
