import json

from katalog.models import Rule
from katalog.storage import load_catalog_index, load_rules


def test_sample_index(sample_index):
    assert sample_index.generated_at == "2024-05-02T09:14:00Z"
    assert set(sample_index.by_payer) == {"ÖGK", "BVAEB", "SVS", "KUF", "MEDRECH"}
    assert [e.pos for e in sample_index.entries_for("KUF")] == ["1a", "25", "26"]
    assert len(sample_index.entries_for(None)) == len(sample_index)
    assert sample_index.entries_for("UNBEKANNT") == []


def test_missing_or_broken_files_give_empty_results(tmp_path):
    assert len(load_catalog_index(tmp_path / "fehlt.json")) == 0
    broken = tmp_path / "index.json"
    broken.write_text("{kein json", encoding="utf-8")
    assert len(load_catalog_index(broken)) == 0
    assert load_rules(tmp_path / "fehlt.json") == []


def test_incomplete_entries_are_skipped(tmp_path):
    path = tmp_path / "index.json"
    path.write_text(json.dumps([
        {"payer": "SVS", "pos": "2", "title": "Ordination", "points": "12 P"},
        {"payer": "SVS", "pos": "", "title": "ohne Nummer"},
        "kein Eintrag",
    ]), encoding="utf-8")
    index = load_catalog_index(path)
    assert [(e.payer, e.pos, e.points) for e in index.items] == [("SVS", "2", "12 P")]
    assert index.generated_at == ""


def test_utf16_index(tmp_path):
    path = tmp_path / "index.json"
    path.write_bytes(json.dumps({"items": [{"payer": "ÖGK", "pos": "40", "title": "Blutentnahme"}]}).encode("utf-16"))
    assert load_catalog_index(path).items[0].payer == "ÖGK"


def test_rules(sample_rules, tmp_path):
    assert sample_rules[0] == Rule(
        prefer=("60",), payer="ÖGK", when_all=("harn",), when_any=("ordination", "praxis", "selbst")
    )
    path = tmp_path / "rules.json"
    path.write_text(json.dumps([{"whenAny": "nacht", "prefer": "7"}, {"whenAll": ["x"]}]), encoding="utf-8")
    assert load_rules(path) == [Rule(prefer=("7",), when_any=("nacht",))]
