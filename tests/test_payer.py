import pytest

from katalog.payer import (
    BVAEB,
    KUF,
    MEDRECH,
    OEGK,
    SVS,
    UNKNOWN_FILE_PAYER,
    detect_payer,
    guess_payer_from_filename,
    strip_payer_mentions,
)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("ÖGK, Blutentnahme aus der Vene", OEGK),
        ("oegk Erstordination", OEGK),
        ("Ö G K", OEGK),
        ("Österreichische Gesundheitskasse", OEGK),
        ("WGKK Patient", OEGK),
        ("BVAEB Versicherter", BVAEB),
        ("Versicherungsanstalt öffentlich Bediensteter, Eisenbahnen und Bergbau", BVAEB),
        ("svs", SVS),
        ("Sozialversicherungsanstalt der Selbständigen", SVS),
        ("SV der Selbstaendigen", SVS),
        ("Sozialversicherung der Selbstständigen", SVS),
        ("selbständig versichert, Erstordination", SVS),
        ("Tiroler KUF", KUF),
        ("Krankenfürsorge", KUF),
        ("Medrech Tarif", MEDRECH),
    ],
)
def test_detect_payer(text, expected):
    assert detect_payer(text) == expected


@pytest.mark.parametrize(
    "text",
    [
        "Blutentnahme aus der Vene",
        "",
        "Ordination",
        "Kufstein",
        "Harnstreifentest selbständig in der Ordination durchgeführt",
        "Patient misst den Blutzucker selbstständig",
    ],
)
def test_detect_payer_unknown_is_none(text):
    assert detect_payer(text) is None


def test_strip_payer_mentions():
    assert strip_payer_mentions("ogk blutentnahme aus der vene") == "blutentnahme aus der vene"
    assert strip_payer_mentions("bvaeb") == ""


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("OEGK_Honorarordnung_2024.pdf", OEGK),
        ("Gesamtvertrag Wien.pdf", OEGK),
        ("BVAEB_Honorarordnung.pdf", BVAEB),
        ("SVS Leistungskatalog.pdf", SVS),
        ("KUF_Tirol.pdf", KUF),
        ("Medrech.pdf", MEDRECH),
        ("irgendwas.pdf", UNKNOWN_FILE_PAYER),
    ],
)
def test_guess_payer_from_filename(filename, expected):
    assert guess_payer_from_filename(filename) == expected
