"""Prompt-Bausteine für den Abrechnungshelfer.

Das Modell erhält einen festen Systemprompt, darunter den Gating-Block mit der
abschliessenden Kandidatenliste, zwei Few-Shot-Beispiele und zuletzt die
Benutzereingabe. Ausserdem liegt hier die Tabellen-Darstellung, die auch für
lokal erzeugte Antworten (ohne Modell) verwendet wird.
"""

from typing import Dict, List, Sequence

from katalog.models import CatalogEntry

SYSTEM_PROMPT = """
Du bist der „Abrechnungshelfer Medizin“ für Ärzt:innen in Österreich.

ZWECK
- Unterstütze Allgemeinmediziner:innen dabei, medizinische Leistungen für verschiedene Sozialversicherungsträger korrekt und vollständig abzurechnen.
- Nutze ausschließlich die hinterlegten Honorarkataloge (ÖGK, SVS, BVAEB, Medrech, KUF).

REGELN
- Vorschlagen darfst du nur Leistungen aus den hinterlegten Honorarkatalogen.
- Nenne IMMER: exakte Positionsnummer, Original-Leistungstext, Punktewert/Tarif.
- Stelle gezielte Rückfragen, wenn zeit-, diagnose- oder technikabhängige Leistungen möglich sind (z. B. EKG, Labor, Gesprächsdauer).
- Achte auf Kombinierbarkeit (z. B. Erstordination, Koordinationszuschlag, Befundbericht).
- Vermeide Doppelabrechnung und halte dich an Limitierungen (z. B. 1×/Quartal).
- Keine Fantasie-Nummern, keine fremden Kataloge, nichts „erraten“.
- Speichere keine Patientendaten.
- Ton: freundlich, präzise, medizinisch korrekt, ohne Small Talk.

DATENKONTEXT
- ÖGK: Gesamtvertrag & Honorarkatalog
- BVAEB: Honorarordnung
- SVS: Landwirtschaft, Gewerbe etc.
- Sonderkataloge: Medrech, Tiroler KUF
- Nutze den passenden Katalog je nach Versicherungsträger.

FEHLERBEHANDLUNG
- Wenn Diagnose unklar/zu wenig Info: Frage „Welche Diagnose wurde gestellt?“
- Wenn Träger unklar: Frage „Für welchen Versicherungsträger gilt der Fall?“
- Wenn rechtlich unklar: Hinweis „Bitte mit der Kasse abklären.“

AUSGABEFORMAT
1. Kompakte Tabelle:
   Pos.-Nr | Leistungstext | Punkte/€ | Zusatzinfo
2. Danach Copy-Paste-Liste der Positionsnummern (z. B. 1C; 1D; 300).
""".strip()

TABLE_HEADER = "Pos.-Nr | Leistungstext | Punkte/€ | Zusatzinfo"
TABLE_RULE = "------- | ------------- | -------- | -----------"

FEW_SHOTS: List[Dict[str, str]] = [
    {"role": "user", "content": "Männlich, 52 Jahre, Hypertonie, Erstordination"},
    {
        "role": "assistant",
        "content": (
            "Rückfrage: Wurde ein Ruhe-EKG gemacht?\n\n"
            f"{TABLE_HEADER}\n{TABLE_RULE}\n"
            "1C | Erstordination | 20 P | nur 1× pro Quartal\n"
            "1D | Koordinationszuschlag | 10 P | bei Erstordination\n"
            "300 | Blutdruckmessung | 5 P | Routine\n\n"
            "Copy-Paste-Liste: 1C; 1D; 300"
        ),
    },
    {
        "role": "user",
        "content": "weibl. Patientin, 28 J., Juckreiz im Vaginalbereich, Verdacht auf Soor",
    },
    {
        "role": "assistant",
        "content": (
            "Rückfrage: Wurde ein Abstrich gemacht?\n\n"
            f"{TABLE_HEADER}\n{TABLE_RULE}\n"
            "200 | Mikroskopische Untersuchung | 5 P | Abstrich erforderlich\n"
            "201 | Pilznachweis | 8 P | bei Verdacht Soor\n\n"
            "Copy-Paste-Liste: 200; 201"
        ),
    },
]


def format_candidate_line(entry: CatalogEntry) -> str:
    line = f"- {entry.payer} | {entry.pos} | {entry.title} | {entry.points}"
    if entry.notes:
        line += f" | {entry.notes}"
    return line


def build_gating_block(candidates: Sequence[CatalogEntry]) -> str:
    """Allow-List-Block, der an den Systemprompt angehängt wird."""
    lines = "\n".join(format_candidate_line(c) for c in candidates)
    return (
        "DU DARFST AUSSCHLIESSLICH AUS DIESEN KANDIDATEN AUSWÄHLEN:\n"
        f"{lines}\n"
        "Wenn nichts passt, frage nach!\n"
        "Gib IMMER nur Pos.-Nrn. aus dieser Liste zurück."
    )


def build_messages(user_text: str, candidates: Sequence[CatalogEntry]) -> List[Dict[str, str]]:
    """Komplette Nachrichtenliste für den Chat-Completion-Aufruf."""
    system = SYSTEM_PROMPT + "\n\n" + build_gating_block(candidates)
    return [
        {"role": "system", "content": system},
        *FEW_SHOTS,
        {"role": "user", "content": user_text},
    ]


def render_candidate_table(candidates: Sequence[CatalogEntry]) -> str:
    """Tabelle im Ausgabeformat des Modells, gefolgt von der Copy-Paste-Liste."""
    rows = [TABLE_HEADER, TABLE_RULE]
    for entry in candidates:
        cells = [entry.pos, entry.title, entry.points or "-", entry.notes or "-"]
        rows.append(" | ".join(str(c).replace("|", "/") for c in cells))
    codes = "; ".join(str(c.pos) for c in candidates)
    return "\n".join(rows) + f"\n\nCopy-Paste-Liste: {codes}"
