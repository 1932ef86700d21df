"""Dataclasses representing the tariff catalog and the preference rules."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class CatalogEntry:
    """Single tariff position of one payer.

    Attributes:
        payer: Insurer code (``ÖGK``, ``BVAEB``, ``SVS``, ``KUF``, ``MEDRECH``).
        pos: Position code, unique within the payer (``40``, ``12c``).
        title: Original service text from the catalog.
        points: Free-form fee or point notation (``5/II``, ``20 P``, ``€ 14,30``).
        notes: Limitation hints extracted next to the position.
        source: File the entry was extracted from.
    """

    payer: str
    pos: str
    title: str
    points: str = ""
    notes: str = ""
    source: str = ""


@dataclass(frozen=True)
class Rule:
    """Static override that moves ``prefer`` codes to the front of the candidates."""

    prefer: Tuple[str, ...]
    payer: Optional[str] = None
    when_all: Tuple[str, ...] = ()
    when_any: Tuple[str, ...] = ()


@dataclass
class CatalogIndex:
    """All catalog entries of all payers, read once at startup.

    ``by_payer`` keeps the per-payer order of ``items`` so that "first entry
    whose title contains ..." lookups stay deterministic.
    """

    items: List[CatalogEntry] = field(default_factory=list)
    generated_at: str = ""
    by_payer: Dict[str, List[CatalogEntry]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.by_payer:
            for entry in self.items:
                self.by_payer.setdefault(entry.payer, []).append(entry)

    def entries_for(self, payer: Optional[str]) -> List[CatalogEntry]:
        """Return the entries of ``payer`` or all entries when ``payer`` is ``None``."""
        if payer is None:
            return list(self.items)
        return list(self.by_payer.get(payer, []))

    def __len__(self) -> int:
        return len(self.items)
