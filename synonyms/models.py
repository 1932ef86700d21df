"""Dataclasses representing synonym table structures."""

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class SynonymMap:
    """Mapping of normalized token to normalized alternative tokens.

    Attributes:
        entries: Forward table as stored in ``catalogs/synonyms.json``.
        reverse: Maps every alternative back to the tokens that list it, so
            that a query using a colloquial term also reaches the catalog term.
    """

    entries: Dict[str, List[str]] = field(default_factory=dict)
    reverse: Dict[str, List[str]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)
