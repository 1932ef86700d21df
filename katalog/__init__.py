"""Honorarkatalog-Index, Trägererkennung und Kandidatensuche."""

# ``pdf_import`` (pdfplumber) is only imported by the index build scripts.

from . import (
    models,
    storage,
    payer,
    finder,
    addons,
)

__all__ = [
    "models",
    "storage",
    "payer",
    "finder",
    "addons",
]
