"""Helpers to normalize terms before comparison."""

from __future__ import annotations

from utils import normalize_text


def normalize_term(term: str) -> str:
    """Return a standardized representation of ``term`` for matching."""

    if not isinstance(term, str):
        return ""

    return normalize_text(term)
