"""
Pytest configuration: ensure project root is on sys.path for imports.

Tests import the top-level modules and the local `katalog` and `synonyms`
packages directly. When running tests
from certain IDEs or subdirectories, the repository root might not be on the
Python module search path. This hook prepends the repo root so imports work
consistently (e.g., `from katalog.finder import ...`).
"""

from __future__ import annotations

import sys
from pathlib import Path


def _add_repo_root_to_sys_path() -> None:
    # tests/ -> repo root
    root = Path(__file__).resolve().parents[1]
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)


_add_repo_root_to_sys_path()


import pytest

from katalog.finder import CandidateFinder
from katalog.storage import load_catalog_index, load_rules
from synonyms.storage import load_synonyms

REPO_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture(scope="session")
def sample_index():
    """Der mitgelieferte Beispielkatalog (ÖGK, BVAEB, SVS, KUF, MEDRECH)."""
    return load_catalog_index(REPO_ROOT / "catalogs" / "index.json")


@pytest.fixture(scope="session")
def sample_rules():
    return load_rules(REPO_ROOT / "rules" / "catalog_rules.json")


@pytest.fixture(scope="session")
def sample_synonyms():
    return load_synonyms(REPO_ROOT / "catalogs" / "synonyms.json")


@pytest.fixture
def finder(sample_index, sample_rules, sample_synonyms):
    return CandidateFinder(sample_index, synonyms=sample_synonyms, rules=sample_rules)
