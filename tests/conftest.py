"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- Stand-in grammar parsers so no test needs mmdc or network access.
"""

import sys
from pathlib import Path

import pytest

# Add the repo root to path so we can import 'mermaid_mender' and 'backend' without installing
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

from mermaid_mender.validation import ValidityChecker  # noqa: E402


class MarkerParser:
    """Grammar stand-in: rejects any block containing one of the markers."""

    def __init__(self, *markers: str):
        self.markers = markers
        self.calls: list[str] = []

    def __call__(self, content: str) -> bool:
        self.calls.append(content)
        return not any(marker in content for marker in self.markers)


@pytest.fixture
def marker_parser():
    """Factory for MarkerParser instances."""
    return MarkerParser


@pytest.fixture
def rejecting_checker():
    """Checker whose grammar rejects reversed edges and the word BROKEN."""
    return ValidityChecker(MarkerParser("<--", "BROKEN"))


@pytest.fixture
def accepting_checker():
    return ValidityChecker(MarkerParser())


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep host MERMAID_MENDER_* settings out of the tests."""
    import os
    for name in list(os.environ):
        if name.startswith("MERMAID_MENDER_"):
            monkeypatch.delenv(name, raising=False)
