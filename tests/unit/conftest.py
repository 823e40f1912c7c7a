"""Pytest fixtures for unit tests.

What:
  Make ``tests/unit`` importable so suites can share :mod:`fakes`, and expose
  a fresh :class:`~mailac.core.peers.PeerStore` and key backend per test.

Interfaces:
  :func:`store`, :func:`backend`.
"""

import sys
from pathlib import Path

import pytest

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeKeyBackend

from mailac.core.peers import PeerStore


@pytest.fixture
def store() -> PeerStore:
    """Empty peer store."""

    return PeerStore()


@pytest.fixture
def backend() -> FakeKeyBackend:
    """In-memory key backend with no keys."""

    return FakeKeyBackend()
