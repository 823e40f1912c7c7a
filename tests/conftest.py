"""Pytest configuration shared by unit and end-to-end suites.

What:
  Put the in-repo source tree on ``sys.path`` and pin the runtime
  configuration to the canned ``tests/data/config.yaml``.

Why:
  Tests must exercise the source tree rather than an installed wheel, and
  the configuration cache is process global; without a reset around every
  test the suites would depend on execution order.

Interfaces:
  :func:`runtime_config` (autouse fixture).
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "mailac" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from mailac.config.loader import reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Point ``MAILAC_CONFIG_PATH`` at the fixture file and reset the cache."""

    monkeypatch.setenv("MAILAC_CONFIG_PATH", str(CONFIG_PATH))
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
