"""Pytest configuration for test isolation.

Settings are read from ``SPEND_ANALYSIS_*`` environment variables, and the CLI
additionally loads a ``.env`` from the working directory. A developer's shell
or local ``.env`` must not leak into test runs, so every test starts with
those variables cleared and the working directory set to a fresh temp dir.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `spend_analysis` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
# Ensure `packages/` precedes the repo root on sys.path so local packages resolve first.
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]


@pytest.fixture(autouse=True)
def _isolate_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear package settings and run each test from its own directory."""

    for key in list(os.environ):
        if key.startswith("SPEND_ANALYSIS_"):
            monkeypatch.delenv(key, raising=False)
    # Keep INFO chatter out of captured CLI output
    monkeypatch.setenv("SPEND_ANALYSIS_LOG_LEVEL", "WARNING")
    monkeypatch.chdir(tmp_path)
