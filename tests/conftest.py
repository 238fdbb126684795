from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent))

from fixvox.config import Config  # noqa: E402


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("fixvox.tests")


@pytest.fixture
def cfg(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Config:
    monkeypatch.setenv("FIXVOX_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("FIXVOX_OUTPUT_DIR", str(tmp_path / "library"))
    monkeypatch.setenv("FIXVOX_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("FIXVOX_TEMP_DIR", str(tmp_path / "tmp"))
    monkeypatch.setenv("FIXVOX_MAX_WORKERS", "4")
    monkeypatch.setenv("FIXVOX_EXTRACT_WORKERS", "2")
    (tmp_path / "tmp").mkdir()
    return Config.from_env()
