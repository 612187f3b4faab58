"""
Tests for settings loading
"""

import json

import pytest
from pydantic import ValidationError

from batch_analyzer.config import SETTINGS_FILE, Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("DEPTHS", "MULTIPV", "STOCKFISH_PATH", "THREADS"):
        monkeypatch.delenv(f"BATCH_ANALYZER_{name}", raising=False)
    monkeypatch.chdir(tmp_path)  # no stray .env file


def test_defaults():
    settings = Settings()
    assert settings.depths == [10, 16, 20]
    assert settings.multipv == 5
    assert (settings.threads, settings.hash_mb, settings.use_nnue) == (14, 128, True)
    assert settings.save_interval_seconds == 30.0
    assert settings.report_interval_seconds == 300.0
    assert settings.search_timeout_seconds is None


def test_load_writes_defaults(tmp_path):
    settings = Settings.load(tmp_path / "data")
    path = tmp_path / "data" / SETTINGS_FILE
    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8"))["depths"] == settings.depths


def test_load_existing_file(tmp_path):
    (tmp_path / SETTINGS_FILE).write_text(
        json.dumps({"depths": [24, 12], "chess_com_username": "alice", "chess_com_from_month": "2023-11"}),
        encoding="utf-8",
    )
    settings = Settings.load(tmp_path)
    assert settings.depths == [12, 24]
    assert settings.chess_com_username == "alice"
    assert settings.from_month == (2023, 11)


def test_environment(monkeypatch):
    monkeypatch.setenv("BATCH_ANALYZER_MULTIPV", "3")
    monkeypatch.setenv("BATCH_ANALYZER_STOCKFISH_PATH", "/opt/sf/stockfish")
    settings = Settings()
    assert settings.multipv == 3
    assert settings.stockfish_path == "/opt/sf/stockfish"


@pytest.mark.parametrize("depths", [[], [0, 10], [10, 10]])
def test_bad_depths(depths):
    with pytest.raises(ValidationError):
        Settings(depths=depths)


@pytest.mark.parametrize("month", ["2024-13", "2024-3", "March"])
def test_bad_month(month):
    with pytest.raises(ValidationError):
        Settings(chess_com_from_month=month)


def test_time_control_filter():
    assert Settings().accepts_time_control("600")
    settings = Settings(time_controls=["180+2"])
    assert settings.accepts_time_control("180+2")
    assert not settings.accepts_time_control("600")
    assert not settings.accepts_time_control(None)
