"""
Batch Analyzer - Configuration

Settings come from <data_dir>/settings.json, then BATCH_ANALYZER_* environment
variables, then a .env file, then the defaults below. The settings object is
passed explicitly to the engine session, the scheduler and the CLI.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SETTINGS_FILE = "settings.json"

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


class Settings(BaseSettings):
    """Analyzer settings loaded from the data dir and environment variables."""

    # ─── Engine ───
    stockfish_path: str = "stockfish"
    threads: int = 14
    hash_mb: int = 128
    use_nnue: bool = True
    multipv: int = 5
    handshake_timeout_seconds: float = 30.0
    search_timeout_seconds: Optional[float] = None  # None = wait for the search to finish
    start_attempts: int = 3
    search_retries: int = 1

    # ─── Depth ladder ───
    # 10 ≈ 0.1 sec, 16 ≈ 0.75 sec, 20 ≈ 3.4 sec, 24 ≈ 11.5 sec per position
    depths: list[int] = [10, 16, 20]
    save_interval_seconds: float = 30.0
    report_interval_seconds: float = 300.0

    # ─── chess.com ───
    chess_com_username: Optional[str] = None  # None = don't download
    chess_com_from_month: Optional[str] = None  # "YYYY-MM"
    time_controls: list[str] = []  # empty = import every time control

    model_config = SettingsConfigDict(
        env_prefix="BATCH_ANALYZER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("depths")
    @classmethod
    def _check_depths(cls, depths: list[int]) -> list[int]:
        if not depths:
            raise ValueError("at least one depth is required")
        if any(d < 1 for d in depths):
            raise ValueError("depths must be >= 1")
        if len(set(depths)) != len(depths):
            raise ValueError("depths must not repeat")
        return sorted(depths)

    @field_validator("chess_com_from_month")
    @classmethod
    def _check_month(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        m = _MONTH_RE.match(value.strip())
        if not m or not 1 <= int(m.group(2)) <= 12:
            raise ValueError(f"expected YYYY-MM, got {value!r}")
        return value.strip()

    @property
    def from_month(self) -> Optional[tuple[int, int]]:
        """(year, month) of the first archive to load, if configured."""
        if not self.chess_com_from_month:
            return None
        year, month = self.chess_com_from_month.split("-")
        return int(year), int(month)

    def accepts_time_control(self, time_control: Optional[str]) -> bool:
        return not self.time_controls or time_control in self.time_controls

    @classmethod
    def load(cls, data_dir: str | Path) -> Settings:
        """Load <data_dir>/settings.json, writing a defaults file if missing."""
        path = Path(data_dir) / SETTINGS_FILE
        if path.exists():
            with path.open("r", encoding="utf-8") as f:
                return cls(**json.load(f))

        settings = cls()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
        return settings
