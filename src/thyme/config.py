"""Configuration models and helpers for the tracker."""

from __future__ import annotations

import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .paths import get_db_path

SHOW_MODES = ("list", "stats")
DEFAULT_SHOW_MODE = "list"


def detect_system() -> str:
    """Return the lower-cased OS name used to pick a tracker."""
    return platform.system().lower()


@dataclass(slots=True)
class TrackerSettings:
    """Where snapshots are stored and which platform tracker captures them."""

    db_path: Path
    system: str

    @classmethod
    def from_options(
        cls,
        db_path: Optional[Path] = None,
        system: Optional[str] = None,
    ) -> "TrackerSettings":
        return cls(
            db_path=Path(db_path).expanduser() if db_path else get_db_path(),
            system=(system or detect_system()).lower(),
        )
