from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional


def file_stamp(when: Optional[datetime] = None) -> str:
    """Local-time stamp safe for file names."""
    return (when or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")


def ensure_dir(p: Path) -> Path:
    p.mkdir(parents=True, exist_ok=True)
    return p
