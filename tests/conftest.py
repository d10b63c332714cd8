"""Shared fixtures."""

from __future__ import annotations

import json
from typing import Any

import pytest

from placekit.models import CanvasSnapshot
from tests._utils.fakes import FIXED_NOW, ManualClock


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def blank_3x3() -> CanvasSnapshot:
    return CanvasSnapshot.filled(3, 3, 1, fetched_at=FIXED_NOW)


@pytest.fixture()
def pattern_file(tmp_path):
    def _write(pixels: Any, name: str = "shield.json"):
        path = tmp_path / name
        if isinstance(pixels, str):
            path.write_text(pixels, encoding="utf-8")
        else:
            path.write_text(json.dumps({"pattern": pixels}), encoding="utf-8")
        return path

    return _write
