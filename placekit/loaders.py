from __future__ import annotations

import json
from pathlib import Path
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from placekit.defaults import COLOR_ID_MAX, COLOR_ID_MIN
from placekit.errors import PatternFormatError
from placekit.models import Pattern, PixelSpec


class PatternPixelModel(BaseModel):
    model_config = ConfigDict(strict=True)

    x: int
    y: int
    color: int = Field(..., ge=COLOR_ID_MIN, le=COLOR_ID_MAX)


class PatternFileModel(BaseModel):
    pattern: List[PatternPixelModel]


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    location = ".".join(str(part) for part in err.get("loc", ()))
    return f"{location}: {err.get('msg', 'invalid value')}" if location else err.get("msg", "invalid value")


def parse_pattern(payload: object, origin: Tuple[int, int], name: str = "") -> Pattern:
    try:
        model = PatternFileModel.model_validate(payload)
    except ValidationError as exc:
        raise PatternFormatError(name or "<inline>", _first_error(exc)) from exc
    pixels = tuple(PixelSpec(dx=p.x, dy=p.y, color_id=p.color) for p in model.pattern)
    return Pattern(origin=(int(origin[0]), int(origin[1])), pixels=pixels, name=name)


def load_pattern(path: Path, origin: Tuple[int, int]) -> Pattern:
    """Read a ``{"pattern": [{"x", "y", "color"}, ...]}`` file anchored at ``origin``."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PatternFormatError(path, f"cannot read file ({exc})") from exc
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PatternFormatError(path, f"invalid JSON at line {exc.lineno} column {exc.colno}") from exc
    try:
        return parse_pattern(payload, origin, name=path.stem)
    except PatternFormatError as exc:
        raise PatternFormatError(path, exc.reason) from exc
