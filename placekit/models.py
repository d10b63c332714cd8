from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional, Tuple

import numpy as np

from placekit.defaults import DEFAULT_PALETTE


class Tier(enum.IntEnum):
    DEFENSIVE_PRIMARY = 0
    DEFENSIVE_SECONDARY = 1
    BUILD_1 = 2
    BUILD_2 = 3
    BUILD_3 = 4

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")


@dataclass(frozen=True)
class PixelSpec:
    dx: int
    dy: int
    color_id: int


@dataclass(frozen=True)
class Pattern:
    origin: Tuple[int, int]
    pixels: Tuple[PixelSpec, ...]
    name: str = ""

    def absolute(self) -> Iterator[Tuple[int, int, int]]:
        ox, oy = self.origin
        for spec in self.pixels:
            yield ox + spec.dx, oy + spec.dy, spec.color_id


@dataclass(frozen=True)
class PrioritizedTarget:
    pattern: Pattern
    tier: Tier


class PatternSet:
    """
    Targets ordered by tier, fixed at construction.

    Exactly one DEFENSIVE_PRIMARY target is required and each tier may be
    used at most once.
    """

    def __init__(self, targets: Iterable[PrioritizedTarget]) -> None:
        ordered = tuple(sorted(targets, key=lambda t: int(t.tier)))
        tiers = [t.tier for t in ordered]
        if tiers.count(Tier.DEFENSIVE_PRIMARY) != 1:
            raise ValueError("Exactly one defensive-primary target is required")
        if len(set(tiers)) != len(tiers):
            raise ValueError(f"Duplicate tiers in pattern set: {[t.label for t in tiers]}")
        self._targets = ordered

    @property
    def targets(self) -> Tuple[PrioritizedTarget, ...]:
        return self._targets

    def __iter__(self) -> Iterator[PrioritizedTarget]:
        return iter(self._targets)

    def __len__(self) -> int:
        return len(self._targets)

    def __repr__(self) -> str:
        return f"PatternSet({[t.tier.label for t in self._targets]})"


@dataclass(frozen=True)
class PaletteColor:
    color_id: int
    name: str
    hex: str

    @property
    def rgb(self) -> Tuple[int, int, int]:
        value = self.hex.lstrip("#")
        return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


Palette = Mapping[int, PaletteColor]


def default_palette() -> Palette:
    return MappingProxyType(
        {cid: PaletteColor(cid, name, hex_code) for cid, (name, hex_code) in DEFAULT_PALETTE.items()}
    )


@dataclass(frozen=True, eq=False)
class CanvasSnapshot:
    """
    Point-in-time copy of the remote canvas.

    - cells:  shape (height, width), uint8 color ids, read-only
    - palette: color table delivered with the board (default table if none)
    """
    cells: np.ndarray
    fetched_at: datetime.datetime
    palette: Palette = field(default_factory=default_palette)

    def __post_init__(self) -> None:
        cells = np.array(self.cells, dtype=np.uint8, copy=True)
        if cells.ndim != 2:
            raise ValueError(f"Canvas cells must be 2-D, got shape {cells.shape}")
        cells.setflags(write=False)
        object.__setattr__(self, "cells", cells)

    @property
    def width(self) -> int:
        return int(self.cells.shape[1])

    @property
    def height(self) -> int:
        return int(self.cells.shape[0])

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def color_at(self, x: int, y: int) -> int:
        if not self.contains(x, y):
            raise IndexError(f"({x}, {y}) outside {self.width}x{self.height} canvas")
        return int(self.cells[y, x])

    @classmethod
    def filled(cls, width: int, height: int, color_id: int, fetched_at: Optional[datetime.datetime] = None) -> "CanvasSnapshot":
        return cls(
            cells=np.full((height, width), color_id, dtype=np.uint8),
            fetched_at=fetched_at or datetime.datetime.now(datetime.timezone.utc),
        )


@dataclass(frozen=True)
class PixelWrite:
    x: int
    y: int
    color_id: int


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
