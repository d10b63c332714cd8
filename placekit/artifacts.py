from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Optional

import numpy as np
from PIL import Image

from placekit.common import ensure_dir, file_stamp
from placekit.models import CanvasSnapshot, Palette, default_palette

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoardArtifacts:
    colors_path: Path
    board_path: Path
    image_path: Path


def render_colors(palette: Palette) -> str:
    lines = []
    for cid in sorted(palette):
        color = palette[cid]
        r, g, b = color.rgb
        lines.append(f"Color {cid}: {color.name} {color.hex} (RGB: {r},{g},{b})")
    return "\n".join(lines) + "\n"


def render_board(snapshot: CanvasSnapshot) -> str:
    rows = []
    for row in snapshot.cells:
        rows.append(" ".join(f"{int(cid):2d}" for cid in row))
    return "\n".join(rows) + "\n"


def render_image(snapshot: CanvasSnapshot, palette: Palette) -> Image.Image:
    # Unknown color ids stay black
    lut = np.zeros((256, 3), dtype=np.uint8)
    for cid, color in palette.items():
        if 0 <= cid < 256:
            lut[cid] = color.rgb
    return Image.fromarray(lut[snapshot.cells])


def write_board_artifacts(
    snapshot: CanvasSnapshot,
    palette: Palette,
    out_dir: Path,
    stamp: Optional[str] = None,
) -> BoardArtifacts:
    stamp = stamp or file_stamp()
    out_dir = ensure_dir(Path(out_dir))
    artifacts = BoardArtifacts(
        colors_path=out_dir / f"colors_{stamp}.txt",
        board_path=out_dir / f"board_{stamp}.txt",
        image_path=out_dir / f"board_{stamp}.png",
    )
    artifacts.colors_path.write_text(render_colors(palette), encoding="utf-8")
    artifacts.board_path.write_text(render_board(snapshot), encoding="utf-8")
    render_image(snapshot, palette).save(artifacts.image_path)
    logger.info("Board data saved to %s with timestamp %s", out_dir, stamp)
    return artifacts


def artifact_palette(snapshot: CanvasSnapshot) -> Palette:
    """The fixed 16-color table, with any entries the board response redefines."""
    merged = dict(default_palette())
    merged.update(snapshot.palette)
    return MappingProxyType(merged)


class SnapshotRecorder:
    """Scheduler sink persisting every fetched snapshot with the color table."""

    def __init__(self, out_dir: Path) -> None:
        self.out_dir = Path(out_dir)
        self.last: Optional[BoardArtifacts] = None

    def __call__(self, snapshot: CanvasSnapshot) -> None:
        stamp = file_stamp(snapshot.fetched_at.astimezone())
        self.last = write_board_artifacts(snapshot, artifact_palette(snapshot), self.out_dir, stamp)
