from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from placekit.errors import OutOfBoundsWarning
from placekit.models import CanvasSnapshot, PixelWrite, PrioritizedTarget

logger = logging.getLogger(__name__)


def compute_diffs(
    snapshot: CanvasSnapshot,
    targets: Iterable[PrioritizedTarget],
    skipped: Optional[List[OutOfBoundsWarning]] = None,
) -> List[PixelWrite]:
    """
    Pixels that disagree with the desired state, most urgent first.

    Targets are visited in the order given (a PatternSet is already sorted by
    tier) and each pattern in its declared pixel order. A coordinate claimed
    by several targets is emitted once per disagreeing target.
    """
    writes: List[PixelWrite] = []
    for target in targets:
        pattern = target.pattern
        for x, y, color_id in pattern.absolute():
            if not snapshot.contains(x, y):
                warning = OutOfBoundsWarning(x, y, pattern.name)
                logger.warning("%s (%s); skipped", warning, target.tier.label)
                if skipped is not None:
                    skipped.append(warning)
                continue
            if snapshot.color_at(x, y) != color_id:
                writes.append(PixelWrite(x=x, y=y, color_id=color_id))
    return writes
