from __future__ import annotations

import numpy as np
import pytest

from placekit.models import CanvasSnapshot, PaletteColor, PatternSet, Tier, default_palette
from tests._utils.fakes import FIXED_NOW, target


def test_pattern_set_sorts_by_tier():
    targets = PatternSet(
        [
            target(Tier.BUILD_2, (0, 0), []),
            target(Tier.DEFENSIVE_PRIMARY, (0, 0), []),
            target(Tier.DEFENSIVE_SECONDARY, (0, 0), []),
        ]
    )

    assert [t.tier for t in targets] == [Tier.DEFENSIVE_PRIMARY, Tier.DEFENSIVE_SECONDARY, Tier.BUILD_2]
    assert len(targets) == 3


def test_pattern_set_requires_exactly_one_primary():
    with pytest.raises(ValueError):
        PatternSet([target(Tier.BUILD_1, (0, 0), [])])
    with pytest.raises(ValueError):
        PatternSet([target(Tier.DEFENSIVE_PRIMARY, (0, 0), []), target(Tier.DEFENSIVE_PRIMARY, (1, 1), [])])


def test_pattern_set_rejects_duplicate_tiers():
    with pytest.raises(ValueError):
        PatternSet(
            [
                target(Tier.DEFENSIVE_PRIMARY, (0, 0), []),
                target(Tier.BUILD_1, (0, 0), []),
                target(Tier.BUILD_1, (4, 4), []),
            ]
        )


def test_pattern_set_is_not_reorderable():
    targets = PatternSet([target(Tier.DEFENSIVE_PRIMARY, (0, 0), [])])

    assert isinstance(targets.targets, tuple)
    with pytest.raises(AttributeError):
        targets.targets = ()


def test_snapshot_cells_are_read_only_copies():
    cells = np.ones((2, 4), dtype=np.uint8)
    snapshot = CanvasSnapshot(cells=cells, fetched_at=FIXED_NOW)
    cells[0, 0] = 9

    assert (snapshot.width, snapshot.height) == (4, 2)
    assert snapshot.color_at(0, 0) == 1
    with pytest.raises(ValueError):
        snapshot.cells[0, 0] = 3


def test_snapshot_refuses_out_of_bounds_reads(blank_3x3):
    assert blank_3x3.contains(2, 2)
    assert not blank_3x3.contains(3, 0)
    with pytest.raises(IndexError):
        blank_3x3.color_at(-1, 0)


def test_default_palette_has_sixteen_colors():
    palette = default_palette()

    assert sorted(palette) == list(range(1, 17))
    assert palette[1].rgb == (255, 255, 255)
    assert PaletteColor(99, "x", "#0083C7").rgb == (0, 131, 199)
