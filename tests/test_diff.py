from __future__ import annotations

import logging

import numpy as np

from placekit.diff import compute_diffs
from placekit.models import CanvasSnapshot, PatternSet, PixelWrite, Tier
from tests._utils.fakes import FIXED_NOW, target


def test_two_pixel_pattern_on_blank_canvas(blank_3x3):
    targets = PatternSet([target(Tier.DEFENSIVE_PRIMARY, (0, 0), [(0, 0, 4), (1, 1, 6)])])

    assert compute_diffs(blank_3x3, targets) == [PixelWrite(0, 0, 4), PixelWrite(1, 1, 6)]


def test_matching_pixels_are_not_rewritten(blank_3x3):
    targets = PatternSet([target(Tier.DEFENSIVE_PRIMARY, (1, 0), [(0, 0, 1), (1, 0, 2), (0, 2, 1)])])

    assert compute_diffs(blank_3x3, targets) == [PixelWrite(2, 0, 2)]


def test_no_write_matches_current_color():
    rng = np.random.default_rng(7)
    cells = rng.integers(1, 17, size=(8, 8))
    snapshot = CanvasSnapshot(cells=cells, fetched_at=FIXED_NOW)
    pixels = [(int(dx), int(dy), int(c)) for dx, dy, c in rng.integers(0, 8, size=(40, 3))]
    pixels = [(dx % 5, dy % 5, c % 16 + 1) for dx, dy, c in pixels]
    targets = PatternSet([target(Tier.DEFENSIVE_PRIMARY, (2, 3), pixels)])

    for write in compute_diffs(snapshot, targets):
        assert snapshot.color_at(write.x, write.y) != write.color_id


def test_overlapping_targets_keep_tier_order(blank_3x3):
    build = target(Tier.BUILD_1, (1, 1), [(0, 0, 9)])
    defence = target(Tier.DEFENSIVE_PRIMARY, (0, 0), [(1, 1, 5)])
    targets = PatternSet([build, defence])

    assert compute_diffs(blank_3x3, targets) == [PixelWrite(1, 1, 5), PixelWrite(1, 1, 9)]


def test_order_is_tier_then_declared_order_and_repeatable(blank_3x3):
    targets = PatternSet(
        [
            target(Tier.BUILD_3, (0, 0), [(2, 2, 3)]),
            target(Tier.BUILD_1, (0, 0), [(2, 0, 3), (0, 2, 3)]),
            target(Tier.DEFENSIVE_PRIMARY, (0, 0), [(1, 0, 2), (0, 0, 2)]),
            target(Tier.DEFENSIVE_SECONDARY, (0, 0), [(0, 1, 7)]),
        ]
    )

    first = compute_diffs(blank_3x3, targets)
    assert first == [
        PixelWrite(1, 0, 2),
        PixelWrite(0, 0, 2),
        PixelWrite(0, 1, 7),
        PixelWrite(2, 0, 3),
        PixelWrite(0, 2, 3),
        PixelWrite(2, 2, 3),
    ]
    assert compute_diffs(blank_3x3, targets) == first


def test_out_of_bounds_pixel_is_skipped_with_one_warning(blank_3x3, caplog):
    targets = PatternSet([target(Tier.DEFENSIVE_PRIMARY, (1, 1), [(0, 0, 4), (5, 0, 4), (1, 1, 4)])])
    skipped = []

    with caplog.at_level(logging.WARNING, logger="placekit.diff"):
        writes = compute_diffs(blank_3x3, targets, skipped=skipped)

    assert writes == [PixelWrite(1, 1, 4), PixelWrite(2, 2, 4)]
    assert [(w.x, w.y) for w in skipped] == [(6, 1)]
    assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 1


def test_negative_coordinates_are_out_of_bounds(blank_3x3):
    targets = PatternSet([target(Tier.DEFENSIVE_PRIMARY, (0, 0), [(-1, 0, 4), (0, -1, 4)])])
    skipped = []

    assert compute_diffs(blank_3x3, targets, skipped=skipped) == []
    assert len(skipped) == 2
