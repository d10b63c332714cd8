from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol

from placekit.defaults import BATCH_WINDOW_S, MAX_PIXELS_PER_BATCH, PIXEL_PACING_S
from placekit.diff import compute_diffs
from placekit.errors import CooldownError, FatalError, RetryExhausted
from placekit.models import CanvasSnapshot, PatternSet, PixelWrite

logger = logging.getLogger(__name__)


class CycleState(enum.Enum):
    FETCHING = "fetching"
    DIFFING = "diffing"
    SUBMITTING = "submitting"
    WAITING = "waiting"


class Canvas(Protocol):
    def fetch_snapshot(self) -> CanvasSnapshot: ...

    def write_pixel(self, x: int, y: int, color_id: int) -> bool: ...


SnapshotSink = Callable[[CanvasSnapshot], None]


@dataclass
class CycleReport:
    cycle: int
    states: List[CycleState] = field(default_factory=list)
    fetched: bool = False
    planned: int = 0
    written: List[PixelWrite] = field(default_factory=list)
    failure: Optional[str] = None
    wait_s: float = 0.0


class BatchScheduler:
    """
    Reconciliation loop: fetch, diff, submit at most one batch, wait.

    The window is measured from the start of one FETCHING state to the start
    of the next, so a cycle never submits more than ``batch_size`` writes per
    ``window_s``. Clock and sleep are injectable for tests.
    """

    def __init__(
        self,
        canvas: Canvas,
        patterns: PatternSet,
        *,
        batch_size: int = MAX_PIXELS_PER_BATCH,
        window_s: float = BATCH_WINDOW_S,
        pacing_s: float = PIXEL_PACING_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        snapshot_sink: Optional[SnapshotSink] = None,
        before_fetch: Optional[Callable[[], None]] = None,
    ) -> None:
        self.canvas = canvas
        self.patterns = patterns
        self.batch_size = batch_size
        self.window_s = window_s
        self.pacing_s = pacing_s
        self.clock = clock
        self.sleep = sleep
        self.snapshot_sink = snapshot_sink
        self.before_fetch = before_fetch
        self.state = CycleState.FETCHING
        self.cycles = 0

    def _enter(self, report: CycleReport, state: CycleState) -> None:
        self.state = state
        report.states.append(state)
        logger.debug("Cycle %d -> %s", report.cycle, state.value)

    def run(self, max_cycles: Optional[int] = None) -> List[CycleReport]:
        """Run cycles until interrupted, or ``max_cycles`` when given."""
        reports: List[CycleReport] = []
        while max_cycles is None or len(reports) < max_cycles:
            report = self.run_cycle()
            if max_cycles is not None:
                reports.append(report)
        return reports

    def run_cycle(self) -> CycleReport:
        self.cycles += 1
        report = CycleReport(cycle=self.cycles)
        self._enter(report, CycleState.FETCHING)
        cycle_start = self.clock()

        snapshot = self._fetch(report)
        if snapshot is None:
            report.wait_s = self.window_s
            self._wait(report)
            return report

        self._enter(report, CycleState.DIFFING)
        diffs = compute_diffs(snapshot, self.patterns)
        batch = diffs[: self.batch_size]
        report.planned = len(batch)
        logger.info(
            "Cycle %d: %d pixel(s) out of place, submitting %d",
            report.cycle,
            len(diffs),
            len(batch),
        )

        cooldown_s = 0.0
        if batch:
            self._enter(report, CycleState.SUBMITTING)
            cooldown_s = self._submit(report, batch)
        else:
            logger.info("Cycle %d: all patterns in place", report.cycle)

        elapsed = self.clock() - cycle_start
        report.wait_s = max(self.window_s - elapsed, cooldown_s, 0.0)
        self._wait(report)
        return report

    def _fetch(self, report: CycleReport) -> Optional[CanvasSnapshot]:
        if self.before_fetch is not None:
            self.before_fetch()
        try:
            snapshot = self.canvas.fetch_snapshot()
        except (RetryExhausted, FatalError) as exc:
            report.failure = f"fetch failed: {exc}"
            logger.error("Cycle %d: %s; waiting a full window", report.cycle, report.failure)
            return None
        report.fetched = True
        if self.snapshot_sink is not None:
            try:
                self.snapshot_sink(snapshot)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Snapshot artifacts not written: %s", exc)
        return snapshot

    def _submit(self, report: CycleReport, batch: List[PixelWrite]) -> float:
        for index, write in enumerate(batch):
            try:
                self.canvas.write_pixel(write.x, write.y, write.color_id)
            except CooldownError as exc:
                report.failure = f"write refused: {exc}"
                logger.warning("Cycle %d: %s; aborting batch", report.cycle, report.failure)
                return exc.wait_s
            except (RetryExhausted, FatalError) as exc:
                report.failure = f"write failed: {exc}"
                logger.error("Cycle %d: %s; aborting batch", report.cycle, report.failure)
                return 0.0
            report.written.append(write)
            if index < len(batch) - 1:
                self.sleep(self.pacing_s)
        logger.info("Cycle %d: placed %d pixel(s)", report.cycle, len(report.written))
        return 0.0

    def _wait(self, report: CycleReport) -> None:
        self._enter(report, CycleState.WAITING)
        if report.wait_s <= 0:
            return
        mins, secs = divmod(int(report.wait_s), 60)
        logger.info("Cycle %d: next cycle in %dm %ds", report.cycle, mins, secs)
        self.sleep(report.wait_s)
