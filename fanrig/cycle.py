"""The sample, compute, propagate, record and refresh cycle."""

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from fanrig.model import Snapshot, Subsystem
from fanrig.profile import DEFAULT_PROFILE, PROFILES, FanCurve
from fanrig.recorder import CsvRecorder
from fanrig.temperature import TemperatureSampler

log = logging.getLogger(__name__)


class Display(Protocol):
    def refresh(self, snapshot: Snapshot) -> None:
        ...


class CycleRunner:
    """Owns the subsystem list and runs one control cycle at a time.

    Readers only ever see the published ``snapshot``, which is replaced as a
    whole once a cycle's writes are complete.
    """

    def __init__(
        self,
        sampler: TemperatureSampler,
        curve: FanCurve = PROFILES[DEFAULT_PROFILE],
        recorder: CsvRecorder | None = None,
        display: Display | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._sampler = sampler
        self._curve = curve
        self._recorder = recorder
        self.display = display
        self._clock = clock
        self._subsystems: list[Subsystem] = []
        self._configured = False
        self._cycle = 0
        self._snapshot: Snapshot | None = None
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return self._configured

    @property
    def snapshot(self) -> Snapshot | None:
        return self._snapshot

    @property
    def curve(self) -> FanCurve:
        return self._curve

    @curve.setter
    def curve(self, value: FanCurve) -> None:
        # Takes effect from the next cycle
        self._curve = value

    def configure(self, subsystems: list[Subsystem]) -> None:
        """Install the topology. Cycles are refused until this has been called."""
        ids = [s.id for s in subsystems]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate subsystem ids: {ids}")
        with self._lock:
            self._subsystems = list(subsystems)
            self._configured = True
        log.info(
            "Configured %d subsystems with %d fans",
            len(subsystems), sum(len(s.fans) for s in subsystems),
        )

    def run_cycle(self) -> Snapshot:
        """Run one full cycle and return the published snapshot.

        Raises RuntimeError if called before ``configure``.
        """
        if not self._configured:
            raise RuntimeError("CycleRunner not configured")

        for subsystem in self._subsystems:
            subsystem.last_temperature = self._sampler.sample(subsystem)

        # Fanless subsystems are sampled but have nothing to drive
        global_max = max(
            (s.last_temperature for s in self._subsystems if s.fans), default=0.0,
        )
        percentage = self._curve.percentage(global_max)

        for subsystem in self._subsystems:
            for fan in subsystem.fans:
                fan.update_speed(percentage)

        self._cycle += 1
        snapshot = Snapshot.capture(
            self._cycle, self._clock(), global_max, percentage, self._subsystems,
        )
        self._snapshot = snapshot
        log.debug(
            "Cycle %d: max temperature %.2f -> fan speed %.0f%%",
            snapshot.cycle, global_max, percentage * 100,
        )

        if self._recorder is not None:
            self._recorder.append(snapshot)

        self._refresh(snapshot)
        return snapshot

    def _refresh(self, snapshot: Snapshot) -> None:
        if self.display is None:
            return
        try:
            self.display.refresh(snapshot)
        except (OSError, ValueError) as e:
            # ValueError: writing to a closed stream
            log.warning("Display refresh failed: %s", e)

    def tick(self) -> Snapshot | None:
        """Scheduler entry point.

        Returns None without doing anything if the runner is not configured yet
        or another cycle is still in progress.
        """
        if not self._configured:
            log.debug("Tick before configuration, skipped")
            return None
        if not self._lock.acquire(blocking=False):
            log.warning("Previous cycle still running, tick skipped")
            return None
        try:
            return self.run_cycle()
        finally:
            self._lock.release()
