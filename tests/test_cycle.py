"""Tests for the control cycle: sampling, reduction, propagation, recording and refresh."""

import io
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from fanrig.cycle import CycleRunner
from fanrig.display import ConsoleDisplay
from fanrig.model import Fan, Subsystem
from fanrig.profile import PROFILES
from fanrig.recorder import CsvRecorder
from fanrig.temperature import SequenceSampler

STAMP = datetime(2024, 1, 2, 3, 4, 5)
STANDARD = PROFILES["standard"]


def _rig() -> list[Subsystem]:
    return [
        Subsystem(1, [Fan(1, 3000)]),
        Subsystem(2, [Fan(1, 1000), Fan(2, 2000)]),
    ]


def _runner(temps: list[float], **kwargs: object) -> CycleRunner:
    return CycleRunner(SequenceSampler(temps), clock=lambda: STAMP, **kwargs)  # type: ignore[arg-type]


class TestRunCycle:
    def test_end_to_end_scenario(self, tmp_path: Path) -> None:
        path = tmp_path / "log.csv"
        recorder = CsvRecorder(path)
        recorder.initialize()
        runner = _runner([80.0, 10.0], recorder=recorder)
        subsystems = _rig()
        runner.configure(subsystems)

        snap = runner.run_cycle()

        assert snap.global_max == 80.0
        assert snap.percentage == 1.0
        speeds = [fan.current_speed for s in subsystems for fan in s.fans]
        assert speeds == [3000, 1000, 2000]

        lines = path.read_text().splitlines()[1:]
        assert len(lines) == 3
        assert [line.split(",")[4] for line in lines] == ["3000", "1000", "2000"]
        assert [line.split(",")[2] for line in lines] == ["80.00", "10.00", "10.00"]

    def test_temperatures_stored_on_subsystems(self) -> None:
        runner = _runner([30.0, 55.0])
        subsystems = _rig()
        runner.configure(subsystems)
        runner.run_cycle()
        assert [s.last_temperature for s in subsystems] == [30.0, 55.0]

    def test_global_max_drives_every_fan(self) -> None:
        runner = _runner([30.0, 50.0])
        subsystems = _rig()
        runner.configure(subsystems)
        snap = runner.run_cycle()

        assert snap.global_max == 50.0
        expected = STANDARD.percentage(50.0)
        for sub in subsystems:
            for fan in sub.fans:
                assert fan.current_speed == pytest.approx(expected * fan.max_capacity)
                assert 0 <= fan.current_speed <= fan.max_capacity

    def test_zero_subsystems(self) -> None:
        runner = _runner([99.0])
        runner.configure([])
        snap = runner.run_cycle()
        assert snap.global_max == 0
        assert snap.percentage == 0.2
        assert snap.subsystems == ()

    def test_fanless_subsystem_ignored_in_max(self) -> None:
        runner = _runner([90.0, 20.0])
        fanless = Subsystem(1)
        fans = [Fan(1, 1000)]
        runner.configure([fanless, Subsystem(2, fans)])
        snap = runner.run_cycle()
        assert fanless.last_temperature == 90.0
        assert snap.global_max == 20.0
        assert fans[0].current_speed == pytest.approx(200)

    def test_only_fanless_subsystems_gives_zero_max(self) -> None:
        runner = _runner([90.0, 80.0])
        runner.configure([Subsystem(1), Subsystem(2)])
        snap = runner.run_cycle()
        assert snap.global_max == 0
        assert snap.percentage == 0.2

    def test_cycle_counter_and_published_snapshot(self) -> None:
        runner = _runner([40.0, 60.0])
        runner.configure(_rig())
        assert runner.snapshot is None
        first = runner.run_cycle()
        second = runner.run_cycle()
        assert (first.cycle, second.cycle) == (1, 2)
        assert runner.snapshot is second
        assert second.timestamp == STAMP

    def test_run_before_configure_raises(self) -> None:
        with pytest.raises(RuntimeError, match="not configured"):
            _runner([1.0]).run_cycle()

    def test_duplicate_subsystem_ids_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate subsystem ids"):
            _runner([1.0]).configure([Subsystem(1), Subsystem(1)])

    def test_curve_change_applies_next_cycle(self) -> None:
        runner = _runner([100.0, 100.0])
        runner.configure(_rig())
        assert runner.run_cycle().percentage == 1.0
        runner.curve = PROFILES["quiet"]
        assert runner.run_cycle().percentage == 0.9


class TestCollaborators:
    def test_recorder_receives_snapshot(self) -> None:
        recorder = MagicMock()
        runner = _runner([10.0, 20.0], recorder=recorder)
        runner.configure(_rig())
        snap = runner.run_cycle()
        recorder.append.assert_called_once_with(snap)

    def test_display_refreshed_after_recording(self) -> None:
        calls: list[str] = []
        recorder = MagicMock()
        recorder.append.side_effect = lambda s: calls.append("record")
        display = MagicMock()
        display.refresh.side_effect = lambda s: calls.append("refresh")

        runner = _runner([10.0, 20.0], recorder=recorder, display=display)
        runner.configure(_rig())
        runner.run_cycle()
        assert calls == ["record", "refresh"]

    def test_missing_display_is_noop(self) -> None:
        runner = _runner([10.0, 20.0], display=None)
        runner.configure(_rig())
        assert runner.run_cycle() is not None

    def test_display_os_error_does_not_stop_cycle(self) -> None:
        display = MagicMock()
        display.refresh.side_effect = OSError("broken pipe")
        runner = _runner([10.0, 20.0], display=display)
        runner.configure(_rig())
        assert runner.run_cycle().cycle == 1
        assert runner.run_cycle().cycle == 2

    def test_closed_display_stream_does_not_stop_cycle(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        stream = io.StringIO()
        stream.close()
        runner = _runner([10.0, 20.0], display=ConsoleDisplay(stream))
        runner.configure(_rig())
        assert runner.tick() is not None
        assert runner.tick() is not None
        assert runner.snapshot is not None
        assert runner.snapshot.cycle == 2
        assert "Display refresh failed" in caplog.text

    def test_write_failure_does_not_stop_cycles(self, tmp_path: Path) -> None:
        recorder = CsvRecorder(tmp_path / "gone" / "log.csv")
        runner = _runner([80.0, 10.0], recorder=recorder)
        subsystems = _rig()
        runner.configure(subsystems)

        assert runner.tick() is not None
        assert runner.tick() is not None
        assert runner.snapshot is not None
        assert runner.snapshot.cycle == 2


class TestTick:
    def test_tick_before_configure_is_skipped(self) -> None:
        sampler = MagicMock()
        runner = CycleRunner(sampler)
        assert runner.tick() is None
        sampler.sample.assert_not_called()

    def test_tick_runs_cycle_once_configured(self) -> None:
        runner = _runner([50.0, 50.0])
        runner.configure(_rig())
        snap = runner.tick()
        assert snap is not None
        assert snap.percentage == pytest.approx(0.6)

    def test_tick_skipped_while_cycle_in_progress(self) -> None:
        runner = _runner([50.0, 50.0])
        runner.configure(_rig())
        runner._lock.acquire()
        try:
            assert runner.tick() is None
        finally:
            runner._lock.release()
        assert runner.tick() is not None
