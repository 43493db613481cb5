"""Console rendering of cycle snapshots."""

import math
import sys
from typing import TextIO

from fanrig.model import Snapshot
from fanrig.profile import FanCurve
from fanrig.recorder import format_capacity

INVALID_TEMPERATURE = "Invalid temperature!"


def fan_speed_label(curve: FanCurve, text: str) -> str:
    """Evaluate the curve for a typed-in temperature, as shown in the speed label."""
    try:
        temperature = float(text.strip())
    except ValueError:
        return INVALID_TEMPERATURE
    if not math.isfinite(temperature):
        return INVALID_TEMPERATURE
    return f"Fan Speed: {curve.percentage(temperature) * 100:.2f}%"


def render(snapshot: Snapshot) -> str:
    lines = [
        f"[{snapshot.timestamp:%H:%M:%S}] cycle {snapshot.cycle}  "
        f"max temperature {snapshot.global_max:.2f}  "
        f"Fan Speed: {snapshot.percentage * 100:.2f}%"
    ]
    for sub in snapshot.subsystems:
        lines.append(f"  Subsystem {sub.subsystem_id}: {sub.temperature:.2f}")
        for fan in sub.fans:
            lines.append(f"    Fan {fan.fan_id}: {fan.speed:.0f} / {format_capacity(fan.max_capacity)} RPM")
    return "\n".join(lines)


class ConsoleDisplay:
    """Writes a text view of every snapshot to a stream."""

    def __init__(self, stream: TextIO = sys.stdout) -> None:
        self._stream = stream

    def show(self, message: str) -> None:
        print(message, file=self._stream, flush=True)

    def refresh(self, snapshot: Snapshot) -> None:
        self.show(render(snapshot))
