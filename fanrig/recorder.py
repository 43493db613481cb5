"""Append-only record sink: one row per fan per cycle."""

import csv
import io
import logging
import math
from pathlib import Path

from fanrig.model import Snapshot

log = logging.getLogger(__name__)

HEADER = ("Timestamp", "SubsystemID", "MaxTemperature", "FanID", "FanSpeed", "FanMaxRPM")
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DELIMITERS = {"comma": ",", "tab": "\t"}


def _whole(value: float) -> int:
    """Round half away from zero, for non-negative speeds."""
    return int(math.floor(value + 0.5))


def format_capacity(value: float) -> str:
    """Capacity as an integer when integral, never in exponent notation."""
    return str(int(value)) if float(value).is_integer() else str(value)


def format_rows(snapshot: Snapshot) -> list[tuple[str, ...]]:
    """Build the record rows for a snapshot, in subsystem then fan order."""
    stamp = snapshot.timestamp.strftime(TIMESTAMP_FORMAT)
    return [
        (
            stamp,
            str(sub.subsystem_id),
            f"{sub.temperature:.2f}",
            str(fan.fan_id),
            str(_whole(fan.speed)),
            format_capacity(fan.max_capacity),
        )
        for sub in snapshot.subsystems
        for fan in sub.fans
    ]


class CsvRecorder:
    """Writes fan records to a delimited text file.

    Failures are logged and reported through the return value; they never
    propagate to the caller, so the control loop keeps running without a sink.
    """

    def __init__(self, path: str | Path, delimiter: str = ",") -> None:
        if delimiter not in DELIMITERS.values():
            raise ValueError(f"Unsupported delimiter {delimiter!r}")
        self._path = Path(path)
        self._delimiter = delimiter
        self._header_written = False

    @property
    def path(self) -> Path:
        return self._path

    def _render(self, rows: list[tuple[str, ...]]) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, delimiter=self._delimiter, lineterminator="\n")
        writer.writerows(rows)
        return buf.getvalue()

    def initialize(self) -> bool:
        """Create or truncate the sink and write the header row."""
        try:
            with open(self._path, "w", newline="", encoding="utf-8") as f:
                f.write(self._render([HEADER]))
        except OSError as e:
            self._header_written = False
            log.error("Failed to initialize record file %s: %s", self._path, e)
            return False

        self._header_written = True
        log.info("Recording fan state to %s", self._path)
        return True

    def append(self, snapshot: Snapshot) -> bool:
        """Append one record per fan in the snapshot.

        All rows of a snapshot are written with a single call so a failure
        never leaves half of a cycle in the file. If the header has not been
        written yet (initialize failed), the file is recreated with it first.
        """
        rows = format_rows(snapshot)
        if not rows:
            log.debug("Cycle %d has no fans, nothing recorded", snapshot.cycle)
            return True

        if self._header_written:
            mode, data = "a", self._render(rows)
        else:
            mode, data = "w", self._render([HEADER, *rows])
        try:
            with open(self._path, mode, newline="", encoding="utf-8") as f:
                f.write(data)
        except OSError as e:
            log.error("Failed to append cycle %d to %s: %s", snapshot.cycle, self._path, e)
            return False

        self._header_written = True
        log.debug("Recorded %d rows for cycle %d", len(rows), snapshot.cycle)
        return True
