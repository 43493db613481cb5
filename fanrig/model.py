"""Fan and subsystem topology, plus the read-only snapshot published after each cycle."""

import math
from dataclasses import dataclass, field
from datetime import datetime


class Fan:
    """A single fan with a fixed maximum capacity (RPM) and a derived current speed."""

    def __init__(self, fan_id: int, max_capacity: float) -> None:
        if fan_id <= 0:
            raise ValueError(f"Fan id must be positive, got {fan_id}")
        if not math.isfinite(max_capacity) or max_capacity <= 0:
            raise ValueError(f"Fan max capacity must be positive and finite, got {max_capacity}")
        self._id = fan_id
        self._max_capacity = max_capacity
        self.current_speed: float = 0.0

    @property
    def id(self) -> int:
        return self._id

    @property
    def max_capacity(self) -> float:
        return self._max_capacity

    def speed_for(self, percentage: float) -> float:
        """Absolute speed for a normalized percentage (0.0-1.0) of this fan's capacity."""
        return percentage * self._max_capacity

    def update_speed(self, percentage: float) -> None:
        self.current_speed = self.speed_for(percentage)

    def __repr__(self) -> str:
        return f"Fan(id={self._id}, max_capacity={self._max_capacity}, speed={self.current_speed})"


class Subsystem:
    """An ordered group of fans sharing one temperature reading."""

    def __init__(self, subsystem_id: int, fans: list[Fan] | None = None) -> None:
        if subsystem_id <= 0:
            raise ValueError(f"Subsystem id must be positive, got {subsystem_id}")
        ids = [fan.id for fan in fans or []]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate fan ids in subsystem {subsystem_id}: {ids}")
        self._id = subsystem_id
        self._fans = list(fans or [])
        self.last_temperature: float = 0.0

    @property
    def id(self) -> int:
        return self._id

    @property
    def fans(self) -> tuple[Fan, ...]:
        return tuple(self._fans)

    def __repr__(self) -> str:
        return (
            f"Subsystem(id={self._id}, fans={len(self._fans)}, "
            f"temperature={self.last_temperature})"
        )


@dataclass(frozen=True)
class FanReading:
    fan_id: int
    speed: float
    max_capacity: float


@dataclass(frozen=True)
class SubsystemReading:
    subsystem_id: int
    temperature: float
    fans: tuple[FanReading, ...] = ()


@dataclass(frozen=True)
class Snapshot:
    """State of every subsystem and fan as of the end of one cycle."""

    cycle: int
    timestamp: datetime
    global_max: float
    percentage: float
    subsystems: tuple[SubsystemReading, ...] = field(default_factory=tuple)

    @property
    def fan_count(self) -> int:
        return sum(len(s.fans) for s in self.subsystems)

    @classmethod
    def capture(
        cls,
        cycle: int,
        timestamp: datetime,
        global_max: float,
        percentage: float,
        subsystems: list[Subsystem],
    ) -> "Snapshot":
        """Freeze the current state of ``subsystems`` into a snapshot."""
        return cls(
            cycle=cycle,
            timestamp=timestamp,
            global_max=global_max,
            percentage=percentage,
            subsystems=tuple(
                SubsystemReading(
                    subsystem_id=s.id,
                    temperature=s.last_temperature,
                    fans=tuple(
                        FanReading(fan.id, fan.current_speed, fan.max_capacity)
                        for fan in s.fans
                    ),
                )
                for s in subsystems
            ),
        )
