"""Control curves mapping a temperature to a normalized fan speed percentage."""

from dataclasses import dataclass


@dataclass(frozen=True)
class FanCurve:
    """A piecewise-linear curve defined by two temperature/percentage anchor points.

    Below ``temp_low`` the curve holds ``speed_low``, above ``temp_high`` it holds
    ``speed_high``, and in between it interpolates linearly. Percentages are
    fractions of a fan's capacity (0.0-1.0).
    """

    temp_low: float    # Lower temperature threshold
    speed_low: float   # Percentage at and below temp_low
    temp_high: float   # Upper temperature threshold
    speed_high: float  # Percentage at and above temp_high

    def __post_init__(self) -> None:
        if self.temp_low >= self.temp_high:
            raise ValueError(
                f"temp_low ({self.temp_low}) must be below temp_high ({self.temp_high})"
            )
        if not (0.0 <= self.speed_low <= self.speed_high <= 1.0):
            raise ValueError(
                f"Speeds must satisfy 0 <= speed_low <= speed_high <= 1, "
                f"got {self.speed_low} and {self.speed_high}"
            )

    def percentage(self, temperature: float) -> float:
        """Compute the speed percentage for a given temperature."""
        if temperature >= self.temp_high:
            return self.speed_high
        if temperature <= self.temp_low:
            return self.speed_low

        ratio = (temperature - self.temp_low) / (self.temp_high - self.temp_low)
        return self.speed_low + ratio * (self.speed_high - self.speed_low)


DEFAULT_PROFILE = "standard"

PROFILES: dict[str, FanCurve] = {
    "standard": FanCurve(temp_low=25.0, speed_low=0.2, temp_high=75.0, speed_high=1.0),
    "quiet": FanCurve(temp_low=35.0, speed_low=0.2, temp_high=85.0, speed_high=0.9),
    "performance": FanCurve(temp_low=20.0, speed_low=0.4, temp_high=65.0, speed_high=1.0),
}
