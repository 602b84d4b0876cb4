"""Error taxonomy for the monitoring core."""

from collections.abc import Iterable


class VitalVisionError(Exception):
    """Base class for all domain errors."""


class InvalidReading(VitalVisionError):
    """A vital reading is missing a required kind or holds a non-finite value."""

    def __init__(self, kinds: Iterable[str], reason: str = "missing or non-finite") -> None:
        self.kinds: tuple[str, ...] = tuple(kinds)
        self.reason = reason
        super().__init__(f"Invalid vital reading ({reason}): {', '.join(self.kinds)}")


class MalformedSchedule(VitalVisionError):
    """A schedule entry cannot be interpreted (bad time string or frequency mismatch)."""

    def __init__(self, schedule_id: str, reason: str) -> None:
        self.schedule_id = schedule_id
        self.reason = reason
        super().__init__(f"Malformed schedule {schedule_id!r}: {reason}")


class RangeTableError(VitalVisionError):
    """The vital range table configuration is incomplete or inconsistent."""
