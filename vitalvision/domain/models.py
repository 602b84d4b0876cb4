"""
Domain models for patient vital signs, alerts and reminders.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation; field aliases keep the camelCase keys used
by the dashboard's stored documents.
"""

import re
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from vitalvision.domain.errors import MalformedSchedule

_CLOCK_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def _now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


def parse_clock_time(value: str) -> tuple[int, int]:
    """Parse an "HH:MM" string into (hour, minute). Raises ValueError when unparseable."""
    match = _CLOCK_TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"unparseable time {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"time out of range {value!r}")
    return hour, minute


class VitalSignKind(str, Enum):
    """The four vital signs we track. Declaration order is evaluation order."""

    HEART_RATE = "heartRate"
    SYSTOLIC_PRESSURE = "systolicPressure"
    OXYGEN_SATURATION = "oxygenSaturation"
    TEMPERATURE = "temperature"


_FIELD_BY_KIND = {
    VitalSignKind.HEART_RATE: "heart_rate",
    VitalSignKind.SYSTOLIC_PRESSURE: "systolic_pressure",
    VitalSignKind.OXYGEN_SATURATION: "oxygen_saturation",
    VitalSignKind.TEMPERATURE: "temperature",
}


class VitalReading(BaseModel):
    """A single vital-sign reading. Never mutated, only superseded."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int = Field(default_factory=_now_ms, description="Epoch milliseconds")
    # Optional so that the evaluator, not the model, decides what is usable
    heart_rate: float | None = Field(default=None, alias="heartRate")
    systolic_pressure: float | None = Field(default=None, alias="systolicPressure")
    oxygen_saturation: float | None = Field(default=None, alias="oxygenSaturation")
    temperature: float | None = Field(default=None, alias="temperature")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "VitalReading":
        """Build a reading from a form payload keyed by vital kind."""
        return cls.model_validate(dict(data))

    def value_of(self, kind: VitalSignKind) -> float | None:
        return getattr(self, _FIELD_BY_KIND[VitalSignKind(kind)])


class VitalRange(BaseModel):
    """Normal range for one vital sign (inclusive on both ends)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    min: float
    max: float
    unit: str
    display_name: str = Field(alias="displayName", min_length=1)

    @model_validator(mode="after")
    def min_not_above_max(self) -> "VitalRange":
        if self.min > self.max:
            raise ValueError(f"range min {self.min} is above max {self.max}")
        return self

    def describe(self) -> str:
        return f"{format_number(self.min)} - {format_number(self.max)} {self.unit}"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"


class AlertRecord(BaseModel):
    """A vital sign that fell outside its configured normal range."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    vital_sign_type: VitalSignKind = Field(alias="vitalSignType")
    value: float
    normal_range_description: str = Field(alias="normalRangeDescription")
    message: str
    status: AlertStatus = AlertStatus.ACTIVE

    def acknowledge(self) -> "AlertRecord":
        """Return this alert with its status moved to acknowledged."""
        return self.model_copy(update={"status": AlertStatus.ACKNOWLEDGED})


class MedicationFrequency(str, Enum):
    DAILY = "daily"
    TWICE_DAILY = "twice_daily"
    THREE_TIMES_DAILY = "three_times_daily"

    @property
    def expected_times(self) -> int:
        return {"daily": 1, "twice_daily": 2, "three_times_daily": 3}[self.value]


class MedicationSchedule(BaseModel):
    """
    A daily recurring medication with one to three dose times.

    Times are kept as stored so that a malformed record can still be loaded;
    the scheduler skips entries that fail validate_times().
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    dose: str
    frequency: MedicationFrequency
    times: tuple[str, ...]

    def validate_times(self) -> list[tuple[int, int]]:
        """Check the times against the frequency and return them parsed."""
        if len(self.times) != self.frequency.expected_times:
            raise MalformedSchedule(
                self.id,
                f"{self.frequency.value} expects {self.frequency.expected_times} "
                f"time(s), got {len(self.times)}",
            )
        parsed = []
        for raw in self.times:
            try:
                parsed.append(parse_clock_time(raw))
            except ValueError as e:
                raise MalformedSchedule(self.id, str(e)) from e
        return parsed


class AppointmentSchedule(BaseModel):
    """A single-occurrence appointment."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    date: int = Field(description="Epoch milliseconds of the appointment day")
    time: str = Field(description='Local clock time, "HH:MM"')
    type: str
    professional_name: str | None = Field(default=None, alias="professionalName")

    @field_validator("professional_name")
    @classmethod
    def blank_name_is_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v


class ReminderKind(str, Enum):
    MEDICATION = "medication"
    APPOINTMENT = "appointment"


class ReminderEvent(BaseModel):
    """A reminder ready to be rendered to the user."""

    model_config = ConfigDict(frozen=True)

    kind: ReminderKind
    title: str
    detail: str
    source_id: str = Field(description="Medication or appointment id")
    scheduled_time: str = Field(description='"HH:MM" the reminder refers to')
    fired_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class MedicationLogEntry(BaseModel):
    """A dose the patient confirmed as taken."""

    model_config = ConfigDict(frozen=True)

    medication_id: str
    medication_name: str
    taken_at: int = Field(default_factory=_now_ms, description="Epoch milliseconds")


class RiskPrediction(BaseModel):
    """Risk assessment text pair produced by the external AI flow."""

    risk_assessment: str
    recommendations: str


class ContextualRiskAlert(BaseModel):
    """Raised when an AI risk assessment calls for urgent attention."""

    title: str
    description: str
    matched_keywords: list[str] = Field(min_length=1)
    detected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


def format_number(value: float) -> str:
    """Render a number the way the dashboard shows it (no trailing ".0")."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))
