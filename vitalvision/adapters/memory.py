"""
In-memory patient store implementing the collaborator protocols.

Stands in for the hosted document database during development and tests.
It mirrors the dashboard's data-access calls: medications newest first,
appointments from the start of today in date order, reading history and the
alert and medication logs newest first with a limit.
"""

import itertools
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from vitalvision.domain.models import (
    AlertRecord,
    AppointmentSchedule,
    MedicationLogEntry,
    MedicationSchedule,
    VitalReading,
)

logger = structlog.get_logger(__name__)


def _now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


@dataclass(frozen=True)
class StoredAlert:
    """An alert as persisted, with its document id and write time."""

    id: str
    timestamp: int
    alert: AlertRecord


@dataclass(frozen=True)
class StoredReading:
    """A vital reading as persisted, with its document id."""

    id: str
    reading: VitalReading


class InMemoryPatientStore:
    """Per-patient storage for readings, schedules, alerts and the medication log."""

    def __init__(self) -> None:
        self._medications: defaultdict[str, dict[str, MedicationSchedule]] = defaultdict(dict)
        self._appointments: defaultdict[str, dict[str, AppointmentSchedule]] = defaultdict(dict)
        self._alerts: defaultdict[str, list[StoredAlert]] = defaultdict(list)
        self._readings: defaultdict[str, list[StoredReading]] = defaultdict(list)
        self._medication_log: defaultdict[str, list[MedicationLogEntry]] = defaultdict(list)
        self._ids = itertools.count(1)
        self.logger = logger.bind(component="memory_store")

    # ScheduleSource

    def get_medications(self, patient_id: str) -> list[MedicationSchedule]:
        return list(reversed(self._medications[patient_id].values()))

    def get_appointments(
        self, patient_id: str, since_ms: int | None = None
    ) -> list[AppointmentSchedule]:
        """Appointments from the start of today (or since_ms), earliest first."""
        if since_ms is None:
            start_of_day = datetime.now().astimezone().replace(
                hour=0, minute=0, second=0, microsecond=0
            )
            since_ms = int(start_of_day.timestamp() * 1000)
        upcoming = [a for a in self._appointments[patient_id].values() if a.date >= since_ms]
        return sorted(upcoming, key=lambda a: a.date)

    # AlertSink

    def record_alert(self, patient_id: str, alert: AlertRecord) -> None:
        stored = StoredAlert(id=f"alert-{next(self._ids)}", timestamp=_now_ms(), alert=alert)
        self._alerts[patient_id].append(stored)
        self.logger.debug("alert_recorded", patient_id=patient_id, alert_id=stored.id)

    # VitalReadingSink

    def add_vital_reading(self, patient_id: str, reading: VitalReading) -> StoredReading:
        stored = StoredReading(id=f"vitals-{next(self._ids)}", reading=reading)
        self._readings[patient_id].append(stored)
        self.logger.debug("vital_reading_stored", patient_id=patient_id, reading_id=stored.id)
        return stored

    def get_vital_history(self, patient_id: str, limit: int = 20) -> list[StoredReading]:
        newest_first = reversed(self._readings[patient_id])
        return sorted(newest_first, key=lambda s: s.reading.timestamp, reverse=True)[:limit]

    def get_latest_vital_reading(self, patient_id: str) -> StoredReading | None:
        history = self.get_vital_history(patient_id, limit=1)
        return history[0] if history else None

    # Schedule management

    def add_medication(self, patient_id: str, medication: MedicationSchedule) -> MedicationSchedule:
        """Store a medication, rejecting times that do not match its frequency."""
        medication.validate_times()
        self._medications[patient_id][medication.id] = medication
        self.logger.info("medication_added", patient_id=patient_id, medication_id=medication.id)
        return medication

    def delete_medication(self, patient_id: str, medication_id: str) -> None:
        if self._medications[patient_id].pop(medication_id, None) is None:
            raise KeyError(f"Unknown medication {medication_id!r} for patient {patient_id!r}")
        self.logger.info("medication_deleted", patient_id=patient_id, medication_id=medication_id)

    def add_appointment(
        self, patient_id: str, appointment: AppointmentSchedule
    ) -> AppointmentSchedule:
        self._appointments[patient_id][appointment.id] = appointment
        self.logger.info(
            "appointment_added", patient_id=patient_id, appointment_id=appointment.id
        )
        return appointment

    # Alert history

    def get_alert_history(self, patient_id: str, limit: int = 20) -> list[StoredAlert]:
        newest_first = reversed(self._alerts[patient_id])
        return sorted(newest_first, key=lambda s: s.timestamp, reverse=True)[:limit]

    def acknowledge_alert(self, patient_id: str, alert_id: str) -> StoredAlert:
        """Move an alert to acknowledged. The only status transition alerts have."""
        alerts = self._alerts[patient_id]
        for index, stored in enumerate(alerts):
            if stored.id == alert_id:
                acknowledged = StoredAlert(
                    id=stored.id, timestamp=stored.timestamp, alert=stored.alert.acknowledge()
                )
                alerts[index] = acknowledged
                self.logger.info("alert_acknowledged", patient_id=patient_id, alert_id=alert_id)
                return acknowledged
        raise KeyError(f"Unknown alert {alert_id!r} for patient {patient_id!r}")

    # Medication log

    def log_medication_taken(
        self, patient_id: str, medication_id: str, medication_name: str
    ) -> MedicationLogEntry:
        entry = MedicationLogEntry(medication_id=medication_id, medication_name=medication_name)
        self._medication_log[patient_id].append(entry)
        self.logger.info("medication_taken", patient_id=patient_id, medication_id=medication_id)
        return entry

    def get_medication_log(self, patient_id: str, limit: int = 50) -> list[MedicationLogEntry]:
        return sorted(
            reversed(self._medication_log[patient_id]), key=lambda e: e.taken_at, reverse=True
        )[:limit]
