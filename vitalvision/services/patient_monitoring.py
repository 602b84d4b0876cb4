"""
Patient monitoring service combining vital alerting with reminders.

This is the entry point the dashboard calls:
1. A new reading is evaluated, stored, and each alert written to the alert sink
2. Schedule snapshots are pulled from the schedule source and handed to the scheduler
3. AI risk assessments are screened for urgent findings
"""

import asyncio
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from vitalvision.config import AppConfig, configure_logging, get_config, get_vital_ranges
from vitalvision.domain.models import (
    AlertRecord,
    ContextualRiskAlert,
    RiskPrediction,
    VitalReading,
)
from vitalvision.domain.ranges import VitalRangeTable
from vitalvision.services.notifications import (
    AlertSink,
    ReminderSink,
    ScheduleSource,
    VitalReadingSink,
)
from vitalvision.services.reminder_scheduler import Clock, ReminderRunner, ReminderScheduler
from vitalvision.services.vital_evaluator import (
    detect_contextual_risk,
    evaluate_reading,
    parse_reading,
)

logger = structlog.get_logger(__name__)


class PatientMonitoringService:
    """Ties the evaluator and the reminder scheduler to their collaborators."""

    def __init__(
        self,
        schedules: ScheduleSource,
        alerts: AlertSink,
        reminders: ReminderSink,
        readings: VitalReadingSink | None = None,
        config: AppConfig | None = None,
        ranges: VitalRangeTable | None = None,
    ) -> None:
        self.config = config or get_config()
        self.schedules = schedules
        self.alerts = alerts
        self.readings = readings
        self.ranges = ranges if ranges is not None else get_vital_ranges()
        self.scheduler = ReminderScheduler(reminders, self.config.reminders)
        self.logger = logger.bind(component="patient_monitoring")

    def record_reading(
        self, patient_id: str, reading: VitalReading | Mapping[str, Any]
    ) -> list[AlertRecord]:
        """
        Evaluate a new reading, store it, and store one alert per out-of-range vital.

        InvalidReading propagates before anything is written, so an unusable
        reading is neither kept in the history nor scored as "no alerts".
        """
        reading = parse_reading(reading)
        alert_records = evaluate_reading(reading, self.ranges)

        if self.readings is not None:
            self.readings.add_vital_reading(patient_id, reading)

        for alert in alert_records:
            self.alerts.record_alert(patient_id, alert)
            self.logger.warning(
                "vital_alert_raised",
                patient_id=patient_id,
                vital_sign_type=alert.vital_sign_type.value,
                value=alert.value,
                normal_range=alert.normal_range_description,
            )

        self.logger.info(
            "vital_reading_evaluated", patient_id=patient_id, alerts=len(alert_records)
        )
        return alert_records

    def refresh_schedules(self, patient_id: str) -> None:
        """Reload the patient's schedule snapshots into the scheduler."""
        self.scheduler.load_medications(self.schedules.get_medications(patient_id))
        self.scheduler.load_appointments(self.schedules.get_appointments(patient_id))

    def assess_prediction(
        self, patient_id: str, prediction: RiskPrediction
    ) -> ContextualRiskAlert | None:
        risk_alert = detect_contextual_risk(prediction)
        if risk_alert is not None:
            self.logger.warning(
                "contextual_risk_detected",
                patient_id=patient_id,
                keywords=risk_alert.matched_keywords,
            )
        return risk_alert

    def reminder_runner(self, clock: Clock | None = None) -> ReminderRunner:
        return ReminderRunner(self.scheduler, clock=clock)


async def main() -> None:
    """Demonstrate the monitoring flow against the in-memory store."""

    from vitalvision.adapters.memory import InMemoryPatientStore
    from vitalvision.domain.errors import InvalidReading
    from vitalvision.domain.models import AppointmentSchedule, MedicationSchedule
    from vitalvision.services.notifications import ConsoleReminderChannel, NotificationDispatcher

    configure_logging()
    store = InMemoryPatientStore()
    patient_id = "demo-patient"

    now = datetime.now().astimezone()
    in_two_minutes = now + timedelta(minutes=2)
    store.add_medication(
        patient_id,
        MedicationSchedule(
            id="med-1",
            name="Paracetamol",
            dose="500 mg",
            frequency="daily",
            times=[now.strftime("%H:%M")],
        ),
    )
    store.add_appointment(
        patient_id,
        AppointmentSchedule(
            id="appt-1",
            date=int(in_two_minutes.timestamp() * 1000),
            time=in_two_minutes.strftime("%H:%M"),
            type="Cardiología",
            professional_name="Dra. Pérez",
        ),
    )

    service = PatientMonitoringService(
        schedules=store,
        alerts=store,
        readings=store,
        reminders=NotificationDispatcher(ConsoleReminderChannel()),
    )

    for alert in service.record_reading(
        patient_id,
        {"heartRate": 110, "systolicPressure": 120, "oxygenSaturation": 98, "temperature": 37.0},
    ):
        print(alert.message)

    try:
        service.record_reading(patient_id, {"heartRate": 72})
    except InvalidReading as e:
        print(f"Rejected reading: {e}")

    service.refresh_schedules(patient_id)
    runner = service.reminder_runner()
    async with runner.running():
        await asyncio.sleep(1)

    print(f"Readings stored: {len(store.get_vital_history(patient_id))}")
    print(f"Alerts stored: {len(store.get_alert_history(patient_id))}")
    print(f"Demo finished at {datetime.now(UTC).isoformat()}")


if __name__ == "__main__":
    asyncio.run(main())
