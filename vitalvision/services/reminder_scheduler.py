"""
Medication and appointment reminder scheduling.

Key behaviours:
- Minute-granularity polling: a reminder fires on the tick that falls inside
  its match window, never earlier and with no catch-up for missed ticks
- At most one reminder per (medication, dose time) per local day and one per
  appointment for its whole lifetime, tracked in an explicit ReminderFiredSet
- Per-entry error boundaries: a malformed schedule or a failing sink never
  aborts the tick for unrelated schedules
"""

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime

import structlog

from vitalvision.config import ReminderConfig
from vitalvision.domain.errors import MalformedSchedule
from vitalvision.domain.models import (
    AppointmentSchedule,
    MedicationSchedule,
    ReminderEvent,
    ReminderKind,
    parse_clock_time,
)
from vitalvision.services.notifications import ReminderSink

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def _local_now() -> datetime:
    return datetime.now().astimezone()


class ReminderFiredSet:
    """
    Reminders already fired, owned by a single scheduler.

    Medication keys are (schedule_id, "HH:MM") and belong to one local day;
    appointment ids are kept until the appointment itself has passed.
    Not persisted: a restart starts empty.
    """

    def __init__(self) -> None:
        self._medication_keys: set[tuple[str, str]] = set()
        self._appointment_ids: set[str] = set()
        self.medication_day: date | None = None

    def has_medication(self, schedule_id: str, time: str) -> bool:
        return (schedule_id, time) in self._medication_keys

    def mark_medication(self, schedule_id: str, time: str) -> None:
        self._medication_keys.add((schedule_id, time))

    def reset_medications(self, day: date) -> None:
        self._medication_keys.clear()
        self.medication_day = day

    def has_appointment(self, appointment_id: str) -> bool:
        return appointment_id in self._appointment_ids

    def mark_appointment(self, appointment_id: str) -> None:
        self._appointment_ids.add(appointment_id)

    def forget_appointment(self, appointment_id: str) -> None:
        self._appointment_ids.discard(appointment_id)

    def clear(self) -> None:
        self._medication_keys.clear()
        self._appointment_ids.clear()
        self.medication_day = None

    @property
    def medication_keys(self) -> frozenset[tuple[str, str]]:
        return frozenset(self._medication_keys)

    @property
    def appointment_ids(self) -> frozenset[str]:
        return frozenset(self._appointment_ids)


@dataclass(frozen=True)
class _DoseTime:
    key: str  # normalised "HH:MM"
    minute_of_day: int


class ReminderScheduler:
    """
    Decides which reminders are due on each tick and hands them to a sink.

    Schedules are registered as read-only snapshots; callers refresh them
    after any add or delete. All methods that run on a tick swallow and log
    their errors so a tick always completes.
    """

    def __init__(
        self,
        sink: ReminderSink,
        config: ReminderConfig | None = None,
        fired: ReminderFiredSet | None = None,
    ) -> None:
        self.sink = sink
        self.config = config or ReminderConfig()
        self.fired = fired if fired is not None else ReminderFiredSet()
        self.logger = logger.bind(component="reminder_scheduler")

        self._medications: list[tuple[MedicationSchedule, list[_DoseTime]]] = []
        self._appointments: list[tuple[AppointmentSchedule, tuple[int, int]]] = []

    # Schedule snapshots

    def load_medications(self, medications: Sequence[MedicationSchedule]) -> None:
        """Register a medication snapshot, skipping entries that cannot be interpreted."""
        plan = []
        for medication in medications:
            try:
                parsed = medication.validate_times()
            except MalformedSchedule as e:
                self.logger.warning(
                    "malformed_schedule_skipped",
                    kind=ReminderKind.MEDICATION.value,
                    schedule_id=e.schedule_id,
                    reason=e.reason,
                )
                continue
            plan.append(
                (
                    medication,
                    [_DoseTime(f"{h:02d}:{m:02d}", h * 60 + m) for h, m in parsed],
                )
            )

        self._medications = plan
        self.logger.info(
            "medications_loaded", total=len(medications), scheduled=len(plan)
        )

    def load_appointments(self, appointments: Sequence[AppointmentSchedule]) -> None:
        """Register an appointment snapshot, skipping entries with a bad time."""
        plan = []
        for appointment in appointments:
            try:
                plan.append((appointment, parse_clock_time(appointment.time)))
            except ValueError as e:
                self.logger.warning(
                    "malformed_schedule_skipped",
                    kind=ReminderKind.APPOINTMENT.value,
                    schedule_id=appointment.id,
                    reason=str(e),
                )

        self._appointments = plan
        self.logger.info(
            "appointments_loaded", total=len(appointments), scheduled=len(plan)
        )

    # Tick handlers

    def reset_if_new_day(self, now: datetime) -> bool:
        """
        Clear fired medication reminders on the first tick of a new local day.

        With minute ticks this is the 00:00 tick. Tracking the day rather than
        matching 00:00 means a second tick inside the midnight minute cannot
        re-arm a dose that already fired.
        """
        today = now.date()
        previous = self.fired.medication_day
        if previous == today:
            return False

        self.fired.reset_medications(today)
        if previous is None:
            return False

        self.logger.info("medication_reminders_reset", day=today.isoformat())
        return True

    def check_medications(self, now: datetime) -> list[ReminderEvent]:
        """Fire every dose whose match window contains now and has not fired today."""
        events: list[ReminderEvent] = []
        minute_of_day = now.hour * 60 + now.minute
        window = self.config.medication_match_window_minutes

        for medication, dose_times in self._medications:
            for dose_time in dose_times:
                # The window ends at 23:59; wrapping would re-fire after the midnight reset
                if not 0 <= minute_of_day - dose_time.minute_of_day < window:
                    continue
                if self.fired.has_medication(medication.id, dose_time.key):
                    continue

                event = ReminderEvent(
                    kind=ReminderKind.MEDICATION,
                    title="Recordatorio de Medicamento",
                    detail=(
                        f"Recordatorio: Es hora de tomar su medicamento {medication.name}, "
                        f"dosis: {medication.dose}."
                    ),
                    source_id=medication.id,
                    scheduled_time=dose_time.key,
                    fired_at=now,
                )
                self.fired.mark_medication(medication.id, dose_time.key)
                self._emit(event)
                events.append(event)

        return events

    def check_appointments(self, now: datetime) -> list[ReminderEvent]:
        """Fire each appointment once when it is inside the lookahead window."""
        events: list[ReminderEvent] = []
        lookahead = self.config.appointment_lookahead_minutes

        for appointment, (hour, minute) in self._appointments:
            try:
                starts_at = datetime.fromtimestamp(
                    appointment.date / 1000, tz=now.tzinfo
                ).replace(hour=hour, minute=minute, second=0, microsecond=0)
            except (OverflowError, OSError, ValueError) as e:
                self.logger.warning(
                    "malformed_schedule_skipped",
                    kind=ReminderKind.APPOINTMENT.value,
                    schedule_id=appointment.id,
                    reason=str(e),
                )
                continue

            delta_minutes = (starts_at - now).total_seconds() / 60
            if delta_minutes <= 0:
                # Passed for good; nothing left to deduplicate
                self.fired.forget_appointment(appointment.id)
                continue
            if delta_minutes > lookahead or self.fired.has_appointment(appointment.id):
                continue

            time_label = f"{hour:02d}:{minute:02d}"
            with_professional = (
                f" con {appointment.professional_name}" if appointment.professional_name else ""
            )
            event = ReminderEvent(
                kind=ReminderKind.APPOINTMENT,
                title="Recordatorio de Cita Próxima",
                detail=(
                    f"Recordatorio: Tiene una cita de {appointment.type}{with_professional} "
                    f"a las {time_label}."
                ),
                source_id=appointment.id,
                scheduled_time=time_label,
                fired_at=now,
            )
            self.fired.mark_appointment(appointment.id)
            self._emit(event)
            events.append(event)

        return events

    def medication_tick(self, now: datetime) -> list[ReminderEvent]:
        self.reset_if_new_day(now)
        return self.check_medications(now)

    def tick(self, now: datetime) -> list[ReminderEvent]:
        """Run the daily reset, the medication check and the appointment check."""
        return self.medication_tick(now) + self.check_appointments(now)

    def _emit(self, event: ReminderEvent) -> None:
        """Deliver an event. The reminder stays fired even if delivery fails."""
        try:
            self.sink.notify(event)
        except Exception as e:
            self.logger.error(
                "reminder_delivery_failed",
                kind=event.kind.value,
                source_id=event.source_id,
                error=str(e),
            )
            return

        self.logger.info(
            "reminder_fired",
            kind=event.kind.value,
            source_id=event.source_id,
            scheduled_time=event.scheduled_time,
        )


class ReminderRunner:
    """
    Drives a scheduler with two independent periodic tasks.

    One task runs the daily reset plus the medication check, the other runs
    the appointment check. Ticks are synchronous, so they never overlap, and
    stop() cancels both tasks before returning.
    """

    def __init__(
        self,
        scheduler: ReminderScheduler,
        interval_seconds: float | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.interval_seconds = interval_seconds or scheduler.config.tick_interval_seconds
        self.clock = clock or _local_now
        self.logger = logger.bind(component="reminder_runner")
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.is_running:
            raise RuntimeError("Reminder runner already started")

        self._tasks = [
            asyncio.create_task(
                self._run_periodic(self.scheduler.medication_tick), name="medication-reminders"
            ),
            asyncio.create_task(
                self._run_periodic(self.scheduler.check_appointments),
                name="appointment-reminders",
            ),
        ]
        self.logger.info("reminder_runner_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Cancel both ticks and wait until they have finished."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self.logger.info("reminder_runner_stopped")

    @asynccontextmanager
    async def running(self) -> AsyncIterator["ReminderRunner"]:
        """Run the reminder ticks for the duration of the block."""
        self.start()
        try:
            yield self
        finally:
            await self.stop()

    async def _run_periodic(self, step: Callable[[datetime], list[ReminderEvent]]) -> None:
        while True:
            try:
                step(self.clock())
            except Exception as e:
                self.logger.exception("reminder_tick_failed", error=str(e))
            await asyncio.sleep(self.interval_seconds)
