"""
Collaborator protocols and reminder delivery.

The core never talks to storage or a UI directly. It reads schedule
snapshots from a ScheduleSource, stores accepted readings in a
VitalReadingSink, writes alerts to an AlertSink and hands reminders to a
ReminderSink. NotificationDispatcher is the standard
ReminderSink: one primary channel plus best-effort secondary effects
(spoken announcement, haptic vibration).
"""

from collections.abc import Callable, Sequence
from typing import Protocol

import structlog
from rich.console import Console
from rich.panel import Panel

from vitalvision.domain.models import (
    AlertRecord,
    AppointmentSchedule,
    MedicationSchedule,
    ReminderEvent,
    ReminderKind,
    VitalReading,
)

logger = structlog.get_logger(__name__)

VIBRATION_PATTERN_MS = (200, 100, 200)
SPEECH_LANGUAGE = "es-ES"


class ScheduleSource(Protocol):
    """Supplies schedule snapshots for a patient. No live subscription."""

    def get_medications(self, patient_id: str) -> Sequence[MedicationSchedule]: ...

    def get_appointments(self, patient_id: str) -> Sequence[AppointmentSchedule]: ...


class AlertSink(Protocol):
    """Durable storage for alerts. Fire-and-forget from the core's point of view."""

    def record_alert(self, patient_id: str, alert: AlertRecord) -> None: ...


class VitalReadingSink(Protocol):
    """Durable storage for accepted readings. A newer reading supersedes older ones."""

    def add_vital_reading(self, patient_id: str, reading: VitalReading) -> object: ...


class ReminderSink(Protocol):
    """Renders a reminder to the user."""

    def notify(self, event: ReminderEvent) -> None: ...


class SecondaryEffect(Protocol):
    """Optional side effect accompanying a reminder (speech, vibration)."""

    name: str

    def trigger(self, event: ReminderEvent) -> None: ...


class ConsoleReminderChannel:
    """Development channel that prints reminders to the terminal."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def notify(self, event: ReminderEvent) -> None:
        style = "cyan" if event.kind == ReminderKind.MEDICATION else "magenta"
        self.console.print(
            Panel(
                event.detail,
                title=event.title,
                subtitle=f"{event.kind.value} · {event.scheduled_time}",
                border_style=style,
            )
        )


class SpokenAnnouncement:
    """Reads the reminder detail aloud through a platform speech callback."""

    name = "speech"

    def __init__(self, speak: Callable[[str, str], None], language: str = SPEECH_LANGUAGE) -> None:
        self._speak = speak
        self.language = language

    def trigger(self, event: ReminderEvent) -> None:
        self._speak(event.detail, self.language)


class HapticVibration:
    """Vibrates the device for medication reminders."""

    name = "vibration"

    def __init__(
        self,
        vibrate: Callable[[Sequence[int]], None],
        pattern: Sequence[int] = VIBRATION_PATTERN_MS,
        kinds: frozenset[ReminderKind] = frozenset({ReminderKind.MEDICATION}),
    ) -> None:
        self._vibrate = vibrate
        self.pattern = tuple(pattern)
        self.kinds = kinds

    def trigger(self, event: ReminderEvent) -> None:
        if event.kind in self.kinds:
            self._vibrate(self.pattern)


class NotificationDispatcher:
    """
    ReminderSink that fans a reminder out to a primary channel and secondary effects.

    A failing secondary effect is logged and ignored so it can never block the
    visible notification or the other effects.
    """

    def __init__(
        self,
        primary: ReminderSink,
        effects: Sequence[SecondaryEffect] = (),
    ) -> None:
        self.primary = primary
        self.effects = list(effects)
        self.logger = logger.bind(component="notification_dispatcher")

    def notify(self, event: ReminderEvent) -> None:
        self.primary.notify(event)

        for effect in self.effects:
            try:
                effect.trigger(event)
            except Exception as e:
                self.logger.warning(
                    "secondary_effect_failed",
                    effect=getattr(effect, "name", type(effect).__name__),
                    source_id=event.source_id,
                    error=str(e),
                )
