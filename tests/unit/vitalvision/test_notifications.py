"""Tests for reminder delivery and best-effort secondary effects."""

from collections.abc import Sequence

import pytest
from rich.console import Console

from vitalvision.domain.models import ReminderEvent, ReminderKind
from vitalvision.services.notifications import (
    SPEECH_LANGUAGE,
    VIBRATION_PATTERN_MS,
    ConsoleReminderChannel,
    HapticVibration,
    NotificationDispatcher,
    SpokenAnnouncement,
)


class RecordingChannel:
    def __init__(self) -> None:
        self.events: list[ReminderEvent] = []

    def notify(self, event: ReminderEvent) -> None:
        self.events.append(event)


class BrokenEffect:
    name = "broken"

    def trigger(self, event: ReminderEvent) -> None:
        raise OSError("speech synthesis unavailable")


@pytest.fixture
def medication_event() -> ReminderEvent:
    return ReminderEvent(
        kind=ReminderKind.MEDICATION,
        title="Recordatorio de Medicamento",
        detail="Recordatorio: Es hora de tomar su medicamento Paracetamol, dosis: 500 mg.",
        source_id="med-1",
        scheduled_time="08:00",
    )


@pytest.fixture
def appointment_event() -> ReminderEvent:
    return ReminderEvent(
        kind=ReminderKind.APPOINTMENT,
        title="Recordatorio de Cita Próxima",
        detail="Recordatorio: Tiene una cita de Control a las 10:45.",
        source_id="appt-1",
        scheduled_time="10:45",
    )


def test_failing_effect_does_not_block_channel_or_other_effects(
    medication_event: ReminderEvent,
) -> None:
    channel = RecordingChannel()
    vibrations: list[Sequence[int]] = []
    dispatcher = NotificationDispatcher(
        channel, effects=[BrokenEffect(), HapticVibration(vibrations.append)]
    )

    dispatcher.notify(medication_event)

    assert channel.events == [medication_event]
    assert vibrations == [VIBRATION_PATTERN_MS]


def test_speech_reads_detail_in_spanish(medication_event: ReminderEvent) -> None:
    spoken: list[tuple[str, str]] = []
    effect = SpokenAnnouncement(lambda text, lang: spoken.append((text, lang)))

    effect.trigger(medication_event)

    assert spoken == [(medication_event.detail, SPEECH_LANGUAGE)]


def test_vibration_only_for_medication_by_default(appointment_event: ReminderEvent) -> None:
    vibrations: list[Sequence[int]] = []

    HapticVibration(vibrations.append).trigger(appointment_event)

    assert vibrations == []


def test_console_channel_renders_title_and_detail(appointment_event: ReminderEvent) -> None:
    console = Console(record=True, width=120)

    ConsoleReminderChannel(console).notify(appointment_event)

    output = console.export_text()
    assert "Recordatorio de Cita Próxima" in output
    assert "10:45" in output
