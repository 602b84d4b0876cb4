"""
Core services for the application.

This package contains the vital-sign evaluator, the reminder scheduler,
the collaborator protocols and the service that ties them together.
"""

from .notifications import (
    AlertSink,
    ConsoleReminderChannel,
    HapticVibration,
    NotificationDispatcher,
    ReminderSink,
    ScheduleSource,
    SecondaryEffect,
    SpokenAnnouncement,
    VitalReadingSink,
)
from .patient_monitoring import PatientMonitoringService
from .reminder_scheduler import ReminderFiredSet, ReminderRunner, ReminderScheduler
from .vital_evaluator import detect_contextual_risk, evaluate_reading, parse_reading

__all__ = [
    "AlertSink",
    "ConsoleReminderChannel",
    "HapticVibration",
    "NotificationDispatcher",
    "PatientMonitoringService",
    "ReminderFiredSet",
    "ReminderRunner",
    "ReminderScheduler",
    "ReminderSink",
    "ScheduleSource",
    "SecondaryEffect",
    "SpokenAnnouncement",
    "VitalReadingSink",
    "detect_contextual_risk",
    "evaluate_reading",
    "parse_reading",
]
