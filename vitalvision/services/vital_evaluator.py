"""
Vital-sign range evaluation.

Pure functions: a reading goes in, alert records come out. Persisting the
alerts and showing them to the user is left to the caller.
"""

import math
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from vitalvision.domain.errors import InvalidReading
from vitalvision.domain.models import (
    AlertRecord,
    ContextualRiskAlert,
    RiskPrediction,
    VitalReading,
    VitalSignKind,
    format_number,
)
from vitalvision.domain.ranges import DEFAULT_VITAL_RANGES, VitalRangeTable

HIGH_RISK_KEYWORDS = (
    "alto riesgo",
    "riesgo elevado",
    "fatiga extrema",
    "mal de altura",
    "descompensación por altitud",
)
URGENT_ACTION_KEYWORDS = ("detener actividad", "descansar inmediatamente")


def parse_reading(reading: VitalReading | Mapping[str, Any]) -> VitalReading:
    """Accept a reading model or a form payload keyed by vital kind."""
    if isinstance(reading, VitalReading):
        return reading
    try:
        return VitalReading.from_mapping(reading)
    except ValidationError as e:
        bad_kinds = _kinds_in_errors(e)
        if not bad_kinds:
            raise
        raise InvalidReading(bad_kinds, reason="non-numeric") from e


def _kinds_in_errors(error: ValidationError) -> list[str]:
    """Vital kinds named by a validation error, in VitalSignKind order."""
    failed = {str(err["loc"][0]) for err in error.errors() if err["loc"]}
    return [kind.value for kind in VitalSignKind if kind.value in failed]


def _checked_values(reading: VitalReading) -> dict[VitalSignKind, float]:
    """Collect every kind's value, failing on all missing or non-finite ones at once."""
    values: dict[VitalSignKind, float] = {}
    invalid: list[str] = []
    for kind in VitalSignKind:
        value = reading.value_of(kind)
        if value is None or not math.isfinite(value):
            invalid.append(kind.value)
        else:
            values[kind] = value

    if invalid:
        raise InvalidReading(invalid)
    return values


def evaluate_reading(
    reading: VitalReading | Mapping[str, Any],
    ranges: VitalRangeTable = DEFAULT_VITAL_RANGES,
) -> list[AlertRecord]:
    """
    Classify a reading against the normal ranges.

    Bounds are inclusive: only values strictly below min or strictly above
    max produce an alert. Alerts come back in VitalSignKind order, at most
    one per kind.

    Raises:
        InvalidReading: a kind is missing or not a finite number.
    """
    values = _checked_values(parse_reading(reading))

    alerts: list[AlertRecord] = []
    for kind, value in values.items():
        vital_range = ranges[kind]
        if vital_range.min <= value <= vital_range.max:
            continue

        direction = "por debajo" if value < vital_range.min else "por encima"
        unit = vital_range.unit
        message = (
            f"{vital_range.display_name} está {direction} del rango normal. "
            f"Valor: {format_number(value)} {unit} "
            f"(Rango: {format_number(vital_range.min)} - {format_number(vital_range.max)} {unit})"
        )
        alerts.append(
            AlertRecord(
                vital_sign_type=kind,
                value=value,
                normal_range_description=vital_range.describe(),
                message=message,
            )
        )

    return alerts


def detect_contextual_risk(prediction: RiskPrediction) -> ContextualRiskAlert | None:
    """
    Flag an AI risk assessment that calls for urgent attention.

    Returns None when neither the assessment nor the recommendations mention
    a high-risk condition or an urgent action.
    """
    risk_text = prediction.risk_assessment.lower()
    recommendation_text = prediction.recommendations.lower()

    matched = [kw for kw in HIGH_RISK_KEYWORDS if kw in risk_text]
    matched += [kw for kw in URGENT_ACTION_KEYWORDS if kw in recommendation_text]
    if not matched:
        return None

    return ContextualRiskAlert(
        title="ALERTA DE IA: Riesgo Detectado",
        description=(
            f"{prediction.risk_assessment} Recomendación: {prediction.recommendations}"
        ),
        matched_keywords=matched,
    )
