"""
Tests for vital-sign range evaluation.

Covers:
- Boundary-inclusive ranges (property-based)
- Direction and kind of single out-of-range alerts (property-based)
- Message and range formatting
- InvalidReading for missing and non-finite values
- AI contextual risk keyword screening
"""

import math

import pytest
from hypothesis import given
from hypothesis import strategies as st

from vitalvision.domain.errors import InvalidReading
from vitalvision.domain.models import (
    AlertStatus,
    RiskPrediction,
    VitalReading,
    VitalSignKind,
)
from vitalvision.domain.ranges import DEFAULT_VITAL_RANGES, build_range_table
from vitalvision.services.vital_evaluator import detect_contextual_risk, evaluate_reading

NORMAL_READING = {
    "heartRate": 72,
    "systolicPressure": 120,
    "oxygenSaturation": 98,
    "temperature": 36.8,
}


def _in_range(kind: VitalSignKind) -> st.SearchStrategy[float]:
    vital_range = DEFAULT_VITAL_RANGES[kind]
    return st.floats(min_value=vital_range.min, max_value=vital_range.max, allow_nan=False)


class TestEvaluateReading:
    def test_heart_rate_above_range_yields_single_alert(self) -> None:
        reading = {
            "heartRate": 110,
            "systolicPressure": 120,
            "oxygenSaturation": 98,
            "temperature": 37.0,
        }

        alerts = evaluate_reading(reading)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.vital_sign_type == VitalSignKind.HEART_RATE
        assert alert.value == 110
        assert alert.normal_range_description == "60 - 100 lpm"
        assert "por encima" in alert.message
        assert alert.status == AlertStatus.ACTIVE

    def test_message_names_vital_direction_value_and_range(self) -> None:
        reading = {**NORMAL_READING, "oxygenSaturation": 91}

        (alert,) = evaluate_reading(reading)

        assert alert.message == (
            "Saturación de Oxígeno está por debajo del rango normal. "
            "Valor: 91 % (Rango: 94 - 100 %)"
        )

    def test_decimal_values_keep_their_precision(self) -> None:
        (alert,) = evaluate_reading({**NORMAL_READING, "temperature": 38.4})

        assert alert.normal_range_description == "36.1 - 37.2 °C"
        assert "Valor: 38.4 °C" in alert.message

    def test_all_out_of_range_alerts_follow_kind_order(self) -> None:
        reading = {
            "heartRate": 40,
            "systolicPressure": 190,
            "oxygenSaturation": 85,
            "temperature": 39.5,
        }

        alerts = evaluate_reading(reading)

        assert [a.vital_sign_type for a in alerts] == list(VitalSignKind)
        assert ["por debajo" in a.message for a in alerts] == [True, False, True, False]

    @pytest.mark.parametrize(
        "kind", [VitalSignKind.HEART_RATE, VitalSignKind.TEMPERATURE]
    )
    def test_boundaries_are_within_range(self, kind: VitalSignKind) -> None:
        vital_range = DEFAULT_VITAL_RANGES[kind]
        for boundary in (vital_range.min, vital_range.max):
            assert evaluate_reading({**NORMAL_READING, kind.value: boundary}) == []

    @given(
        heart_rate=_in_range(VitalSignKind.HEART_RATE),
        systolic=_in_range(VitalSignKind.SYSTOLIC_PRESSURE),
        oxygen=_in_range(VitalSignKind.OXYGEN_SATURATION),
        temperature=_in_range(VitalSignKind.TEMPERATURE),
    )
    def test_readings_within_all_ranges_produce_no_alerts(
        self, heart_rate: float, systolic: float, oxygen: float, temperature: float
    ) -> None:
        reading = VitalReading(
            heart_rate=heart_rate,
            systolic_pressure=systolic,
            oxygen_saturation=oxygen,
            temperature=temperature,
        )

        assert evaluate_reading(reading) == []

    @given(
        kind=st.sampled_from(list(VitalSignKind)),
        below=st.booleans(),
        offset=st.floats(min_value=0.01, max_value=50.0, allow_nan=False),
    )
    def test_single_out_of_range_kind_produces_one_matching_alert(
        self, kind: VitalSignKind, below: bool, offset: float
    ) -> None:
        vital_range = DEFAULT_VITAL_RANGES[kind]
        value = vital_range.min - offset if below else vital_range.max + offset

        alerts = evaluate_reading({**NORMAL_READING, kind.value: value})

        assert len(alerts) == 1
        assert alerts[0].vital_sign_type == kind
        assert ("por debajo" if below else "por encima") in alerts[0].message

    def test_evaluation_is_repeatable(self) -> None:
        reading = VitalReading.from_mapping({**NORMAL_READING, "systolicPressure": 150})

        assert evaluate_reading(reading) == evaluate_reading(reading)

    def test_custom_range_table_is_honoured(self) -> None:
        ranges = build_range_table(
            {
                kind.value: {
                    "min": r.min,
                    "max": r.max,
                    "unit": r.unit,
                    "displayName": r.display_name,
                }
                for kind, r in DEFAULT_VITAL_RANGES.items()
            }
            | {"heartRate": {"min": 50, "max": 80, "unit": "lpm", "displayName": "Pulso"}}
        )

        (alert,) = evaluate_reading({**NORMAL_READING, "heartRate": 85}, ranges)

        assert alert.message.startswith("Pulso está por encima")
        assert alert.normal_range_description == "50 - 80 lpm"


class TestInvalidReading:
    def test_missing_kinds_are_all_reported(self) -> None:
        with pytest.raises(InvalidReading) as exc_info:
            evaluate_reading({"heartRate": 72, "temperature": 36.5})

        assert exc_info.value.kinds == ("systolicPressure", "oxygenSaturation")

    @pytest.mark.parametrize("bad_value", [math.nan, math.inf, -math.inf])
    def test_non_finite_values_are_rejected(self, bad_value: float) -> None:
        with pytest.raises(InvalidReading, match="temperature"):
            evaluate_reading({**NORMAL_READING, "temperature": bad_value})

    @pytest.mark.parametrize("bad_value", ["fast", ""])
    def test_non_numeric_value_is_invalid_reading(self, bad_value: str) -> None:
        with pytest.raises(InvalidReading) as exc_info:
            evaluate_reading({**NORMAL_READING, "heartRate": bad_value})

        assert exc_info.value.kinds == ("heartRate",)
        assert exc_info.value.reason == "non-numeric"

    def test_every_non_numeric_kind_is_reported(self) -> None:
        with pytest.raises(InvalidReading) as exc_info:
            evaluate_reading({**NORMAL_READING, "temperature": "n/a", "heartRate": "?"})

        assert exc_info.value.kinds == ("heartRate", "temperature")


class TestContextualRisk:
    def test_high_risk_assessment_is_flagged(self) -> None:
        prediction = RiskPrediction(
            risk_assessment="Paciente con ALTO RIESGO de mal de altura.",
            recommendations="Hidratarse.",
        )

        risk_alert = detect_contextual_risk(prediction)

        assert risk_alert is not None
        assert risk_alert.matched_keywords == ["alto riesgo", "mal de altura"]
        assert "Recomendación: Hidratarse." in risk_alert.description

    def test_urgent_recommendation_is_flagged(self) -> None:
        prediction = RiskPrediction(
            risk_assessment="Signos estables.",
            recommendations="Descansar inmediatamente y controlar el pulso.",
        )

        risk_alert = detect_contextual_risk(prediction)

        assert risk_alert is not None
        assert risk_alert.matched_keywords == ["descansar inmediatamente"]

    def test_calm_assessment_is_not_flagged(self) -> None:
        prediction = RiskPrediction(
            risk_assessment="Riesgo bajo.", recommendations="Mantener la rutina."
        )

        assert detect_contextual_risk(prediction) is None
