"""
Normal vital-sign ranges.

The range table is configuration: it is validated once at load time and then
treated as a read-only constant. A table must cover exactly the four
VitalSignKind members; anything else is rejected up front rather than
silently ignored during evaluation.
"""

import json
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

import structlog
from pydantic import ValidationError

from vitalvision.domain.errors import RangeTableError
from vitalvision.domain.models import VitalRange, VitalSignKind

logger = structlog.get_logger(__name__)

VitalRangeTable = Mapping[VitalSignKind, VitalRange]


def build_range_table(raw: Mapping[str, Any]) -> VitalRangeTable:
    """Validate a raw mapping (kind -> {min, max, unit, displayName}) into a table."""
    known = {kind.value for kind in VitalSignKind}
    given = {str(getattr(key, "value", key)) for key in raw}

    unknown = sorted(given - known)
    if unknown:
        raise RangeTableError(f"Unknown vital sign kind(s): {', '.join(unknown)}")
    missing = [kind.value for kind in VitalSignKind if kind.value not in given]
    if missing:
        raise RangeTableError(f"Missing range for vital sign kind(s): {', '.join(missing)}")

    table: dict[VitalSignKind, VitalRange] = {}
    for key, entry in raw.items():
        kind = VitalSignKind(getattr(key, "value", key))
        try:
            table[kind] = entry if isinstance(entry, VitalRange) else VitalRange.model_validate(entry)
        except ValidationError as e:
            raise RangeTableError(f"Invalid range for {kind.value}: {e}") from e

    # Re-key in evaluation order
    return MappingProxyType({kind: table[kind] for kind in VitalSignKind})


def load_range_table(path: str | Path) -> VitalRangeTable:
    """Load and validate a range table from a JSON file."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise RangeTableError(f"Cannot read vital range table {path}: {e}") from e

    if not isinstance(raw, dict):
        raise RangeTableError(f"Vital range table {path} must be a JSON object")

    table = build_range_table(raw)
    logger.info("vital_range_table_loaded", path=str(path), kinds=len(table))
    return table


DEFAULT_VITAL_RANGES: VitalRangeTable = build_range_table(
    {
        "heartRate": {"min": 60, "max": 100, "unit": "lpm", "displayName": "Frecuencia Cardíaca"},
        "systolicPressure": {
            "min": 90,
            "max": 140,
            "unit": "mmHg",
            "displayName": "Presión Arterial Sistólica",
        },
        "oxygenSaturation": {
            "min": 94,
            "max": 100,
            "unit": "%",
            "displayName": "Saturación de Oxígeno",
        },
        "temperature": {
            "min": 36.1,
            "max": 37.2,
            "unit": "°C",
            "displayName": "Temperatura Corporal",
        },
    }
)
