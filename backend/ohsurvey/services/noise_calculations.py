"""
Noise exposure calculations per SANS 10083 and ISO 9612

- LEX,8h: daily exposure normalised to an 8 hour reference day
- Dose: percentage of the permitted daily exposure (3 dB exchange rate)
- Zones: green below the 85 dB(A) action level, orange below the
  87 dB(A) limit, red at or above it
"""

import math
from typing import Any, Dict, Iterable, List


REFERENCE_LEVEL_DB = 85.0
LIMIT_LEVEL_DB = 87.0
EXCHANGE_RATE_DB = 3.0
REFERENCE_TIME_HOURS = 8.0


def _round(value: float, digits: int) -> float:
    # Round half up, the way the survey reports have always displayed values
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def calculate_lex8h(laeq: float, exposure_time: float) -> float:
    """LEX,8h = LAeq,T + 10 log10(T / 8); 0 for a non-positive exposure time"""
    if exposure_time <= 0:
        return 0.0
    return laeq + 10 * math.log10(exposure_time / REFERENCE_TIME_HOURS)


def _allowed_time(laeq: float) -> float:
    return REFERENCE_TIME_HOURS * math.pow(2, (REFERENCE_LEVEL_DB - laeq) / EXCHANGE_RATE_DB)


def calculate_noise_dose(laeq: float, exposure_time: float) -> float:
    """Dose in percent, 1 decimal. Below the action level the dose is 0."""
    if exposure_time <= 0 or laeq < REFERENCE_LEVEL_DB:
        return 0.0
    return _round(exposure_time / _allowed_time(laeq) * 100, 1)


_ZONES = {
    "green": {
        "zone": "green",
        "label": "Green Zone",
        "requirements": [
            "No special noise control requirements",
            "Routine noise monitoring recommended",
        ],
    },
    "orange": {
        "zone": "orange",
        "label": "Orange Zone",
        "requirements": [
            "Hearing conservation program required",
            "Annual audiometric testing",
            "Hearing protection available",
            "Noise awareness training",
            "Engineering controls investigation",
        ],
    },
    "red": {
        "zone": "red",
        "label": "Red Zone",
        "requirements": [
            "MANDATORY hearing protection (HPD)",
            "Demarcation and signage required",
            "Access control measures",
            "Annual audiometric testing",
            "Engineering controls mandatory",
            "Administrative controls required",
        ],
    },
}


def classify_noise_zone(lex8h: float) -> Dict[str, Any]:
    if lex8h < REFERENCE_LEVEL_DB:
        zone = _ZONES["green"]
    elif lex8h < LIMIT_LEVEL_DB:
        zone = _ZONES["orange"]
    else:
        zone = _ZONES["red"]
    return {"zone": zone["zone"], "label": zone["label"], "requirements": list(zone["requirements"])}


def calculate_average_laeq(readings: Iterable[float]) -> float:
    """Energy average 10 log10(mean(10^(L/10))), 1 decimal; 0 for no readings"""
    readings = list(readings)
    if not readings:
        return 0.0
    energy = sum(math.pow(10, reading / 10) for reading in readings)
    return _round(10 * math.log10(energy / len(readings)), 1)


def check_compliance(lex8h: float) -> Dict[str, Any]:
    if lex8h < REFERENCE_LEVEL_DB:
        return {
            "is_compliant": True,
            "level": "safe",
            "action_required": ["Continue routine monitoring"],
            "severity": "info",
        }
    if lex8h < LIMIT_LEVEL_DB:
        return {
            "is_compliant": True,
            "level": "action",
            "action_required": [
                "Implement hearing conservation program",
                "Provide hearing protection devices",
                "Conduct annual audiometric testing",
                "Provide noise awareness training",
                "Investigate engineering controls",
            ],
            "severity": "warning",
        }
    return {
        "is_compliant": False,
        "level": "limit-exceeded",
        "action_required": [
            "IMMEDIATE: Enforce mandatory hearing protection",
            "Demarcate area with signage",
            "Implement access control",
            "Implement engineering controls",
            "Reduce exposure time if controls insufficient",
            "Medical surveillance program required",
        ],
        "severity": "critical",
    }


def calculate_permitted_exposure_time(laeq: float) -> float:
    """Hours permitted per day at ``laeq``, 2 decimals; a full shift below 85 dB(A)"""
    if laeq < REFERENCE_LEVEL_DB:
        return REFERENCE_TIME_HOURS
    return _round(_allowed_time(laeq), 2)


def calculate_max_permissible_level(exposure_time: float) -> float:
    """Highest LAeq allowed for ``exposure_time`` hours, 1 decimal"""
    if exposure_time <= 0:
        return 0.0
    if exposure_time >= REFERENCE_TIME_HOURS:
        return REFERENCE_LEVEL_DB
    level = REFERENCE_LEVEL_DB + EXCHANGE_RATE_DB * math.log2(REFERENCE_TIME_HOURS / exposure_time)
    return _round(level, 1)


def get_exposure_summary(laeq: float, exposure_time: float, shift_duration: float = REFERENCE_TIME_HOURS) -> Dict[str, Any]:
    lex8h = calculate_lex8h(laeq, exposure_time)
    permitted_time = calculate_permitted_exposure_time(laeq)
    return {
        "laeq": laeq,
        "exposure_time": exposure_time,
        "shift_duration": shift_duration,
        "lex8h": lex8h,
        "dose": calculate_noise_dose(laeq, exposure_time),
        "zone": classify_noise_zone(lex8h),
        "compliance": check_compliance(lex8h),
        "permitted_time": permitted_time,
        "exceeds_limit": exposure_time > permitted_time and laeq >= REFERENCE_LEVEL_DB,
    }


__all__: List[str] = [
    "calculate_lex8h",
    "calculate_noise_dose",
    "classify_noise_zone",
    "calculate_average_laeq",
    "check_compliance",
    "calculate_permitted_exposure_time",
    "calculate_max_permissible_level",
    "get_exposure_summary",
]
