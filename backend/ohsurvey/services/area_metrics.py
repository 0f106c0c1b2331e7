"""Per-area noise and hearing protection metrics derived from a survey"""

from typing import Any, Dict, List, Optional

from ohsurvey.domain.aggregate import SurveyAggregate
from ohsurvey.domain.area_path import canonicalize
from ohsurvey.domain.area_tree import area_label, iter_area_paths
from ohsurvey.domain.store import HEARING_ISSUED_STATUS, HEARING_PROTECTION_DEVICES, MEASUREMENTS, get_entry
from ohsurvey.services.hearing_protection import get_protection_summary, recommend_best_device
from ohsurvey.services.noise_calculations import REFERENCE_TIME_HOURS, calculate_average_laeq, get_exposure_summary


def _numbers(values) -> List[float]:
    result = []
    for value in values or []:
        if isinstance(value, bool):
            continue
        try:
            result.append(float(value))
        except (TypeError, ValueError):
            continue
    return result


def _longest(measurements, name: str) -> Optional[float]:
    values = _numbers(m.get(name) for m in measurements if isinstance(m, dict))
    values = [v for v in values if v > 0]
    return max(values) if values else None


def compute_area_metrics(aggregate: SurveyAggregate) -> List[Dict[str, Any]]:
    """One metrics record per live area, in depth-first order"""
    results = []
    for path, node in iter_area_paths(aggregate.areas):
        measurements = get_entry(aggregate.measurements_by_area, path, MEASUREMENTS.empty())
        if not isinstance(measurements, list):
            measurements = []

        readings = []
        for measurement in measurements:
            if isinstance(measurement, dict):
                readings.extend(_numbers(measurement.get("readings")))

        laeq = calculate_average_laeq(readings) if readings else None
        exposure_time = _longest(measurements, "exposure_time") or node.exposure_time
        shift_duration = _longest(measurements, "shift_duration") or node.shift_duration or REFERENCE_TIME_HOURS

        exposure = None
        if laeq is not None and exposure_time:
            exposure = get_exposure_summary(laeq, exposure_time, shift_duration)

        issued = get_entry(aggregate.hearing_issued_status, path, HEARING_ISSUED_STATUS.empty())
        protection = None
        recommendation = None
        if exposure is not None and issued != "No":
            devices = get_entry(aggregate.hearing_protection_devices, path, HEARING_PROTECTION_DEVICES.empty())
            devices = [d for d in devices if isinstance(d, dict)] if isinstance(devices, list) else []
            protection = get_protection_summary(exposure["lex8h"], devices)
            recommendation = recommend_best_device(devices, exposure["lex8h"])

        results.append({
            "path": path.to_dict(),
            "key": canonicalize(path),
            "label": area_label(aggregate.areas, path),
            "details_completed": node.details_completed,
            "reading_count": len(readings),
            "laeq": laeq,
            "exposure": exposure,
            "hearing_protection_issued": issued,
            "protection": protection,
            "recommendation": recommendation,
        })
    return results
