"""
Hearing protection effectiveness per SANS 10083

Manufacturer ratings are derated for real-world fit:
    SNR (European):  attenuation = SNR - 4
    NRR (US):        attenuation = (NRR - 7) / 2
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from ohsurvey.services.noise_calculations import classify_noise_zone


AMBIENT_FLOOR_DB = 40.0
OPTIMAL_PROTECTED_LEVEL_DB = 80.0


def calculate_effective_attenuation(snr_or_nrr: str, value: float) -> float:
    if snr_or_nrr == "SNR":
        return max(0.0, value - 4)
    if snr_or_nrr == "NRR":
        return max(0.0, (value - 7) / 2)
    return 0.0


def calculate_protected_exposure(actual_lex8h: float, snr_or_nrr: str, snr_value: float) -> float:
    """Exposure with the device worn, never below the ambient floor"""
    protected = actual_lex8h - calculate_effective_attenuation(snr_or_nrr, snr_value)
    return max(AMBIENT_FLOOR_DB, protected)


def assess_protection_adequacy(actual_lex8h: float, protected_lex8h: float) -> Dict[str, Any]:
    reduction = actual_lex8h - protected_lex8h

    if reduction > 25:
        return {
            "is_adequate": True,
            "level": "over-protected",
            "message": "Over-protected - may impair communication and safety awareness",
            "severity": "warning",
            "recommendations": [
                "Consider lower attenuation HPD to maintain situational awareness",
                "Ensure workers can hear warning signals and communication",
                "May cause workers to remove HPD, defeating protection",
            ],
        }
    if protected_lex8h < 75:
        return {
            "is_adequate": True,
            "level": "excellent",
            "message": "Excellent protection - well below action levels",
            "severity": "success",
            "recommendations": [
                "Current HPD provides excellent protection",
                "Continue monitoring and enforcement",
                "Maintain proper fitting and usage",
            ],
        }
    if protected_lex8h < 80:
        return {
            "is_adequate": True,
            "level": "good",
            "message": "Good protection - comfortably below action level",
            "severity": "success",
            "recommendations": [
                "Current HPD provides good protection",
                "Ensure proper fitting and consistent usage",
                "Continue monitoring compliance",
            ],
        }
    if protected_lex8h < 85:
        return {
            "is_adequate": True,
            "level": "acceptable",
            "message": "Acceptable protection - below action level",
            "severity": "info",
            "recommendations": [
                "Protection is adequate but with limited safety margin",
                "Ensure 100% wearing compliance",
                "Consider higher attenuation HPD for additional safety margin",
                "Investigate engineering controls to reduce noise at source",
            ],
        }
    if protected_lex8h < 87:
        return {
            "is_adequate": False,
            "level": "marginal",
            "message": "Marginal protection - still in Orange Zone (action level exceeded)",
            "severity": "warning",
            "recommendations": [
                "URGENT: Upgrade to higher attenuation HPD immediately",
                "Protected exposure still exceeds 85 dB(A) action level",
                "Implement engineering controls as priority",
                "Double hearing protection may be required",
                "Reduce exposure time if controls are insufficient",
            ],
        }
    return {
        "is_adequate": False,
        "level": "inadequate",
        "message": "INADEQUATE protection - still exceeds limit even with HPD",
        "severity": "error",
        "recommendations": [
            "CRITICAL: Current HPD is insufficient - Red Zone limit exceeded",
            "IMMEDIATE ACTION: Implement double hearing protection (earplugs + earmuffs)",
            "Engineering controls MANDATORY to reduce noise at source",
            "Reduce exposure time immediately",
            "Reassess area access - consider exclusion until controls implemented",
            "Medical surveillance required for all exposed workers",
        ],
    }


def _rating(device: Mapping[str, Any]) -> Optional[float]:
    try:
        return float(device.get("snr_value"))
    except (TypeError, ValueError):
        return None


def recommend_best_device(devices: Sequence[Mapping[str, Any]], actual_lex8h: float) -> Optional[Dict[str, Any]]:
    """
    Pick the device in Good condition whose protected level lands nearest
    80 dB(A). When two candidates both keep exposure below 85 dB(A), the
    one with less attenuation wins.
    """
    if not devices:
        return None

    candidates = []
    for index, device in enumerate(devices):
        rating = _rating(device)
        if device.get("condition") != "Good" or rating is None:
            continue
        protected = calculate_protected_exposure(actual_lex8h, device.get("snr_or_nrr", ""), rating)
        candidates.append((index, protected))

    if not candidates:
        return {
            "best_device_index": 0,
            "reason": "No devices in good condition - all devices need replacement",
        }

    best_index, best_protected = candidates[0]
    for index, protected in candidates[1:]:
        if protected < 85 and best_protected < 85:
            if protected > best_protected:
                best_index, best_protected = index, protected
        elif abs(protected - OPTIMAL_PROTECTED_LEVEL_DB) < abs(best_protected - OPTIMAL_PROTECTED_LEVEL_DB):
            best_index, best_protected = index, protected

    adequacy = assess_protection_adequacy(actual_lex8h, best_protected)
    if adequacy["is_adequate"]:
        reason = f"Provides {adequacy['level']} protection ({best_protected:.1f} dB(A) protected level)"
    else:
        reason = f"Warning: Even best device provides {adequacy['level']} protection - additional controls needed"
    return {"best_device_index": best_index, "reason": reason}


def get_protection_summary(actual_lex8h: float, devices: Sequence[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Protection achieved by the first Good device (or the first device)"""
    if not devices or actual_lex8h == 0:
        return None

    device = next((d for d in devices if d.get("condition") == "Good"), devices[0])
    rating = _rating(device)
    if rating is None:
        return None

    snr_or_nrr = device.get("snr_or_nrr", "")
    protected = calculate_protected_exposure(actual_lex8h, snr_or_nrr, rating)
    return {
        "actual_zone": classify_noise_zone(actual_lex8h),
        "protected_zone": classify_noise_zone(protected),
        "protected_lex8h": protected,
        "effective_attenuation": calculate_effective_attenuation(snr_or_nrr, rating),
        "adequacy": assess_protection_adequacy(actual_lex8h, protected),
        "device_summary": f"{device.get('type', '')} - {device.get('manufacturer', '')} ({snr_or_nrr}: {device.get('snr_value')} dB)",
    }


__all__: List[str] = [
    "calculate_effective_attenuation",
    "calculate_protected_exposure",
    "assess_protection_adequacy",
    "recommend_best_device",
    "get_protection_summary",
]
