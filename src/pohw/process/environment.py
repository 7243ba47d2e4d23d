from __future__ import annotations

import platform
import time
from typing import Optional

from ..api.models import AssistanceProfile, HumanThresholds, ProcessMetrics
from .tracker import DEFAULT_THRESHOLDS, meets_thresholds

_OS_NAMES = {"Darwin": "macOS", "Windows": "Windows", "Linux": "Linux"}


def detect_environment() -> str:
    runtime = f"{platform.python_implementation()} {platform.python_version()}"
    os_name = _OS_NAMES.get(platform.system(), platform.system() or "unknown")
    return f"{runtime} on {os_name}"


def authored_on_device() -> str:
    return f"{platform.system() or 'unknown'} ({platform.machine() or 'unknown'})"


def local_timezone() -> str:
    return time.tzname[1 if time.localtime().tm_isdst > 0 else 0] or "UTC"


def mode_tag(
    profile: AssistanceProfile,
    metrics: Optional[ProcessMetrics],
    thresholds: HumanThresholds = DEFAULT_THRESHOLDS,
) -> str:
    """Authoring-mode entry of the environment attestation.

    ``human-only`` is only claimed when the timing evidence passes the threshold gate; a
    disclosed or inferred AI profile is always echoed verbatim.
    """
    if profile is not AssistanceProfile.HUMAN_ONLY:
        return profile.value
    if metrics is not None and meets_thresholds(metrics, thresholds):
        return AssistanceProfile.HUMAN_ONLY.value
    return "cli-interface"


def environment_attestation(
    profile: AssistanceProfile,
    metrics: Optional[ProcessMetrics],
    thresholds: HumanThresholds = DEFAULT_THRESHOLDS,
) -> list[str]:
    return [
        f"runtime: {detect_environment()}",
        f"timezone: {local_timezone()}",
        mode_tag(profile, metrics, thresholds),
    ]
