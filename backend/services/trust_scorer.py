"""
Weighted similarity between a live fingerprint and a stored device.

Each signal contributes a fixed weight when it matches; the score is the sum
of matched weights and lies in ``[0, 1]``.
"""

from typing import Iterable, Optional

from models.device import LoginActivity, UserDevice
from services.fingerprint import UNKNOWN_NAME, Fingerprint

NAME_WEIGHT = 0.30
CLASS_WEIGHT = 0.10
OS_WEIGHT = 0.20
IP_WEIGHT = 0.40

WEIGHTS = (NAME_WEIGHT, CLASS_WEIGHT, OS_WEIGHT, IP_WEIGHT)

# Enough precision for the weights above; avoids 0.30000000000000004
SCORE_PRECISION = 6


def _ip_seen_before(live_ip: Optional[str], activities: Iterable[LoginActivity]) -> bool:
    if not live_ip:
        return False
    return any(activity.ip_address == live_ip for activity in activities)


def score(
    live: Fingerprint,
    live_ip: Optional[str],
    device: UserDevice,
    activities: Iterable[LoginActivity],
) -> float:
    """
    Score how closely a request matches a registered device.

    A stored name of ``"Unknown"`` never counts as a match, since two
    unrecognised agents would otherwise look identical. The IP signal checks
    every historical activity, failed ones included.
    """
    total = 0.0

    if device.name != UNKNOWN_NAME and live.name == device.name:
        total += NAME_WEIGHT
    if live.device_class == device.device_class:
        total += CLASS_WEIGHT
    if live.os_family == device.os_family:
        total += OS_WEIGHT
    if _ip_seen_before(live_ip, activities):
        total += IP_WEIGHT

    return round(total, SCORE_PRECISION)
