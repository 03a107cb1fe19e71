"""Services package for the membership backend."""

from .device_store import DeviceNotFoundError, DeviceTrustStore
from .device_trust import (
    TRUST_THRESHOLD,
    DeviceTrustService,
    TrustDecision,
    TrustResult,
)
from .fingerprint import Fingerprint, extract_fingerprint, extract_ip

__all__ = [
    "DeviceNotFoundError",
    "DeviceTrustStore",
    "TRUST_THRESHOLD",
    "DeviceTrustService",
    "TrustDecision",
    "TrustResult",
    "Fingerprint",
    "extract_fingerprint",
    "extract_ip",
]
