"""
Device trust decisions for refresh-token use.

A device is registered on login. Each refresh compares the live request
against the registered fingerprint and the device's IP history, then records
the outcome as a new login activity. Unknown and revoked devices are never
scored.
"""

import enum
from dataclasses import dataclass
from typing import Mapping, Optional

from models import LoginActivity, UserDevice
from services import trust_scorer
from services.device_store import DeviceTrustStore
from services.fingerprint import extract_fingerprint, extract_ip

TRUST_THRESHOLD = 0.3


class TrustDecision(str, enum.Enum):
    TRUSTED = "trusted"
    UNTRUSTED = "untrusted"
    UNKNOWN_DEVICE = "unknown_device"


@dataclass
class TrustResult:
    decision: TrustDecision
    score: Optional[float] = None
    activity: Optional[LoginActivity] = None
    device: Optional[UserDevice] = None

    @property
    def is_trusted(self) -> bool:
        return self.decision == TrustDecision.TRUSTED


class DeviceTrustService:
    def __init__(self, store: DeviceTrustStore):
        self.store = store

    async def register_device(
        self, user_id: int, headers: Mapping[str, str], peer_ip: Optional[str]
    ) -> UserDevice:
        """Create a device for a fresh login, seeded with one successful activity."""
        fingerprint = extract_fingerprint(headers)
        ip_address = extract_ip(headers, peer_ip)
        return await self.store.create_device(user_id, fingerprint, ip_address)

    async def validate_device(
        self, device_id: int, headers: Mapping[str, str], peer_ip: Optional[str]
    ) -> TrustResult:
        """
        Decide whether a request still comes from a registered device.

        Exactly one activity is appended for every scored request; an unknown
        or revoked device returns ``UNKNOWN_DEVICE`` without writing anything.
        """
        device = await self.store.get_device_with_activities(device_id)
        if device is None:
            return TrustResult(decision=TrustDecision.UNKNOWN_DEVICE)

        fingerprint = extract_fingerprint(headers)
        ip_address = extract_ip(headers, peer_ip)

        # Snapshot history before the new activity lands
        history = list(device.login_activities)
        value = trust_scorer.score(fingerprint, ip_address, device, history)

        decision = (
            TrustDecision.TRUSTED if value >= TRUST_THRESHOLD else TrustDecision.UNTRUSTED
        )
        activity = await self.store.append_activity(
            device.id, ip_address, success=decision == TrustDecision.TRUSTED
        )
        return TrustResult(
            decision=decision, score=value, activity=activity, device=device
        )
