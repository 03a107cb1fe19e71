"""
Persistence for registered devices and their login activity.

The store holds no policy: it reads and writes rows for the session it was
given and lets ``SQLAlchemyError`` propagate to the caller.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import LoginActivity, UserDevice
from services.fingerprint import Fingerprint


class DeviceNotFoundError(LookupError):
    """Raised when an activity is appended to a device that does not exist."""

    def __init__(self, device_id: int):
        super().__init__(f"Device {device_id} does not exist")
        self.device_id = device_id


class DeviceTrustStore:
    """Device and LoginActivity access for one database session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_device(
        self, user_id: int, fingerprint: Fingerprint, ip_address: Optional[str]
    ) -> UserDevice:
        """Insert a device together with its first successful activity."""
        device = UserDevice(
            user_id=user_id,
            name=fingerprint.name,
            device_class=fingerprint.device_class,
            os_family=fingerprint.os_family,
        )
        device.login_activities.append(
            LoginActivity(ip_address=ip_address, success=True)
        )
        self.session.add(device)
        await self.session.commit()
        return device

    async def get_device_with_activities(self, device_id: int) -> Optional[UserDevice]:
        """
        Load a live device and its activity history, oldest first.

        Always re-reads the collection so activities appended earlier in the
        same session are included.
        """
        result = await self.session.execute(
            select(UserDevice)
            .options(selectinload(UserDevice.login_activities))
            .where(UserDevice.id == device_id, UserDevice.revoked_at.is_(None))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def append_activity(
        self, device_id: int, ip_address: Optional[str], success: bool
    ) -> LoginActivity:
        device = await self.session.get(UserDevice, device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)

        activity = LoginActivity(
            device_id=device_id, ip_address=ip_address, success=success
        )
        self.session.add(activity)
        await self.session.commit()
        await self.session.refresh(activity)
        return activity

    async def list_devices(self, user_id: int) -> List[UserDevice]:
        """Non-revoked devices owned by a user, newest first."""
        result = await self.session.execute(
            select(UserDevice)
            .options(selectinload(UserDevice.login_activities))
            .where(UserDevice.user_id == user_id, UserDevice.revoked_at.is_(None))
            .order_by(UserDevice.created_at.desc(), UserDevice.id.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def revoke_device(
        self, device_id: int, user_id: Optional[int] = None
    ) -> Optional[UserDevice]:
        """
        Tombstone a device so its refresh tokens stop working.

        When ``user_id`` is given the device must belong to that user.
        Returns ``None`` if there is no matching live device.
        """
        query = select(UserDevice).where(
            UserDevice.id == device_id, UserDevice.revoked_at.is_(None)
        )
        if user_id is not None:
            query = query.where(UserDevice.user_id == user_id)

        result = await self.session.execute(query)
        device = result.scalar_one_or_none()
        if device is None:
            return None

        device.revoked_at = datetime.now(timezone.utc)
        await self.session.commit()
        await self.session.refresh(device)
        return device
