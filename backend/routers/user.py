"""
Current-user endpoints.

    GET    /api/v1/user/me                  : user profile and roles
    GET    /api/v1/user/me/devices          : the caller's active devices
    DELETE /api/v1/user/me/devices/{id}     : revoke one of the caller's devices
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import AuthContext, get_current_auth
from database import get_db
from schemas import CurrentUserResponse, DeviceResponse
from services.device_store import DeviceTrustStore
from utils.audit import audit
from utils.errors import KnownErrorCode, not_found

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/user", tags=["user"])


@router.get("/me", response_model=CurrentUserResponse)
async def get_my_user_info(auth: AuthContext = Depends(get_current_auth)):
    """Get the authenticated user's profile and current roles."""
    return CurrentUserResponse(
        id=auth.user.id,
        primary_email=auth.user.primary_email,
        is_active=auth.user.is_active,
        created_at=auth.user.created_at,
        updated_at=auth.user.updated_at,
        roles=auth.roles,
    )


@router.get("/me/devices", response_model=List[DeviceResponse])
async def list_my_devices(
    auth: AuthContext = Depends(get_current_auth),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's devices that can still refresh their session."""
    devices = await DeviceTrustStore(db).list_devices(auth.user.id)

    response = []
    for device in devices:
        successful = [a for a in device.login_activities if a.success]
        response.append(
            DeviceResponse(
                id=device.id,
                name=device.name,
                device_class=device.device_class,
                os_family=device.os_family,
                created_at=device.created_at,
                last_active_at=successful[-1].created_at if successful else None,
                is_current=device.id == auth.token.device_id,
            )
        )
    return response


@router.delete("/me/devices/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_my_device(
    device_id: int,
    auth: AuthContext = Depends(get_current_auth),
    db: AsyncSession = Depends(get_db),
):
    """
    Revoke a device. Its refresh tokens are refused from now on; access
    tokens already issued stay valid until they expire.
    """
    device = await DeviceTrustStore(db).revoke_device(device_id, user_id=auth.user.id)
    if device is None:
        raise not_found(KnownErrorCode.NOT_FOUND, f"Device {device_id} not found")

    audit.log_device_revoked(device.id, auth.user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
