"""
FastAPI dependencies for request context, authentication and access control.

Usage in routers::

    from auth.dependencies import AuthContext, require_roles

    @router.get("/member/me")
    async def get_me(auth: AuthContext = Depends(require_roles(UserRole.STUDENT_MEMBER))):
        ...

Roles are re-derived from the database on every request rather than trusted
from the token, so a revoked staff row takes effect immediately.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models import StaffPermission, StudentMember, UnionStaff, User, UserRole
from services.device_store import DeviceTrustStore
from services.device_trust import DeviceTrustService
from utils.audit import audit
from utils.errors import KnownErrorCode, forbidden, unauthorized

from .jwt_service import OrdererToken, SessionToken, TokenKind, decode_token

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class RequestMeta:
    """Transport facts the device trust engine needs from a request."""

    headers: Dict[str, str]
    peer_ip: Optional[str] = None


def get_request_meta(request: Request) -> RequestMeta:
    peer_ip = request.client.host if request.client else None
    return RequestMeta(headers=dict(request.headers), peer_ip=peer_ip)


@dataclass
class AuthContext:
    user: User
    token: SessionToken
    roles: List[UserRole] = field(default_factory=list)
    staff: Optional[UnionStaff] = None

    def has_role(self, *roles: UserRole) -> bool:
        return any(role in self.roles for role in roles)


async def get_user_roles(db: AsyncSession, user_id: int) -> List[UserRole]:
    """Roles currently held by a user, derived from member and staff rows."""
    roles = []

    member = await db.execute(
        select(StudentMember.id).where(StudentMember.user_id == user_id)
    )
    if member.first() is not None:
        roles.append(UserRole.STUDENT_MEMBER)

    staff = await db.execute(select(UnionStaff.user_id).where(UnionStaff.user_id == user_id))
    if staff.first() is not None:
        roles.append(UserRole.UNION_STAFF)

    return roles


def _require_credentials(
    credentials: Optional[HTTPAuthorizationCredentials],
) -> str:
    if not credentials or not credentials.credentials:
        raise unauthorized(KnownErrorCode.NO_TOKEN)
    return credentials.credentials


async def get_current_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """
    Validate the ``Authorization: Bearer <access token>`` header.

    Raises:
        401 NO_TOKEN if the header is missing.
        401 INVALID_TOKEN if the token does not verify as an access token
            or its user no longer exists.
        403 BANNED_USER if the user has been deactivated.
    """
    raw_token = _require_credentials(credentials)

    try:
        token = decode_token(raw_token, expected_kind=TokenKind.ACCESS)
    except JWTError as exc:
        logger.info(f"Rejected access token: {exc}")
        raise unauthorized(KnownErrorCode.INVALID_TOKEN)

    result = await db.execute(select(User).where(User.id == token.user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise unauthorized(KnownErrorCode.INVALID_TOKEN, "User no longer exists")
    if not user.is_active:
        raise forbidden(KnownErrorCode.BANNED_USER)

    audit.set_actor(f"user:{user.id}")

    roles = await get_user_roles(db, user.id)
    staff = None
    if UserRole.UNION_STAFF in roles:
        staff_result = await db.execute(
            select(UnionStaff).where(UnionStaff.user_id == user.id)
        )
        staff = staff_result.scalar_one_or_none()

    return AuthContext(user=user, token=token, roles=roles, staff=staff)


def require_roles(*allowed_roles: UserRole):
    """
    Dependency factory for role-based access control.

    Access is granted if the user holds ANY of ``allowed_roles``.
    """

    async def _check_roles(auth: AuthContext = Depends(get_current_auth)) -> AuthContext:
        if not auth.has_role(*allowed_roles):
            raise forbidden(
                KnownErrorCode.INSUFFICIENT_PERMISSIONS,
                f"Required one of: {', '.join(role.value for role in allowed_roles)}",
            )
        return auth

    return _check_roles


def require_staff_permission(permission: StaffPermission):
    """Dependency factory requiring a union staff member holding ``permission``."""

    async def _check_permission(
        auth: AuthContext = Depends(require_roles(UserRole.UNION_STAFF)),
    ) -> AuthContext:
        if auth.staff is None or not auth.staff.has_permission(permission):
            raise forbidden(
                KnownErrorCode.INSUFFICIENT_PERMISSIONS,
                f"Missing staff permission '{permission.value}'",
            )
        return auth

    return _check_permission


async def get_orderer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> OrdererToken:
    """Validate a bearer orderer token issued for a personal membership order."""
    raw_token = _require_credentials(credentials)

    try:
        token = decode_token(raw_token, expected_kind=TokenKind.ORDERER)
    except JWTError as exc:
        logger.info(f"Rejected orderer token: {exc}")
        raise unauthorized(KnownErrorCode.INVALID_TOKEN)

    audit.set_actor(f"orderer:{token.order_id}")
    return token


def get_device_trust(db: AsyncSession = Depends(get_db)) -> DeviceTrustService:
    """Device trust service bound to the request's database session."""
    return DeviceTrustService(DeviceTrustStore(db))
