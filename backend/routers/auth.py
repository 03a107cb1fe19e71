"""
Authentication endpoints.

Public endpoints:
    POST /api/v1/auth/login/staff      : union staff username/password login
    POST /api/v1/auth/login/{provider} : login with a linked Google account
    POST /api/v1/auth/refresh          : exchange a refresh token (device trust check)

Orderer endpoints:
    POST /api/v1/auth/link/{provider}  : link a Google account to an order's member
"""

import logging

import httpx
from fastapi import APIRouter, Depends
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import (
    RequestMeta,
    get_device_trust,
    get_orderer,
    get_request_meta,
    get_user_roles,
)
from auth.google_service import get_google_client
from auth.jwt_service import OrdererToken, TokenKind, create_token_pair, decode_token
from auth.sessions import resolve_google_identity, start_session
from database import get_db
from models import (
    FederatedAccount,
    FederatedProvider,
    PersonalMembershipOrder,
    StudentMember,
    UnionStaff,
    User,
)
from schemas import (
    FederatedGrant,
    MessageResponse,
    RefreshRequest,
    StaffLoginRequest,
    TokenPairResponse,
)
from services.device_trust import DeviceTrustService, TrustDecision
from utils.audit import audit
from utils.errors import (
    KnownErrorCode,
    bad_request,
    forbidden,
    not_found,
    unauthorized,
)
from utils.hashing import simple_hash, verify_password

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


# ── Login ──────────────────────────────────────────────────────────────


@router.post("/login/staff", response_model=TokenPairResponse)
async def staff_login(
    body: StaffLoginRequest,
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db),
    trust: DeviceTrustService = Depends(get_device_trust),
):
    """Authenticate a union staff member with username and password."""
    result = await db.execute(
        select(UnionStaff).where(UnionStaff.username == body.username)
    )
    staff = result.scalar_one_or_none()

    if not staff or not verify_password(body.password, staff.password_hash):
        audit.log_login("staff", None, "failure", reason=KnownErrorCode.MISMATCH.value)
        raise unauthorized(KnownErrorCode.MISMATCH, "Invalid username or password")

    user = staff.user
    if not user.is_active:
        audit.log_login("staff", user.id, "failure", reason=KnownErrorCode.BANNED_USER.value)
        raise forbidden(KnownErrorCode.BANNED_USER)

    tokens = await start_session(db, trust, user, meta)
    audit.log_login("staff", user.id, "success")
    return tokens


@router.post("/login/{provider}", response_model=TokenPairResponse)
async def federated_login(
    provider: FederatedProvider,
    grant: FederatedGrant,
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db),
    google: httpx.AsyncClient = Depends(get_google_client),
    trust: DeviceTrustService = Depends(get_device_trust),
):
    """
    Log in with a Google account that is already linked to a user.

    The stored account email is refreshed if Google reports a new one.
    """
    info = await resolve_google_identity(google, grant)

    result = await db.execute(
        select(FederatedAccount).where(
            FederatedAccount.provider == provider,
            FederatedAccount.provider_identifier == info.identifier,
        )
    )
    account = result.scalar_one_or_none()
    if account is None:
        audit.log_login(
            provider.value,
            None,
            "failure",
            email=info.email,
            reason=KnownErrorCode.FEDERATED_NOT_LINKED.value,
        )
        raise unauthorized(
            KnownErrorCode.FEDERATED_NOT_LINKED,
            details={
                "provider": provider.value,
                "identifier": info.identifier,
                "email_hash": simple_hash(info.email),
            },
        )

    user = account.user
    if not user.is_active:
        audit.log_login(
            provider.value, user.id, "failure", reason=KnownErrorCode.BANNED_USER.value
        )
        raise forbidden(KnownErrorCode.BANNED_USER)

    if account.email != info.email:
        account.email = info.email
        await db.commit()

    tokens = await start_session(db, trust, user, meta)
    audit.log_login(provider.value, user.id, "success", email=info.email)
    return tokens


# ── Refresh ────────────────────────────────────────────────────────────


@router.post("/refresh", response_model=TokenPairResponse)
async def refresh_token(
    body: RefreshRequest,
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db),
    trust: DeviceTrustService = Depends(get_device_trust),
):
    """
    Exchange a refresh token for a new token pair.

    The device the session was started on must still be registered and the
    request must look enough like it; otherwise the refresh is refused.
    """
    try:
        token = decode_token(body.refresh_token, expected_kind=TokenKind.REFRESH)
    except JWTError as exc:
        logger.info(f"Rejected refresh token: {exc}")
        raise unauthorized(KnownErrorCode.INVALID_TOKEN)

    user = await db.get(User, token.user_id)
    if user is None:
        raise unauthorized(KnownErrorCode.INVALID_TOKEN, "User no longer exists")
    if not user.is_active:
        raise forbidden(KnownErrorCode.BANNED_USER)

    result = await trust.validate_device(token.device_id, meta.headers, meta.peer_ip)
    audit.log_refresh(
        user.id,
        token.device_id,
        result.decision.value,
        score=result.score,
        activity_id=result.activity.id if result.activity else None,
    )

    if result.decision == TrustDecision.UNKNOWN_DEVICE:
        raise forbidden(
            KnownErrorCode.ACCESS_REVOKED, details={"device_id": token.device_id}
        )
    if result.decision == TrustDecision.UNTRUSTED:
        raise forbidden(
            KnownErrorCode.UNAUTHORIZED_DEVICE,
            details={"activity_id": result.activity.id},
        )

    roles = await get_user_roles(db, user.id)
    pair = create_token_pair(user.id, roles, token.device_id)
    return TokenPairResponse(
        access_token=pair.access_token, refresh_token=pair.refresh_token
    )


# ── Linking ────────────────────────────────────────────────────────────


@router.post("/link/{provider}", response_model=MessageResponse)
async def link_federated_account(
    provider: FederatedProvider,
    grant: FederatedGrant,
    orderer: OrdererToken = Depends(get_orderer),
    db: AsyncSession = Depends(get_db),
    google: httpx.AsyncClient = Depends(get_google_client),
):
    """
    Link a Google account to the member behind a personal membership order.

    The member gets a user on first link, keyed by the Google email.
    """
    order = await db.get(PersonalMembershipOrder, orderer.order_id)
    if order is None or order.member_id is None:
        raise not_found(KnownErrorCode.NOT_FOUND, "Order or member not found")
    member = await db.get(StudentMember, order.member_id)
    if member is None:
        raise not_found(KnownErrorCode.NOT_FOUND, "Order or member not found")

    info = await resolve_google_identity(google, grant)

    existing = await db.execute(
        select(FederatedAccount.id).where(
            FederatedAccount.provider == provider,
            FederatedAccount.provider_identifier == info.identifier,
        )
    )
    if existing.first() is not None:
        audit.log_federated_link(
            provider.value, member.user_id or 0, "failure", reason="identity_in_use"
        )
        raise bad_request(
            KnownErrorCode.FEDERATED_LINKED,
            f"Account already linked: {provider.value}",
        )

    if member.user_id is not None:
        user = await db.get(User, member.user_id)
        linked = await db.execute(
            select(FederatedAccount.id).where(
                FederatedAccount.provider == provider,
                FederatedAccount.user_id == user.id,
            )
        )
        if linked.first() is not None:
            audit.log_federated_link(
                provider.value, user.id, "failure", reason="provider_already_linked"
            )
            raise bad_request(
                KnownErrorCode.FEDERATED_LINKED,
                f"Account already linked: {provider.value}",
            )
    else:
        email_owner = await db.execute(
            select(User.id).where(User.primary_email == info.email)
        )
        if email_owner.first() is not None:
            raise bad_request(
                KnownErrorCode.FEDERATED_LINKED,
                "Email already belongs to another user",
            )
        user = User(primary_email=info.email)
        db.add(user)
        await db.flush()
        member.user_id = user.id

    db.add(
        FederatedAccount(
            provider=provider,
            provider_identifier=info.identifier,
            email=info.email,
            user_id=user.id,
        )
    )
    await db.commit()

    audit.log_federated_link(provider.value, user.id, "success")
    return MessageResponse(message="Successfully linked the federated account")
