"""Helpers shared by every endpoint that starts a new login session."""

import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from models import User
from schemas import FederatedGrant, TokenPairResponse
from services.device_trust import DeviceTrustService
from utils.errors import KnownErrorCode, bad_request

from .dependencies import RequestMeta, get_user_roles
from .google_service import (
    GoogleUserInfo,
    OAuthTokenError,
    fetch_userinfo,
    get_access_token,
)
from .jwt_service import create_token_pair

logger = logging.getLogger(__name__)


async def resolve_google_identity(
    client: httpx.AsyncClient, grant: FederatedGrant
) -> GoogleUserInfo:
    """
    Turn a frontend grant into the Google account behind it.

    Raises:
        400 INVALID_FEDERATED_GRANT if Google rejects the grant.
    """
    try:
        access_token = await get_access_token(
            client, grant.flow, grant.grant_value, grant.redirect_uri
        )
        return await fetch_userinfo(client, access_token)
    except OAuthTokenError as exc:
        logger.info(f"Federated grant rejected: {exc}")
        raise bad_request(KnownErrorCode.INVALID_FEDERATED_GRANT, str(exc))


async def start_session(
    db: AsyncSession,
    trust: DeviceTrustService,
    user: User,
    meta: RequestMeta,
) -> TokenPairResponse:
    """Register the calling device and mint a token pair bound to it."""
    device = await trust.register_device(user.id, meta.headers, meta.peer_ip)
    roles = await get_user_roles(db, user.id)
    pair = create_token_pair(user.id, roles, device.id)
    logger.info(
        "Session started",
        extra={"user_id": user.id, "device_id": device.id},
    )
    return TokenPairResponse(
        access_token=pair.access_token, refresh_token=pair.refresh_token
    )
