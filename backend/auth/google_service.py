"""
Google OAuth2 client used for both consumer Google and Workspace accounts.

Only two calls are made: the authorization code exchange and the userinfo
lookup. Both go through an ``httpx.AsyncClient`` supplied by the
:func:`get_google_client` dependency so tests can swap the transport.
"""

import enum
import logging
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

import httpx

from config import settings
from utils.logging_utils import LogTimer

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 10.0


class GrantFlow(str, enum.Enum):
    AUTHORIZATION_CODE = "authorization_code"
    # Implicit flow: the grant value already is a Google access token
    TOKEN = "token"


class OAuthTokenError(Exception):
    """Raised when Google rejects a grant or returns an unusable response."""


@dataclass(frozen=True)
class GoogleUserInfo:
    identifier: str
    email: str


async def get_google_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
        yield client


async def exchange_code(
    client: httpx.AsyncClient, code: str, redirect_uri: str
) -> str:
    """
    Exchange an authorization code at Google's token endpoint.

    Returns:
        The Google access token.

    Raises:
        OAuthTokenError: On a non-200 response or a response without
            ``access_token``.
    """
    data = {
        "client_id": settings.GOOGLE_OAUTH_CLIENT_ID,
        "client_secret": settings.GOOGLE_OAUTH_CLIENT_SECRET,
        "code": code,
        "redirect_uri": redirect_uri,
        "grant_type": "authorization_code",
    }

    with LogTimer(logger, "Google authorization code exchange"):
        try:
            resp = await client.post(
                settings.GOOGLE_TOKEN_URL,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise OAuthTokenError(f"Token endpoint unreachable: {exc}") from exc

    if resp.status_code != 200:
        raise OAuthTokenError(
            f"Failed to exchange code for token: {resp.status_code} {resp.text}"
        )

    try:
        result = resp.json()
    except ValueError as exc:
        raise OAuthTokenError("Token endpoint returned invalid JSON") from exc

    access_token = result.get("access_token") if isinstance(result, dict) else None
    if not access_token:
        raise OAuthTokenError("Token endpoint response missing access_token")
    return access_token


async def get_access_token(
    client: httpx.AsyncClient,
    flow: GrantFlow,
    grant_value: str,
    redirect_uri: Optional[str] = None,
) -> str:
    """Resolve a login grant into a Google access token."""
    if flow == GrantFlow.TOKEN:
        return grant_value

    if not redirect_uri:
        raise OAuthTokenError("redirect_uri is required for the authorization_code flow")
    return await exchange_code(client, grant_value, redirect_uri)


async def fetch_userinfo(client: httpx.AsyncClient, access_token: str) -> GoogleUserInfo:
    """
    Fetch the account's ``sub`` and ``email`` from the userinfo endpoint.

    Raises:
        OAuthTokenError: If the access token is rejected or the response
            lacks either claim.
    """
    with LogTimer(logger, "Google userinfo lookup"):
        try:
            resp = await client.get(
                settings.GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as exc:
            raise OAuthTokenError(f"Userinfo endpoint unreachable: {exc}") from exc

    if resp.status_code != 200:
        raise OAuthTokenError(
            f"Failed to get federated account's user info: {resp.status_code} {resp.text}"
        )

    try:
        claims = resp.json()
    except ValueError as exc:
        raise OAuthTokenError("Userinfo endpoint returned invalid JSON") from exc

    sub = claims.get("sub") if isinstance(claims, dict) else None
    email = claims.get("email") if isinstance(claims, dict) else None
    if not sub or not email:
        raise OAuthTokenError("Userinfo response missing sub or email")

    return GoogleUserInfo(identifier=str(sub), email=email)
