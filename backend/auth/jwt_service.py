"""
JWT creation and validation using python-jose.

Two token families share the signing key and are told apart by the ``kind``
claim:

    access / refresh  -> :class:`SessionToken` (user, roles, device)
    orderer           -> :class:`OrdererToken` (one personal membership order)
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

from jose import JWTError, jwt

from config import settings
from models.user import UserRole


class TokenKind(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    ORDERER = "orderer"


@dataclass(frozen=True)
class SessionToken:
    kind: TokenKind
    user_id: int
    device_id: int
    roles: List[UserRole] = field(default_factory=list)


@dataclass(frozen=True)
class OrdererToken:
    order_id: int
    kind: TokenKind = TokenKind.ORDERER


Token = Union[SessionToken, OrdererToken]


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


def _encode(payload: Dict[str, Any], expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {**payload, "iat": now, "exp": now + expires_delta}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_session_token(
    kind: TokenKind,
    user_id: int,
    roles: List[UserRole],
    device_id: int,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access or refresh token.

    Args:
        kind: ``TokenKind.ACCESS`` or ``TokenKind.REFRESH``.
        user_id: Database user ID, stored as ``sub``.
        roles: Roles held by the user when the token is minted.
        device_id: Device the session was registered on.
        expires_delta: Custom expiration (default from settings).

    Returns:
        Encoded JWT string.
    """
    if kind == TokenKind.ORDERER:
        raise ValueError("Session tokens must be access or refresh tokens")

    if expires_delta is None:
        if kind == TokenKind.ACCESS:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        else:
            expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    payload = {
        "sub": str(user_id),
        "kind": kind.value,
        "roles": [UserRole(role).value for role in roles],
        "device_id": device_id,
    }
    return _encode(payload, expires_delta)


def create_token_pair(user_id: int, roles: List[UserRole], device_id: int) -> TokenPair:
    return TokenPair(
        access_token=create_session_token(TokenKind.ACCESS, user_id, roles, device_id),
        refresh_token=create_session_token(TokenKind.REFRESH, user_id, roles, device_id),
    )


def create_orderer_token(order_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Create a token that grants access to a single personal membership order."""
    if expires_delta is None:
        expires_delta = timedelta(days=settings.ORDERER_TOKEN_EXPIRE_DAYS)
    payload = {"sub": str(order_id), "kind": TokenKind.ORDERER.value}
    return _encode(payload, expires_delta)


def decode_token(token: str, expected_kind: Optional[TokenKind] = None) -> Token:
    """
    Verify and decode any token issued by this service.

    Args:
        token: Encoded JWT string.
        expected_kind: If given, tokens of any other kind are rejected.

    Returns:
        :class:`SessionToken` or :class:`OrdererToken`.

    Raises:
        JWTError: If the token is invalid, expired, tampered with, of the
            wrong kind, or missing required claims.
    """
    payload = jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
    )

    try:
        kind = TokenKind(payload.get("kind"))
    except ValueError:
        raise JWTError("Unknown token kind")

    if expected_kind is not None and kind != expected_kind:
        raise JWTError(f"Expected a {expected_kind.value} token, got {kind.value}")

    try:
        if kind == TokenKind.ORDERER:
            return OrdererToken(order_id=int(payload["sub"]))
        return SessionToken(
            kind=kind,
            user_id=int(payload["sub"]),
            device_id=int(payload["device_id"]),
            roles=[UserRole(role) for role in payload.get("roles", [])],
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise JWTError(f"Malformed token claims: {exc}")
