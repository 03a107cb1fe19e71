"""
Machine-readable error codes for failures caused by the requester.

Codes have the form ``UXXXX``:

    1000-1999  basic CRUD operations
    2000-2999  authentication and authorization
    3000-3999  user management
    4000-4999  membership management
    8000-9999  miscellaneous
"""

import enum
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class KnownErrorCode(str, enum.Enum):
    # Basic CRUD operations
    NOT_FOUND = "U1000"
    MISMATCH = "U1001"

    # Authentication and authorization
    NO_TOKEN = "U2000"
    INVALID_TOKEN = "U2001"
    BANNED_USER = "U2002"
    INSUFFICIENT_PERMISSIONS = "U2003"
    ACCESS_REVOKED = "U2004"
    UNAUTHORIZED_DEVICE = "U2005"

    # User management
    INVALID_FEDERATED_GRANT = "U3000"
    FEDERATED_LINKED = "U3001"
    FEDERATED_NOT_LINKED = "U3002"
    STUDENT_ALREADY_EXISTS = "U3003"

    # Membership management
    INVALID_SCHOOL_EMAIL = "U4000"
    INVALID_NICKNAME = "U4001"
    INVALID_INVOICE_BARCODE = "U4002"

    # Miscellaneous
    CONFIGURATION_ERROR = "U8000"


class KnownHTTPException(HTTPException):
    """
    HTTPException tagged with a :class:`KnownErrorCode`.

    ``debug_message`` and ``details`` are meant for logs and for clients in
    debug mode; the public body only carries the code and a short detail.
    """

    def __init__(
        self,
        status_code: int,
        code: KnownErrorCode,
        debug_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        detail = f"{code.value} - {debug_message}" if debug_message else code.value
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code
        self.debug_message = debug_message
        self.details = details or {}


def bad_request(
    code: KnownErrorCode,
    debug_message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
):
    return KnownHTTPException(status.HTTP_400_BAD_REQUEST, code, debug_message, details)


def unauthorized(
    code: KnownErrorCode,
    debug_message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
):
    return KnownHTTPException(
        status.HTTP_401_UNAUTHORIZED,
        code,
        debug_message,
        details,
        headers={"WWW-Authenticate": "Bearer"},
    )


def forbidden(
    code: KnownErrorCode,
    debug_message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
):
    return KnownHTTPException(status.HTTP_403_FORBIDDEN, code, debug_message, details)


def not_found(
    code: KnownErrorCode,
    debug_message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
):
    return KnownHTTPException(status.HTTP_404_NOT_FOUND, code, debug_message, details)


def unprocessable(
    code: KnownErrorCode,
    debug_message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
):
    return KnownHTTPException(
        status.HTTP_422_UNPROCESSABLE_ENTITY, code, debug_message, details
    )


def configuration_error(
    debug_message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
):
    return KnownHTTPException(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        KnownErrorCode.CONFIGURATION_ERROR,
        debug_message,
        details,
    )
