"""
Student member endpoints.

    POST  /api/v1/member             : register a member from a school Google Workspace account
    GET   /api/v1/member/me          : current member with school, settings and user
    PATCH /api/v1/member/me/settings : partial update of member settings
"""

import logging
import re
from datetime import datetime, timezone

import httpx
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import (
    AuthContext,
    RequestMeta,
    get_device_trust,
    get_request_meta,
    require_roles,
)
from auth.google_service import get_google_client
from auth.sessions import resolve_google_identity, start_session
from database import get_db
from models import (
    FederatedAccount,
    FederatedProvider,
    MemberSettings,
    MembershipPurchaseChannel,
    PartnerSchool,
    SchoolAccountConfig,
    StudentMember,
    User,
    UserRole,
)
from schemas import (
    MemberSettingsUpdate,
    StudentMemberCreate,
    StudentMemberResponse,
    TokenPairResponse,
    UserResponse,
)
from services.device_trust import DeviceTrustService
from services.system_config import get_current_configuration
from utils.audit import audit
from utils.errors import (
    KnownErrorCode,
    bad_request,
    configuration_error,
    unprocessable,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/member", tags=["member"])


def capture_student_id(email: str, config: SchoolAccountConfig) -> str:
    """
    Extract the student ID from a school account email.

    The domain must be the school's Workspace domain and the address must
    match ``student_username_format``, whose first group is the student ID.
    Teacher accounts do not match the student format.
    """
    _, _, domain = email.partition("@")
    if domain != config.domain_name:
        raise unprocessable(
            KnownErrorCode.INVALID_SCHOOL_EMAIL,
            "Invalid school email or it's not from our partner school",
        )

    try:
        match = re.search(config.student_username_format, email)
    except re.error as exc:
        raise configuration_error(
            f"Invalid student_username_format for school {config.school_id}: {exc}"
        )

    if not match or not match.groups() or not match.group(1):
        raise unprocessable(
            KnownErrorCode.INVALID_SCHOOL_EMAIL,
            "Invalid email format or it's owned by a teacher",
        )
    return match.group(1)


@router.post("", response_model=TokenPairResponse, status_code=status.HTTP_201_CREATED)
async def create_student_member(
    body: StudentMemberCreate,
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db),
    google: httpx.AsyncClient = Depends(get_google_client),
    trust: DeviceTrustService = Depends(get_device_trust),
):
    """Register and activate a student member of a partner school."""
    school = await db.get(PartnerSchool, body.school_attended_id)
    if school is None:
        raise unprocessable(KnownErrorCode.MISMATCH, "Invalid partner school ID")

    info = await resolve_google_identity(google, body.google_workspace)

    config = school.google_account_config
    if config is None:
        raise configuration_error(
            "School account configuration has not been set up by the administrator"
        )
    student_id = capture_student_id(info.email, config)
    system_config = await get_current_configuration(db)

    existing = await db.execute(select(User.id).where(User.primary_email == info.email))
    if existing.first() is not None:
        raise bad_request(KnownErrorCode.STUDENT_ALREADY_EXISTS)

    user = User(primary_email=info.email)
    db.add(user)
    await db.flush()

    db.add(
        FederatedAccount(
            provider=FederatedProvider.GoogleWorkspace,
            provider_identifier=info.identifier,
            email=info.email,
            user_id=user.id,
        )
    )
    member = StudentMember(
        user_id=user.id,
        school_attended_id=school.id,
        student_id=student_id,
        purchase_channel=MembershipPurchaseChannel.PartnerFree,
        activated_at=datetime.now(timezone.utc),
        expired_at=system_config.contract_end_date if system_config else None,
    )
    db.add(member)
    await db.commit()

    audit.log_member_created(
        member.id, school.id, MembershipPurchaseChannel.PartnerFree.value
    )

    tokens = await start_session(db, trust, user, meta)
    audit.log_login("registration", user.id, "success", email=info.email)
    return tokens


async def _get_own_member(db: AsyncSession, auth: AuthContext) -> StudentMember:
    result = await db.execute(
        select(StudentMember).where(StudentMember.user_id == auth.user.id)
    )
    member = result.scalar_one_or_none()
    if member is None:
        # The role guard already saw a member row for this user
        logger.error(
            "Member not found after role check", extra={"user_id": auth.user.id}
        )
        raise RuntimeError(f"Member for user {auth.user.id} disappeared")
    return member


@router.get("/me", response_model=StudentMemberResponse)
async def get_my_member_info(
    auth: AuthContext = Depends(require_roles(UserRole.STUDENT_MEMBER)),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated member's record."""
    member = await _get_own_member(db, auth)
    response = StudentMemberResponse.model_validate(member)
    response.user = UserResponse.model_validate(auth.user)
    return response


@router.patch("/me/settings", status_code=status.HTTP_204_NO_CONTENT)
async def update_my_member_settings(
    body: MemberSettingsUpdate,
    auth: AuthContext = Depends(require_roles(UserRole.STUDENT_MEMBER)),
    db: AsyncSession = Depends(get_db),
):
    """
    Update member settings.

    Omitted fields are left alone; fields sent as ``null`` are cleared.
    """
    member = await _get_own_member(db, auth)
    changes = body.model_dump(include=body.model_fields_set)

    if not changes:
        logger.info("No settings to update")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    settings_row = member.settings
    if settings_row is None:
        settings_row = MemberSettings(member_id=member.id)
        db.add(settings_row)

    for field, value in changes.items():
        setattr(settings_row, field, value)

    await db.commit()
    audit.log_settings_change(member.id, list(changes))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
