"""
Pydantic v2 schemas with strict input validation and lenient output serialization.

Architecture:
  - *Fields classes: pure field definitions, no validators. Shared by both
    input and output schemas.
  - *Create / *Update classes: inherit from *Fields and ADD validators so bad
    data is rejected before it reaches the database.
  - *Response classes: inherit from *Fields directly (no validators) so any
    row already in the database serializes without crashing.

Validators that map to a :class:`KnownErrorCode` raise a ``known_error``
custom error carrying the code; the validation handler in ``main`` turns the
first such error into a coded 422 response.
"""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from auth.google_service import GrantFlow
from models import (
    DeviceClass,
    MembershipPurchaseChannel,
    OsFamily,
    PartnerPlan,
    UserRole,
)
from utils.errors import KnownErrorCode

KNOWN_ERROR_TYPE = "known_error"

NICKNAME_MAX_LENGTH = 5
# Taiwan e-invoice mobile barcode: "/" followed by 7 characters
E_INVOICE_BARCODE_RE = re.compile(r"^/[0-9A-Z.+-]{7}$")
STUDENT_ID_MAX_LENGTH = 30
ELIGIBLE_STUDENTS_MAX_ITEMS = 5000


def known_error(code: KnownErrorCode, message: str) -> PydanticCustomError:
    return PydanticCustomError(KNOWN_ERROR_TYPE, message, {"code": code.value})


# ── Auth ─────────────────────────────────────────────────────────────


class FederatedGrant(BaseModel):
    """Authorization handed over by the frontend after the Google consent screen."""

    flow: GrantFlow
    grant_value: str = Field(..., min_length=1)
    # Required for the authorization_code flow; must match the frontend URL
    redirect_uri: Optional[str] = None


class StaffLoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"


class MessageResponse(BaseModel):
    message: str


# ── Partner schools ──────────────────────────────────────────────────


class SchoolAccountConfigResponse(BaseModel):
    username_format: str
    student_username_format: str
    password_format: str
    domain_name: str

    model_config = ConfigDict(from_attributes=True)


class PartnerSchoolFields(BaseModel):
    short_name: str
    full_name: str
    plan: PartnerPlan


class PartnerSchoolResponse(PartnerSchoolFields):
    id: int
    google_account_config: Optional[SchoolAccountConfigResponse] = None

    model_config = ConfigDict(from_attributes=True)


class EligibleStudentsStatistics(BaseModel):
    enable_eligibility_check: bool
    total_num: int
    activated_num: int


class EligibleStudentAdd(BaseModel):
    item: str = Field(..., min_length=1, max_length=STUDENT_ID_MAX_LENGTH)


class EligibleStudentsReplace(BaseModel):
    items: List[str] = Field(..., max_length=ELIGIBLE_STUDENTS_MAX_ITEMS)

    @field_validator("items")
    @classmethod
    def validate_items(cls, v: List[str]) -> List[str]:
        for item in v:
            if not item or len(item) > STUDENT_ID_MAX_LENGTH:
                raise ValueError(
                    f"Student IDs must be 1-{STUDENT_ID_MAX_LENGTH} characters"
                )
        return v


class EligibilityConfigUpdate(BaseModel):
    enable_eligibility_check: bool


# ── Users & members ──────────────────────────────────────────────────


class UserResponse(BaseModel):
    id: int
    primary_email: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CurrentUserResponse(UserResponse):
    roles: List[UserRole]


class MemberSettingsFields(BaseModel):
    nickname: Optional[str] = None
    e_invoice_barcode: Optional[str] = None


class MemberSettingsUpdate(MemberSettingsFields):
    """
    Partial update: omitted fields are left untouched, explicit ``null``
    clears the stored value.
    """

    @field_validator("nickname")
    @classmethod
    def validate_nickname(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if len(v) > NICKNAME_MAX_LENGTH or " " in v:
            raise known_error(
                KnownErrorCode.INVALID_NICKNAME,
                f"Nickname must be at most {NICKNAME_MAX_LENGTH} characters without spaces",
            )
        return v

    @field_validator("e_invoice_barcode")
    @classmethod
    def validate_barcode(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not E_INVOICE_BARCODE_RE.match(v):
            raise known_error(
                KnownErrorCode.INVALID_INVOICE_BARCODE,
                "Invalid e-invoice mobile barcode",
            )
        return v


class MemberSettingsResponse(MemberSettingsFields):
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StudentMemberCreate(BaseModel):
    school_attended_id: int
    google_workspace: FederatedGrant


class StudentMemberResponse(BaseModel):
    id: str
    school_attended_id: int
    student_id: Optional[str] = None
    purchase_channel: MembershipPurchaseChannel
    created_at: datetime
    activated_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    is_activated: bool = False
    school_attended: Optional[PartnerSchoolResponse] = None
    settings: Optional[MemberSettingsResponse] = None
    user: Optional[UserResponse] = None

    model_config = ConfigDict(from_attributes=True)


# ── Devices ──────────────────────────────────────────────────────────


class DeviceResponse(BaseModel):
    id: int
    name: str
    device_class: DeviceClass
    os_family: OsFamily
    created_at: datetime
    last_active_at: Optional[datetime] = None
    is_current: bool = False


# ── Personal membership orders ───────────────────────────────────────


class PersonalMembershipOrderFields(BaseModel):
    class_name: str = Field(..., alias="class", max_length=50)
    number: str = Field(..., max_length=10)
    real_name: str = Field(..., max_length=100)
    need_sticker: bool

    model_config = ConfigDict(populate_by_name=True)


class PersonalMembershipOrderCreate(PersonalMembershipOrderFields):
    school_id: int

    @field_validator("class_name", "number", "real_name")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field must not be blank")
        return v


class PersonalMembershipOrderUpdate(PersonalMembershipOrderFields):
    @field_validator("class_name", "number", "real_name")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field must not be blank")
        return v


class PersonalMembershipOrderResponse(PersonalMembershipOrderFields):
    id: int
    school_id: int
    member_id: Optional[str] = None
    is_paid: bool
    created_at: datetime
    updated_at: datetime
    school: Optional[PartnerSchoolResponse] = None

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class OrdererTokenResponse(BaseModel):
    token: str
