from .user import User, UserRole
from .staff import UnionStaff, StaffPermission
from .federated_account import FederatedAccount, FederatedProvider
from .partner_school import PartnerSchool, PartnerPlan, SchoolAccountConfig
from .student_member import StudentMember, MemberSettings, MembershipPurchaseChannel
from .order import PersonalMembershipOrder
from .device import UserDevice, LoginActivity, DeviceClass, OsFamily
from .system_config import SystemConfiguration

__all__ = [
    "User",
    "UserRole",
    "UnionStaff",
    "StaffPermission",
    "FederatedAccount",
    "FederatedProvider",
    "PartnerSchool",
    "PartnerPlan",
    "SchoolAccountConfig",
    "StudentMember",
    "MemberSettings",
    "MembershipPurchaseChannel",
    "PersonalMembershipOrder",
    "UserDevice",
    "LoginActivity",
    "DeviceClass",
    "OsFamily",
    "SystemConfiguration",
]
