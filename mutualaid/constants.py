from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Optional, Tuple


class MemberStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    DECEASED = "Deceased"
    DROPPED = "Dropped"
    SERVED = "Served"


TERMINAL_STATUSES = frozenset({MemberStatus.DECEASED, MemberStatus.SERVED})


class Role(str, Enum):
    ADMIN = "Admin"
    PRESIDENT = "President"
    SECRETARY = "Secretary"
    TREASURER = "Treasurer"
    AUDITOR = "Auditor"
    PUBLIC_INFORMATION_OFFICER = "PublicInformationOfficer"
    BOARD_OF_DIRECTORS = "BoardOfDirectors"
    MEMBER = "Member"

    @property
    def label(self) -> str:
        return ROLE_LABELS[self]

    @classmethod
    def parse(cls, value) -> Optional["Role"]:
        """Resolve a role from its value or display label; None when unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip()
        for role in cls:
            if normalized in (role.value, ROLE_LABELS[role]):
                return role
        return None


ROLE_LABELS = {
    Role.ADMIN: "Admin",
    Role.PRESIDENT: "President",
    Role.SECRETARY: "Secretary",
    Role.TREASURER: "Treasurer",
    Role.AUDITOR: "Auditor",
    Role.PUBLIC_INFORMATION_OFFICER: "Public Information Officer",
    Role.BOARD_OF_DIRECTORS: "Board of Directors",
    Role.MEMBER: "Member",
}


@dataclass(frozen=True)
class SystemFunction:
    id: int
    name: str
    description: str
    allowed_roles: FrozenSet[Role]


def _roles(*roles: Role) -> FrozenSet[Role]:
    return frozenset(roles)


_OFFICERS = (Role.ADMIN, Role.PRESIDENT, Role.SECRETARY, Role.TREASURER)
_FINANCE = (Role.ADMIN, Role.PRESIDENT, Role.TREASURER)
_ALL_OFFICIALS = (
    Role.ADMIN,
    Role.PRESIDENT,
    Role.SECRETARY,
    Role.TREASURER,
    Role.AUDITOR,
    Role.PUBLIC_INFORMATION_OFFICER,
    Role.BOARD_OF_DIRECTORS,
)

SYSTEM_FUNCTIONS: Tuple[SystemFunction, ...] = (
    SystemFunction(1, "Generate and Print Certificate of Membership", "Create membership certificates", _roles(*_OFFICERS)),
    SystemFunction(2, "Generate and Print List of Members", "Export member lists", _roles(*_ALL_OFFICIALS)),
    SystemFunction(3, "Add Members", "Register new members", _roles(*_FINANCE)),
    SystemFunction(4, "Add Files", "Upload member documents", _roles(*_FINANCE)),
    SystemFunction(5, "Delete Members", "Remove members from system", _roles(*_FINANCE)),
    SystemFunction(6, "Assign Status", "Update member status", _roles(*_FINANCE)),
    SystemFunction(7, "Upload Own Profile Picture", "Update personal profile", _roles(*_ALL_OFFICIALS)),
    SystemFunction(8, "Upload Profile Pictures to Members and Officers", "Manage member photos", _roles(*_OFFICERS)),
    SystemFunction(9, "Add Payment", "Record member payments", _roles(*_FINANCE)),
    SystemFunction(10, "Update Payment", "Modify payment records", _roles(*_FINANCE)),
    SystemFunction(
        11,
        "Export Data to Excel",
        "Generate Excel reports",
        _roles(Role.ADMIN, Role.PRESIDENT, Role.TREASURER, Role.AUDITOR),
    ),
    SystemFunction(12, "Create and Manage Milestones", "Set milestone benefits", _roles(*_FINANCE)),
    SystemFunction(13, "Approve/Disapprove Member Email Accounts", "Manage email access", _roles(Role.ADMIN, Role.PRESIDENT)),
    SystemFunction(14, "Link Email Address to Member ID", "Connect emails to members", _roles(Role.ADMIN, Role.PRESIDENT)),
    SystemFunction(15, "Post Bulletin Updates", "Manage announcements", _roles(*_ALL_OFFICIALS)),
    SystemFunction(16, "View All Members and Latest Payments", "Access member overview", _roles(*_ALL_OFFICIALS, Role.MEMBER)),
    SystemFunction(
        17,
        "View All Members and All Payment Records",
        "Full payment history access",
        _roles(
            Role.ADMIN,
            Role.PRESIDENT,
            Role.TREASURER,
            Role.AUDITOR,
            Role.PUBLIC_INFORMATION_OFFICER,
            Role.BOARD_OF_DIRECTORS,
        ),
    ),
)

SYSTEM_FUNCTIONS_BY_ID = {function.id: function for function in SYSTEM_FUNCTIONS}

# Function ids referenced by routers and navigation rules.
FN_CERTIFICATE = 1
FN_LIST_MEMBERS = 2
FN_ADD_MEMBERS = 3
FN_ADD_FILES = 4
FN_DELETE_MEMBERS = 5
FN_ASSIGN_STATUS = 6
FN_OWN_PROFILE_PICTURE = 7
FN_MANAGE_PICTURES = 8
FN_ADD_PAYMENT = 9
FN_UPDATE_PAYMENT = 10
FN_EXPORT = 11
FN_MILESTONES = 12
FN_APPROVE_ACCOUNTS = 13
FN_LINK_MEMBER = 14
FN_BULLETIN = 15
FN_VIEW_LATEST_PAYMENTS = 16
FN_VIEW_ALL_PAYMENTS = 17

ANNUAL_FEE = Decimal("780")
MORTUARY_FEE = Decimal("680")
OPERATIONAL_FEE = Decimal("100")

MEMBER_NUMBER_PREFIX = "GM"
EXPORT_START_YEAR = 2016
RECENT_ACTIVITY_LIMIT = 10

ACTIVITY_TYPES = (
    "member_added",
    "member_updated",
    "member_deleted",
    "payment_added",
    "payment_updated",
    "status_changed",
    "profile_updated",
    "bulletin_posted",
    "bulletin_deleted",
    "officer_added",
    "officer_updated",
    "officer_deleted",
    "milestone_saved",
    "milestone_deleted",
    "user_updated",
)
