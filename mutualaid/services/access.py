"""Role based access policy.

Capabilities come from the numbered ``SYSTEM_FUNCTIONS`` catalog. Navigation
visibility and record-level member actions are derived from the same catalog
through ``TAB_RULES`` and ``MEMBER_ACTIONS`` so there is a single place to
answer "may this role do X". Every lookup fails closed.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Union

from ..constants import (
    FN_ADD_FILES,
    FN_ADD_MEMBERS,
    FN_ADD_PAYMENT,
    FN_ASSIGN_STATUS,
    FN_CERTIFICATE,
    FN_DELETE_MEMBERS,
    FN_LIST_MEMBERS,
    FN_MANAGE_PICTURES,
    FN_MILESTONES,
    FN_UPDATE_PAYMENT,
    FN_VIEW_ALL_PAYMENTS,
    SYSTEM_FUNCTIONS,
    SYSTEM_FUNCTIONS_BY_ID,
    Role,
    SystemFunction,
)

RoleLike = Union[Role, str, None]


@dataclass(frozen=True)
class TabRule:
    """Visibility rule for a navigation section.

    Exactly one of ``always``, ``function_id`` or ``roles`` decides access.
    """

    always: bool = False
    function_id: Optional[int] = None
    roles: FrozenSet[Role] = frozenset()


# Ordered as shown in the navigation bar. The officers roster follows the
# officers picture-management capability, which lists the same four roles.
TAB_RULES: Dict[str, TabRule] = {
    "dashboard": TabRule(always=True),
    "registration": TabRule(function_id=FN_ADD_MEMBERS),
    "officers": TabRule(function_id=FN_MANAGE_PICTURES),
    "reports": TabRule(function_id=FN_LIST_MEMBERS),
    "profile": TabRule(always=True),
    "milestones": TabRule(function_id=FN_MILESTONES),
    "user-management": TabRule(roles=frozenset({Role.ADMIN})),
}

MEMBER_ACTIONS: Dict[str, int] = {
    "certificate": FN_CERTIFICATE,
    "add_files": FN_ADD_FILES,
    "delete": FN_DELETE_MEMBERS,
    "assign_status": FN_ASSIGN_STATUS,
    "upload_picture": FN_MANAGE_PICTURES,
    "add_payment": FN_ADD_PAYMENT,
    "update_payment": FN_UPDATE_PAYMENT,
    "view_payment_history": FN_VIEW_ALL_PAYMENTS,
}


def has_access(role: RoleLike, function_id: int) -> bool:
    resolved = Role.parse(role)
    if resolved is None:
        return False
    system_function = SYSTEM_FUNCTIONS_BY_ID.get(function_id)
    if system_function is None:
        return False
    return resolved in system_function.allowed_roles


def get_accessible_functions(role: RoleLike) -> List[SystemFunction]:
    resolved = Role.parse(role)
    if resolved is None:
        return []
    return [function for function in SYSTEM_FUNCTIONS if resolved in function.allowed_roles]


def can_view_tab(role: RoleLike, tab_id: str) -> bool:
    resolved = Role.parse(role)
    rule = TAB_RULES.get(tab_id)
    if resolved is None or rule is None:
        return False
    if rule.always:
        return True
    if rule.function_id is not None:
        return has_access(resolved, rule.function_id)
    return resolved in rule.roles


def visible_tabs(role: RoleLike) -> List[str]:
    return [tab_id for tab_id in TAB_RULES if can_view_tab(role, tab_id)]


def member_actions(role: RoleLike) -> List[str]:
    return [action for action, function_id in MEMBER_ACTIONS.items() if has_access(role, function_id)]
