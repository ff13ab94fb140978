import json
from dataclasses import dataclass, field
from typing import Iterable

from recyclehub.models.user import User

ROLE_DEFINITIONS = [
    {"code": "vendor", "label": "Vendor (requests pickups)"},
    {"code": "manager", "label": "Manager (prices and pickup orders)"},
    {"code": "admin", "label": "Administrator"},
]
ALLOWED_ROLES = {item["code"] for item in ROLE_DEFINITIONS}
STAFF_ROLES = {"admin", "manager"}

ORDER_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"assigned", "cancelled"},
    "assigned": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}
ORDER_STATUS_VALUES = set(ORDER_TRANSITIONS)
TERMINAL_STATUSES = {status for status, targets in ORDER_TRANSITIONS.items() if not targets}


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as handed over by the auth layer."""

    user_id: int
    roles: frozenset = field(default_factory=frozenset)

    @property
    def is_staff(self) -> bool:
        return is_staff(self.roles)


def parse_roles(raw_roles: object) -> list[str]:
    if raw_roles is None:
        return []

    if isinstance(raw_roles, (list, tuple, set, frozenset)):
        source = list(raw_roles)
    elif isinstance(raw_roles, str):
        text = raw_roles.strip()
        if not text:
            return []
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            # Single role stored as plain text by older clients.
            decoded = [text]
        if not isinstance(decoded, list):
            return []
        source = decoded
    else:
        return []

    result: list[str] = []
    seen: set[str] = set()
    for item in source:
        role = str(item or "").strip().lower()
        if not role or role not in ALLOWED_ROLES or role in seen:
            continue
        seen.add(role)
        result.append(role)
    return sorted(result)


def serialize_roles(roles: Iterable[str] | None) -> str:
    return json.dumps(parse_roles(list(roles or [])), ensure_ascii=False)


def roles_for_user(user: User | None) -> list[str]:
    if not user:
        return []
    return parse_roles(getattr(user, "roles", "[]"))


def is_staff(roles: Iterable[str] | None) -> bool:
    return bool(STAFF_ROLES.intersection(roles or []))


def actor_for_user(user: User) -> Actor:
    return Actor(user_id=user.id, roles=frozenset(roles_for_user(user)))


def is_valid_transition(from_status: str, to_status: str) -> bool:
    return to_status in ORDER_TRANSITIONS.get(from_status, set())


def can_transition(actor_roles: Iterable[str] | None, from_status: str, to_status: str) -> bool:
    """Single policy consulted by every status-changing entry point.

    Only staff move orders along the state machine; vendors never change status.
    """
    if not is_valid_transition(from_status, to_status):
        return False
    return is_staff(actor_roles)
