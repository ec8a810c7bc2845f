from __future__ import annotations

from typing import Any

from ...domain.enums import Role
from ...errors import Forbidden


ROLE_VOLUNTEER = Role.VOLUNTEER.value
ROLE_CHARITY = Role.CHARITY.value
ROLE_MODERATOR = Role.MODERATOR.value


def normalize_role(value: Any) -> str | None:
    """
    Normalize a role claim to one of volunteer/charity/moderator.
    Accepts common variants ("Volunteers", "admin", ...); unknown values map to None.
    """
    if isinstance(value, (list, tuple)):
        for v in value:
            r = normalize_role(v)
            if r:
                return r
        return None

    low = str(value or "").strip().lower().replace("_", "").replace("-", "")
    if low in ("volunteer", "volunteers"):
        return ROLE_VOLUNTEER
    if low in ("charity", "charities", "organization", "organisation"):
        return ROLE_CHARITY
    if low in ("moderator", "moderators", "admin"):
        return ROLE_MODERATOR
    return None


def has_role(actor: Any, *want: str) -> bool:
    role = normalize_role(getattr(actor, "role", None))
    return bool(role) and role in want


def require_role(actor: Any, *want: str) -> None:
    if not has_role(actor, *want):
        raise Forbidden(
            message=f"This action requires role: {' or '.join(want)}",
            extensions={"requiredRoles": list(want)},
        )
