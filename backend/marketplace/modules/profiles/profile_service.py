from __future__ import annotations

from typing import Any

from ...db.errors import StoreConflict
from ...domain.enums import ReviewStatus
from ...errors import DuplicateEntity, Forbidden, NotFound, ValidationFailed
from ...observability.logging import get_logger
from ...repositories import charities_repo, users_repo, volunteers_repo
from ..identity.roles import ROLE_CHARITY, ROLE_VOLUNTEER, require_role
from ..matching.match_scorer import normalize_terms

log = get_logger("profiles")

VOLUNTEER_FIELDS = (
    "firstName",
    "lastName",
    "bio",
    "skills",
    "interests",
    "experience",
    "dateOfBirth",
    "availability",
    "city",
    "state",
    "country",
)
CHARITY_FIELDS = (
    "organizationName",
    "registrationNumber",
    "description",
    "areasOfFocus",
    "website",
    "city",
    "state",
    "country",
)


def current_user(actor: Any) -> dict[str, Any]:
    """Resolve the authenticated actor to an active User record."""
    user = users_repo.ensure_user(
        user_id=str(getattr(actor, "sub", "") or ""),
        email=getattr(actor, "email", None),
        role=str(getattr(actor, "role", "") or ""),
    )
    if not user.get("isActive", True):
        raise Forbidden(message="Your account has been deactivated", code="account_deactivated")
    return user


def _require_usable(profile: dict[str, Any], *, kind: str, status_field: str, approved: bool) -> dict[str, Any]:
    if not profile.get("isActive", True):
        raise Forbidden(message=f"{kind} account is deactivated", code="account_deactivated")
    if approved and profile.get(status_field) != ReviewStatus.APPROVED.value:
        raise Forbidden(
            message=f"{kind} account must be approved to perform this action",
            code="not_approved",
            extensions={status_field: profile.get(status_field)},
        )
    return profile


def require_volunteer(actor: Any, *, approved: bool = True) -> dict[str, Any]:
    require_role(actor, ROLE_VOLUNTEER)
    user = current_user(actor)
    vol = volunteers_repo.get_volunteer_by_user(str(user["id"]))
    if not vol:
        raise NotFound(message="Volunteer profile not found")
    return _require_usable(vol, kind="Volunteer", status_field="approvalStatus", approved=approved)


def require_charity(actor: Any, *, approved: bool = True) -> dict[str, Any]:
    require_role(actor, ROLE_CHARITY)
    user = current_user(actor)
    ch = charities_repo.get_charity_by_user(str(user["id"]))
    if not ch:
        raise NotFound(message="Charity profile not found")
    return _require_usable(ch, kind="Charity", status_field="verificationStatus", approved=approved)


def _clean_volunteer_fields(fields: dict[str, Any]) -> dict[str, Any]:
    out = {k: v for k, v in fields.items() if k in VOLUNTEER_FIELDS}
    for k in ("skills", "interests"):
        if k in out:
            # Keep the caller's casing for display; dedupe case-insensitively.
            seen = set()
            kept: list[str] = []
            for s in out[k] or []:
                norm = normalize_terms([s])
                if norm and norm[0] not in seen:
                    seen.add(norm[0])
                    kept.append(str(s).strip())
            out[k] = kept
    if "availability" in out and out["availability"] is not None:
        av = out["availability"]
        if not isinstance(av, dict):
            raise ValidationFailed(message="availability must be an object")
        out["availability"] = {**av, "days": normalize_terms(av.get("days"))}
    return out


def upsert_volunteer_profile(*, actor: Any, fields: dict[str, Any]) -> dict[str, Any]:
    require_role(actor, ROLE_VOLUNTEER)
    user = current_user(actor)
    clean = _clean_volunteer_fields(fields)

    existing = volunteers_repo.get_volunteer_by_user(str(user["id"]))
    if existing:
        return volunteers_repo.update_volunteer(str(existing["id"]), clean)
    try:
        vol = volunteers_repo.create_volunteer(user_id=str(user["id"]), profile=clean)
    except StoreConflict as e:
        raise DuplicateEntity(message="Volunteer profile already exists", code="duplicate_profile") from e
    log.info("volunteer_profile_created", volunteer_id=vol.get("id"), user_id=user["id"])
    return vol


def upsert_charity_profile(*, actor: Any, fields: dict[str, Any]) -> dict[str, Any]:
    require_role(actor, ROLE_CHARITY)
    user = current_user(actor)
    clean = {k: v for k, v in fields.items() if k in CHARITY_FIELDS}

    existing = charities_repo.get_charity_by_user(str(user["id"]))
    if existing:
        return charities_repo.update_charity(str(existing["id"]), clean)
    if not str(clean.get("organizationName") or "").strip():
        raise ValidationFailed(message="organizationName is required")
    try:
        ch = charities_repo.create_charity(user_id=str(user["id"]), profile=clean)
    except StoreConflict as e:
        raise DuplicateEntity(message="Charity profile already exists", code="duplicate_profile") from e
    log.info("charity_profile_created", charity_id=ch.get("id"), user_id=user["id"])
    return ch


def get_my_profile(*, actor: Any) -> dict[str, Any]:
    user = current_user(actor)
    out: dict[str, Any] = {"user": user, "volunteer": None, "charity": None}
    if user.get("role") == ROLE_VOLUNTEER:
        out["volunteer"] = volunteers_repo.get_volunteer_by_user(str(user["id"]))
    elif user.get("role") == ROLE_CHARITY:
        out["charity"] = charities_repo.get_charity_by_user(str(user["id"]))
    return out
