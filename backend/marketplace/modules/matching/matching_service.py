from __future__ import annotations

from typing import Any

from ...db.errors import StoreConflict
from ...domain.enums import ApplicationStatus, NotificationType, OpportunityStatus
from ...errors import Forbidden, ValidationFailed
from ...observability.logging import get_logger
from ...repositories import applications_repo, opportunities_repo, volunteers_repo
from ...settings import settings
from ..applications.application_service import charity_user_id, load_opportunity
from ..identity.roles import ROLE_MODERATOR
from ..notifications.notifier import notify
from ..opportunities import lifecycle
from ..profiles.profile_service import require_charity, require_volunteer
from .match_scorer import rank_candidates, score_match

log = get_logger("matching")

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
RECOMMENDATION_MIN_SCORE = 40
SUGGESTION_MIN_SCORE = 50
DEFAULT_MAX_SUGGESTIONS = 10

# An application in one of these statuses no longer blocks a volunteer from the pool.
_RELEASED_STATUSES = (ApplicationStatus.WITHDRAWN.value, ApplicationStatus.REJECTED.value)

_VOLUNTEER_PUBLIC_FIELDS = (
    "id",
    "firstName",
    "lastName",
    "bio",
    "skills",
    "interests",
    "city",
    "state",
    "country",
    "availability",
    "totalHoursVolunteered",
    "totalOpportunitiesCompleted",
    "rating",
)


def _check_limits(*, min_score: float, limit: int) -> None:
    if not 1 <= int(limit) <= MAX_LIMIT:
        raise ValidationFailed(message=f"limit must be between 1 and {MAX_LIMIT}", extensions={"limit": limit})
    if not 0 <= float(min_score) <= 100:
        raise ValidationFailed(message="minScore must be between 0 and 100", extensions={"minScore": min_score})


def candidate_pool(opportunity: dict[str, Any]) -> list[dict[str, Any]]:
    """Active, approved volunteers without a live application for this opportunity."""
    volunteers = volunteers_repo.list_volunteers({"isActive": True, "approvalStatus": "approved"})
    holding = {
        str(a.get("volunteerId"))
        for a in applications_repo.list_applications({"opportunityId": opportunity["id"]})
        if str(a.get("status") or "") not in _RELEASED_STATUSES
    }
    pool = [v for v in volunteers if str(v.get("id")) not in holding]
    return pool[: max(1, int(settings.match_candidate_pool_limit))]


def _public_volunteer(v: dict[str, Any]) -> dict[str, Any]:
    return {k: v.get(k) for k in _VOLUNTEER_PUBLIC_FIELDS}


def find_matches(*, opportunity_id: str, min_score: float = 0, limit: int = DEFAULT_LIMIT) -> dict[str, Any]:
    """Rank candidate volunteers for an opportunity. Read-only."""
    _check_limits(min_score=min_score, limit=limit)
    opp = load_opportunity(opportunity_id)

    pool = candidate_pool(opp)
    matches = rank_candidates(pool, opp, min_score=min_score, limit=limit)
    for m in matches:
        m["volunteer"] = _public_volunteer(m["volunteer"])

    log.info(
        "matches_computed",
        opportunity_id=opp.get("id"),
        total_evaluated=len(pool),
        total_found=len(matches),
        min_score=min_score,
        limit=limit,
    )
    return {
        "totalFound": len(matches),
        "totalEvaluated": len(pool),
        "matches": matches,
        "opportunity": {
            k: opp.get(k)
            for k in ("id", "title", "category", "requiredSkills", "locationType", "city", "state", "numberOfVolunteers")
        },
        "searchCriteria": {"minScore": min_score, "limit": limit},
    }


def find_matches_for_charity(
    *,
    actor: Any,
    opportunity_id: str,
    min_score: float = 0,
    limit: int = DEFAULT_LIMIT,
) -> dict[str, Any]:
    opp = load_opportunity(opportunity_id)
    if getattr(actor, "role", None) != ROLE_MODERATOR:
        ch = require_charity(actor, approved=False)
        if opp.get("charityId") != ch.get("id"):
            raise Forbidden(message="You can only view matches for your own opportunities")
    return find_matches(opportunity_id=opportunity_id, min_score=min_score, limit=limit)


def recommend_opportunities(*, actor: Any, limit: int = 10) -> list[dict[str, Any]]:
    """Published, non-full opportunities that score at least 40 for the calling volunteer."""
    if not 1 <= int(limit) <= MAX_LIMIT:
        raise ValidationFailed(message=f"limit must be between 1 and {MAX_LIMIT}")
    vol = require_volunteer(actor, approved=False)

    applied = {
        str(a.get("opportunityId"))
        for a in applications_repo.list_applications({"volunteerId": vol["id"]})
    }
    out: list[dict[str, Any]] = []
    for opp in opportunities_repo.list_opportunities({"status": OpportunityStatus.PUBLISHED.value}):
        if str(opp.get("id")) in applied or lifecycle.is_full(opp):
            continue
        result = score_match(vol, opp)
        if result.score < RECOMMENDATION_MIN_SCORE:
            continue
        out.append(
            {
                "opportunity": opp,
                "matchScore": result.score,
                "matchFactors": [f.to_dict() for f in result.factors],
                "recommendation": result.recommendation,
            }
        )
    out.sort(key=lambda r: (-r["matchScore"], str(r["opportunity"].get("id") or "")))
    return out[:limit]


def create_suggested_matches(
    *,
    actor: Any,
    opportunity_id: str,
    max_matches: int = DEFAULT_MAX_SUGGESTIONS,
) -> list[dict[str, Any]]:
    """
    Turn the top candidates (score >= 50) into pending, system-matched
    applications for the charity to accept or decline.
    """
    ch = require_charity(actor)
    opp = load_opportunity(opportunity_id)
    if opp.get("charityId") != ch.get("id"):
        raise Forbidden(message="You can only request suggestions for your own opportunities")
    if not lifecycle.accepts_applications(opp):
        raise ValidationFailed(message="Suggestions are only available for published opportunities")
    if not 1 <= int(max_matches) <= MAX_LIMIT:
        raise ValidationFailed(message=f"maxMatches must be between 1 and {MAX_LIMIT}")

    result = find_matches(opportunity_id=opportunity_id, min_score=SUGGESTION_MIN_SCORE, limit=max_matches)
    created: list[dict[str, Any]] = []
    for m in result["matches"]:
        vid = str(m["volunteer"]["id"])
        label = str(m.get("recommendation") or "fair match").lower()
        try:
            app = applications_repo.create_application(
                opportunity_id=str(opp["id"]),
                volunteer_id=vid,
                fields={
                    "status": ApplicationStatus.PENDING.value,
                    "isSystemMatched": True,
                    "matchScore": m["matchScore"],
                    "applicationMessage": (
                        f"System-suggested match based on {label} compatibility ({m['matchPercentage']}% match)."
                    ),
                },
            )
        except StoreConflict:
            # The volunteer applied between ranking and insert.
            continue
        created.append({"application": app, **m})
        vol = volunteers_repo.get_volunteer(vid) or {}
        notify(
            user_id=vol.get("userId"),
            type=NotificationType.NEW_OPPORTUNITY_MATCH,
            title="You were matched to an opportunity",
            message=f"You look like a great fit for \"{opp.get('title') or 'an opportunity'}\"",
            data={"applicationId": app.get("id"), "opportunityId": opp.get("id"), "matchScore": m["matchScore"]},
            action_url=f"/opportunities/{opp.get('id')}",
        )

    if created:
        notify(
            user_id=charity_user_id(opp),
            type=NotificationType.VOLUNTEER_MATCH_SUGGESTION,
            title="Suggested volunteers ready for review",
            message=f"{len(created)} volunteer(s) were suggested for \"{opp.get('title') or 'your opportunity'}\"",
            data={"opportunityId": opp.get("id"), "applicationIds": [c["application"].get("id") for c in created]},
            action_url=f"/opportunities/{opp.get('id')}/applications",
        )
    log.info("suggested_matches_created", opportunity_id=opp.get("id"), created=len(created))
    return created


def list_suggested_matches(*, actor: Any, opportunity_id: str | None = None) -> list[dict[str, Any]]:
    """Pending system-suggested applications across the charity's opportunities."""
    ch = require_charity(actor, approved=False)
    opp_ids = [str(o.get("id")) for o in opportunities_repo.list_opportunities({"charityId": ch["id"]})]
    if opportunity_id:
        opp_ids = [o for o in opp_ids if o == opportunity_id]
    if not opp_ids:
        return []
    rows = applications_repo.list_applications(
        {"isSystemMatched": True, "status": ApplicationStatus.PENDING.value, "opportunityId": opp_ids}
    )
    return sorted(rows, key=lambda a: (-(a.get("matchScore") or 0), str(a.get("createdAt") or "")))
