from __future__ import annotations

from typing import Any

from ...errors import NotFound
from ...repositories import attendance_repo, charities_repo, opportunities_repo, volunteers_repo

MIN_RATING = 1
MAX_RATING = 5


def _average(values: list[float]) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def volunteer_rating_stats(volunteer_id: str) -> dict[str, Any]:
    """Charity ratings a volunteer received across their attendance records."""
    if not volunteers_repo.get_volunteer(volunteer_id):
        raise NotFound(message="Volunteer not found", extensions={"volunteerId": volunteer_id})
    rated = [
        r for r in attendance_repo.list_attendance({"volunteerId": volunteer_id}) if r.get("charityRating") is not None
    ]
    return {
        "volunteerId": volunteer_id,
        "averageRating": _average([float(r["charityRating"]) for r in rated]),
        "totalRatings": len(rated),
        "ratings": [
            {
                "opportunityId": r.get("opportunityId"),
                "rating": r.get("charityRating"),
                "feedback": r.get("charityFeedback"),
                "createdAt": r.get("createdAt"),
            }
            for r in rated
        ],
    }


def charity_rating_stats(charity_id: str) -> dict[str, Any]:
    """Volunteer ratings left on attendance for any of the charity's opportunities."""
    if not charities_repo.get_charity(charity_id):
        raise NotFound(message="Charity not found", extensions={"charityId": charity_id})
    opp_ids = [str(o.get("id")) for o in opportunities_repo.list_opportunities({"charityId": charity_id})]
    rated = []
    if opp_ids:
        rated = [
            r
            for r in attendance_repo.list_attendance({"opportunityId": opp_ids})
            if r.get("volunteerRating") is not None
        ]
    return {
        "charityId": charity_id,
        "averageRating": _average([float(r["volunteerRating"]) for r in rated]),
        "totalRatings": len(rated),
        "ratings": [
            {
                "opportunityId": r.get("opportunityId"),
                "rating": r.get("volunteerRating"),
                "feedback": r.get("volunteerFeedback"),
                "createdAt": r.get("createdAt"),
            }
            for r in rated
        ],
    }


def recompute_volunteer_rating(volunteer_id: str) -> float | None:
    """Refresh the cached `rating` on the volunteer from their attendance records."""
    stats = volunteer_rating_stats(volunteer_id)
    volunteers_repo.update_volunteer(volunteer_id, {"rating": stats["averageRating"]})
    return stats["averageRating"]
