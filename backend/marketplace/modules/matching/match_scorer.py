"""
Volunteer-to-opportunity match scoring.

Pure functions over plain entity dicts; nothing here reads or writes the
store. Each factor is scored on a 0-10 scale, combined as a weighted average
and rescaled to 0-100:

    skills        0.4
    interest      0.3
    location      0.2
    availability  0.1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable

WEIGHTS: dict[str, float] = {
    "Skills": 0.4,
    "Interest": 0.3,
    "Location": 0.2,
    "Availability": 0.1,
}

MAX_FACTOR_SCORE = 10.0

RECOMMENDATION_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (70.0, "Excellent Match"),
    (50.0, "Good Match"),
    (30.0, "Fair Match"),
)

_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(slots=True)
class MatchFactor:
    factor: str
    score: float
    details: str

    def to_dict(self) -> dict[str, Any]:
        return {"factor": self.factor, "score": round(self.score, 2), "details": self.details}


@dataclass(slots=True)
class MatchResult:
    score: float
    factors: list[MatchFactor] = field(default_factory=list)

    @property
    def recommendation(self) -> str | None:
        return recommendation_for(self.score)


def recommendation_for(score: float) -> str | None:
    for threshold, label in RECOMMENDATION_THRESHOLDS:
        if score >= threshold:
            return label
    return None


def normalize_terms(value: Any) -> list[str]:
    """Lower-cased, de-duplicated, non-empty strings. Anything malformed is an empty set."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        return []
    out: list[str] = []
    for v in value:
        if not isinstance(v, str):
            continue
        s = v.strip().lower()
        if s and s not in out:
            out.append(s)
    return out


def _related(a: str, b: str) -> bool:
    return a == b or a in b or b in a


def _text(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def _parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip().replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(raw).date()
    except ValueError:
        try:
            return date.fromisoformat(raw[:10])
        except ValueError:
            return None


def score_skills(volunteer: dict[str, Any], opportunity: dict[str, Any]) -> MatchFactor:
    required = normalize_terms(opportunity.get("requiredSkills"))
    if not required:
        return MatchFactor("Skills", MAX_FACTOR_SCORE, "No specific skills required")

    have = normalize_terms(volunteer.get("skills"))
    covered = [r for r in required if any(_related(r, s) for s in have)]
    score = MAX_FACTOR_SCORE * len(covered) / len(required)
    return MatchFactor("Skills", score, f"Matched {len(covered)}/{len(required)} required skills")


def score_interest(volunteer: dict[str, Any], opportunity: dict[str, Any]) -> MatchFactor:
    category = _text(opportunity.get("category"))
    interests = normalize_terms(volunteer.get("interests"))
    if not category or not interests:
        return MatchFactor("Interest", 5.0, "Category/interest matching not available")
    if any(_related(i, category) for i in interests):
        return MatchFactor(
            "Interest",
            MAX_FACTOR_SCORE,
            f"Interest matches opportunity category: {opportunity.get('category')}",
        )
    return MatchFactor("Interest", MAX_FACTOR_SCORE / 3, "No interest matches the opportunity category")


def score_location(volunteer: dict[str, Any], opportunity: dict[str, Any]) -> MatchFactor:
    location_type = _text(opportunity.get("locationType"))
    if location_type == "virtual":
        return MatchFactor("Location", MAX_FACTOR_SCORE, "Virtual opportunity - location not required")
    if location_type == "hybrid":
        return MatchFactor("Location", 9.0, "Hybrid opportunity - flexible location")

    v_city, o_city = _text(volunteer.get("city")), _text(opportunity.get("city"))
    if not v_city or not o_city:
        return MatchFactor("Location", 5.0, "Location data incomplete")

    v_state, o_state = _text(volunteer.get("state")), _text(opportunity.get("state"))
    same_state = bool(v_state and o_state and v_state == o_state)
    # A city name shared across two different states is not the same place.
    if v_city == o_city and (same_state or not (v_state and o_state)):
        return MatchFactor("Location", MAX_FACTOR_SCORE, "Same city")
    if same_state:
        return MatchFactor("Location", 7.5, "Same state/region")

    v_country, o_country = _text(volunteer.get("country")), _text(opportunity.get("country"))
    if v_country and o_country and v_country == o_country:
        return MatchFactor("Location", 5.0, "Same country")
    return MatchFactor("Location", 2.5, "Different locations")


def _spanned_weekdays(start: date, end: date | None) -> list[str]:
    last = end if end and end >= start else start
    days: list[str] = []
    cur = start
    while cur <= last and len(days) < 7:
        days.append(_WEEKDAYS[cur.weekday()])
        cur += timedelta(days=1)
    return days


def score_availability(volunteer: dict[str, Any], opportunity: dict[str, Any]) -> MatchFactor:
    start = _parse_date(opportunity.get("startDate"))
    if start is None:
        return MatchFactor("Availability", 5.0, "Opportunity dates not specified")

    availability = volunteer.get("availability")
    declared = normalize_terms(availability.get("days")) if isinstance(availability, dict) else []
    if not declared:
        return MatchFactor("Availability", 8.0, "Availability preferences not specified")

    spanned = _spanned_weekdays(start, _parse_date(opportunity.get("endDate")))
    if spanned[0] in declared:
        return MatchFactor("Availability", MAX_FACTOR_SCORE, f"Available on {spanned[0]}")
    overlap = [d for d in spanned[1:] if d in declared]
    if overlap:
        return MatchFactor("Availability", 7.5, f"Available on {overlap[0]} during the opportunity")
    return MatchFactor("Availability", 5.0, "Limited availability match")


def score_match(volunteer: dict[str, Any], opportunity: dict[str, Any]) -> MatchResult:
    factors = [
        score_skills(volunteer, opportunity),
        score_interest(volunteer, opportunity),
        score_location(volunteer, opportunity),
        score_availability(volunteer, opportunity),
    ]
    weighted = sum(WEIGHTS[f.factor] * f.score for f in factors)
    # Weighted 0-10 average rescaled to a percentage.
    total = round(min(100.0, max(0.0, weighted * 10.0)), 2)
    return MatchResult(score=total, factors=factors)


def rank_candidates(
    volunteers: Iterable[dict[str, Any]],
    opportunity: dict[str, Any],
    *,
    min_score: float = 0,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """
    Score every candidate, drop those under `min_score` and order by score,
    then totalHoursVolunteered (desc), then volunteer id.
    """
    scored: list[tuple[dict[str, Any], MatchResult]] = []
    for v in volunteers:
        result = score_match(v, opportunity)
        if result.score >= min_score:
            scored.append((v, result))

    def _hours(v: dict[str, Any]) -> float:
        try:
            return float(v.get("totalHoursVolunteered") or 0)
        except (TypeError, ValueError):
            return 0.0

    scored.sort(key=lambda pair: (-pair[1].score, -_hours(pair[0]), str(pair[0].get("id") or "")))
    if limit is not None:
        scored = scored[: max(0, int(limit))]

    return [
        {
            "volunteer": v,
            "matchScore": result.score,
            "matchPercentage": round(result.score),
            "matchFactors": [f.to_dict() for f in result.factors],
            "rank": i + 1,
            "recommendation": result.recommendation,
        }
        for i, (v, result) in enumerate(scored)
    ]
