from __future__ import annotations

from marketplace.modules.matching.match_scorer import (
    rank_candidates,
    recommendation_for,
    score_availability,
    score_location,
    score_match,
    score_skills,
)


def _opp(**kw):
    base = {
        "id": "opp_1",
        "requiredSkills": ["First Aid", "Teaching"],
        "category": "Education",
        "locationType": "in-person",
        "city": "Austin",
        "state": "TX",
        "country": "USA",
        "startDate": "2030-06-01",  # a Saturday
    }
    base.update(kw)
    return base


def _vol(vid: str, **kw):
    base = {
        "id": vid,
        "skills": [],
        "interests": ["education"],
        "city": "Austin",
        "state": "TX",
        "country": "USA",
        "availability": {"days": ["saturday"]},
        "totalHoursVolunteered": 0,
    }
    base.update(kw)
    return base


def test_more_skill_overlap_ranks_higher():
    a = _vol("vol_a", skills=["Teaching"])
    b = _vol("vol_b", skills=["First Aid", "Teaching"])

    ranked = rank_candidates([a, b], _opp())
    assert [r["volunteer"]["id"] for r in ranked] == ["vol_b", "vol_a"]
    assert ranked[0]["matchScore"] > ranked[1]["matchScore"]
    assert ranked[0]["rank"] == 1


def test_skill_overlap_is_monotonic():
    opp = _opp(requiredSkills=["First Aid", "Teaching", "Cooking"])
    skill_sets = [[], ["cooking"], ["cooking", "teaching"], ["Cooking", "Teaching", "First Aid"]]
    scores = [score_match(_vol("v", skills=s), opp).score for s in skill_sets]
    assert scores == sorted(scores)
    assert scores[-1] == 100.0


def test_scoring_is_deterministic():
    pool = [_vol(f"vol_{i}", skills=["Teaching"] if i % 2 else ["First Aid"], totalHoursVolunteered=i) for i in range(6)]
    first = rank_candidates(pool, _opp(), limit=4)
    second = rank_candidates(list(pool), _opp(), limit=4)
    assert first == second


def test_ties_break_on_hours_then_id():
    pool = [
        _vol("vol_b", skills=["Teaching"], totalHoursVolunteered=5),
        _vol("vol_a", skills=["Teaching"], totalHoursVolunteered=5),
        _vol("vol_c", skills=["Teaching"], totalHoursVolunteered=20),
    ]
    ranked = rank_candidates(pool, _opp())
    assert [r["volunteer"]["id"] for r in ranked] == ["vol_c", "vol_a", "vol_b"]


def test_no_required_skills_scores_full():
    f = score_skills(_vol("v"), _opp(requiredSkills=[]))
    assert f.score == 10.0


def test_skill_match_is_case_insensitive_substring():
    f = score_skills(_vol("v", skills=["certified first aid"]), _opp(requiredSkills=["First Aid"]))
    assert f.score == 10.0


def test_location_factors():
    assert score_location(_vol("v"), _opp(locationType="virtual")).score == 10.0
    assert score_location(_vol("v"), _opp(locationType="hybrid")).score == 9.0
    assert score_location(_vol("v"), _opp()).score == 10.0
    assert score_location(_vol("v", city="Dallas"), _opp()).score == 7.5
    assert score_location(_vol("v", city="Denver", state="CO"), _opp()).score == 5.0
    assert score_location(_vol("v", city="Paris", state="IDF", country="France"), _opp()).score == 2.5
    assert score_location(_vol("v", city=None), _opp()).score == 5.0


def test_same_city_name_in_another_state_is_not_same_city():
    f = score_location(_vol("v", city="Portland", state="ME"), _opp(city="Portland", state="OR"))
    assert f.score == 5.0


def test_availability_factors():
    assert score_availability(_vol("v"), _opp(startDate=None)).score == 5.0
    assert score_availability(_vol("v", availability={}), _opp()).score == 8.0
    assert score_availability(_vol("v"), _opp()).score == 10.0
    # Saturday start, runs through Sunday.
    sunday_only = _vol("v", availability={"days": ["Sunday"]})
    assert score_availability(sunday_only, _opp(endDate="2030-06-02")).score == 7.5
    assert score_availability(sunday_only, _opp()).score == 5.0


def test_min_score_and_limit():
    pool = [_vol("vol_full", skills=["First Aid", "Teaching"]), _vol("vol_none", interests=["sports"], city="Paris", state="X", country="France")]
    ranked = rank_candidates(pool, _opp(), min_score=60)
    assert [r["volunteer"]["id"] for r in ranked] == ["vol_full"]
    assert rank_candidates(pool, _opp(), limit=1)[0]["volunteer"]["id"] == "vol_full"


def test_recommendation_labels():
    assert recommendation_for(85) == "Excellent Match"
    assert recommendation_for(55) == "Good Match"
    assert recommendation_for(30) == "Fair Match"
    assert recommendation_for(10) is None


def test_result_carries_factor_breakdown():
    result = score_match(_vol("v", skills=["Teaching"]), _opp())
    names = [f.to_dict()["factor"] for f in result.factors]
    assert names == ["Skills", "Interest", "Location", "Availability"]
    # 0.4*5 + 0.3*10 + 0.2*10 + 0.1*10 = 8.0 -> 80.0
    assert result.score == 80.0
