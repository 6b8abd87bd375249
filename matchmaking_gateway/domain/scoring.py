"""Compatibility scoring and match ranking - core business logic for search and suggestions"""

from itertools import groupby
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from matchmaking_gateway.domain.models import CandidateProfile, RankedCandidate
from matchmaking_gateway.domain.exceptions import InvalidProfileError
from matchmaking_gateway.utils.geo import haversine_distance_km
from matchmaking_gateway.utils.math_utils import round_half_up

EDUCATION_LEVELS = ("High School", "Bachelor's", "Master's", "PhD")


def _present(value) -> bool:
    return value is not None and str(value).strip() != ""


def _exact_match(a, b) -> bool:
    return _present(a) and _present(b) and a == b


def religion_points(a: CandidateProfile, b: CandidateProfile) -> int:
    return 25 if _exact_match(a.religion, b.religion) else 0


def caste_points(a: CandidateProfile, b: CandidateProfile) -> int:
    return 15 if _exact_match(a.caste, b.caste) else 0


def education_points(a: CandidateProfile, b: CandidateProfile) -> int:
    """
    Proximity on the ordinal scale High School < Bachelor's < Master's < PhD.

    Values outside the scale count as missing and earn nothing.
    """
    if a.education not in EDUCATION_LEVELS or b.education not in EDUCATION_LEVELS:
        return 0

    gap = abs(EDUCATION_LEVELS.index(a.education) - EDUCATION_LEVELS.index(b.education))
    if gap == 0:
        return 20
    elif gap == 1:
        return 15
    elif gap == 2:
        return 10
    return 0


def age_points(a: CandidateProfile, b: CandidateProfile) -> int:
    if a.age is None or b.age is None:
        return 0

    gap = abs(a.age - b.age)
    if gap <= 2:
        return 20
    elif gap <= 5:
        return 15
    elif gap <= 8:
        return 10
    elif gap <= 12:
        return 5
    return 0


def location_points(a: CandidateProfile, b: CandidateProfile) -> int:
    if not _exact_match(a.state, b.state):
        return 0
    return 10 if _exact_match(a.city, b.city) else 5


def mother_tongue_points(a: CandidateProfile, b: CandidateProfile) -> int:
    return 10 if _exact_match(a.mother_tongue, b.mother_tongue) else 0


# (name, weight, points function); each function returns a value in [0, weight]
SCORING_FACTORS: List[Tuple[str, int, Callable[[CandidateProfile, CandidateProfile], int]]] = [
    ("religion", 25, religion_points),
    ("caste", 15, caste_points),
    ("education", 20, education_points),
    ("age", 20, age_points),
    ("location", 10, location_points),
    ("mother_tongue", 10, mother_tongue_points),
]


def score_breakdown(a: CandidateProfile, b: CandidateProfile) -> Dict[str, int]:
    """Points earned per factor, keyed by factor name"""
    return {name: points(a, b) for name, _, points in SCORING_FACTORS}


def compatibility_score(a: CandidateProfile, b: CandidateProfile) -> int:
    """
    Calculate compatibility from 0 (nothing in common) to 100 (ideal pair).

    Scoring weights:
    - 25: Religion (exact match)
    - 15: Caste (exact match)
    - 20: Education (20 same level, 15 one apart, 10 two apart)
    - 20: Age (|Δ| ≤2: 20, ≤5: 15, ≤8: 10, ≤12: 5)
    - 10: Location (10 same state and city, 5 same state)
    - 10: Mother tongue (exact match)

    The earned points are normalized by the summed factor weights, so the
    result stays a percentage when factors change. Every factor compares
    the pair the same way in both directions, which makes the score symmetric.
    """
    total_weight = sum(weight for _, weight, _ in SCORING_FACTORS)
    if total_weight == 0:
        return 0

    earned = sum(score_breakdown(a, b).values())
    return round_half_up(100 * earned / total_weight)


def _same_gender(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


def is_eligible(requester: CandidateProfile, candidate: CandidateProfile) -> bool:
    """Opposite gender, not the requester, approved profile on an active account"""
    if candidate.user_id == requester.user_id:
        return False
    if candidate.profile_status != "approved" or candidate.account_status != "active":
        return False
    if not _present(candidate.gender):
        return False
    return not _same_gender(requester.gender, candidate.gender)


def distance_between(a: CandidateProfile, b: CandidateProfile) -> Optional[int]:
    """Haversine distance in km, or None when either side has no known location"""
    if not (a.has_location and b.has_location):
        return None
    return haversine_distance_km(a.latitude, a.longitude, b.latitude, b.longitude)


def _order(ranked: List[RankedCandidate]) -> List[RankedCandidate]:
    """
    Sort by score descending.

    Within a score tie, candidates with a distance are ordered closest first
    among the slots they already occupy; candidates without one keep their slot.
    """
    by_score = sorted(ranked, key=lambda r: -r.score)

    ordered: List[RankedCandidate] = []
    for _, group in groupby(by_score, key=lambda r: r.score):
        tier = list(group)
        slots = [i for i, r in enumerate(tier) if r.distance_km is not None]
        nearest_first = sorted((tier[i] for i in slots), key=lambda r: r.distance_km)
        for slot, candidate in zip(slots, nearest_first):
            tier[slot] = candidate
        ordered.extend(tier)

    return ordered


def rank_candidates(
    requester: CandidateProfile,
    candidates: Sequence[CandidateProfile],
    limit: Optional[int] = None,
) -> List[RankedCandidate]:
    """
    Main entry point: filter, score and order candidates for a requester.

    Raises:
        InvalidProfileError: Requester has no id or no declared gender
    """
    if requester.user_id is None or not _present(requester.gender):
        raise InvalidProfileError("Requester profile must have an id and a gender")

    ranked = [
        RankedCandidate(
            profile=candidate,
            score=compatibility_score(requester, candidate),
            distance_km=distance_between(requester, candidate),
        )
        for candidate in candidates
        if is_eligible(requester, candidate)
    ]

    ordered = _order(ranked)
    return ordered[:limit] if limit is not None else ordered
