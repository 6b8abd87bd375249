"""GET /v1/search and GET /v1/matches - ranked profile lists"""

import time
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from matchmaking_gateway.api.v1.schemas import ProfileSummary, RankedProfilesResponse
from matchmaking_gateway.api.dependencies import get_current_user_id, get_request_id
from matchmaking_gateway.config import settings
from matchmaking_gateway.infrastructure.database.session import get_db
from matchmaking_gateway.infrastructure.database.repositories import ProfileRepository, ProfileFilters
from matchmaking_gateway.domain.scoring import rank_candidates
from matchmaking_gateway.domain.exceptions import InvalidProfileError
from matchmaking_gateway.infrastructure.observability.metrics import ranking_results_histogram
from matchmaking_gateway.infrastructure.observability.logging import log_search

router = APIRouter()


def _load_requester(profiles: ProfileRepository, user_id: int):
    requester = profiles.get_profile(user_id)
    if requester is None:
        raise HTTPException(status_code=404, detail="User profile not found")
    return requester


@router.get("/search", response_model=RankedProfilesResponse)
def search_profiles(
    request: Request,
    location: Optional[str] = Query(None, description="Substring of city or state"),
    gender: Optional[str] = Query(None),
    age_min: Optional[int] = Query(None, ge=18),
    age_max: Optional[int] = Query(None, le=100),
    religion: Optional[str] = Query(None),
    education: Optional[str] = Query(None),
    occupation: Optional[str] = Query(None, description="Substring of occupation"),
    limit: int = Query(settings.search_result_limit, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Search approved profiles of the opposite gender, best matches first.

    Flow:
    1. Load requester profile
    2. Fetch candidate pool narrowed by filters
    3. Score, rank and truncate
    """
    start_time = time.time()
    request_id = get_request_id(request)

    profiles = ProfileRepository(db)
    requester = _load_requester(profiles, user_id)

    filters = ProfileFilters(
        location=location,
        gender=gender,
        age_min=age_min,
        age_max=age_max,
        religion=religion,
        education=education,
        occupation=occupation,
    )
    candidates = profiles.find_candidates(requester, filters, limit=settings.search_candidate_pool)

    try:
        ranked = rank_candidates(requester, candidates, limit=limit)
    except InvalidProfileError as e:
        logging.warning(f"Cannot rank for user {user_id}: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail="Complete your profile to search")

    duration_ms = (time.time() - start_time) * 1000
    ranking_results_histogram.labels(kind="search").observe(len(ranked))
    log_search(request_id, user_id, "search", len(ranked), duration_ms)

    return RankedProfilesResponse(
        profiles=[ProfileSummary.from_ranked(r) for r in ranked],
        total=len(ranked),
    )


@router.get("/matches", response_model=RankedProfilesResponse)
def list_matches(
    request: Request,
    limit: int = Query(settings.match_result_limit, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Matched users, ranked by compatibility with the requester"""
    start_time = time.time()
    request_id = get_request_id(request)

    profiles = ProfileRepository(db)
    requester = _load_requester(profiles, user_id)
    matched = profiles.find_matched_profiles(user_id)

    try:
        ranked = rank_candidates(requester, matched, limit=limit)
    except InvalidProfileError as e:
        logging.warning(f"Cannot rank for user {user_id}: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail="Complete your profile to see matches")

    duration_ms = (time.time() - start_time) * 1000
    ranking_results_histogram.labels(kind="matches").observe(len(ranked))
    log_search(request_id, user_id, "matches", len(ranked), duration_ms)

    return RankedProfilesResponse(
        profiles=[ProfileSummary.from_ranked(r) for r in ranked],
        total=len(ranked),
    )
