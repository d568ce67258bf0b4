from typing import List, Optional
import uuid as uuid_lib

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session
import logging

from sayso.database import get_db
from sayso.models import Profile
from sayso.services import feed_service
from sayso.services.personalization import ScoredItem
from sayso.schemas.recommendation import (
    RecommendationItem,
    RecommendationsResponse,
    ScoreBreakdownResponse,
)
from sayso.core.auth import get_current_profile
from sayso.core.config import settings
from sayso.utils.instrumentation import log_event_best_effort
from sayso.utils.timing import now_ms, log_elapsed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/businesses", tags=["recommendations"])


def _to_item(entry: ScoredItem) -> RecommendationItem:
    item = entry.item
    source = item.source
    score = entry.score
    return RecommendationItem(
        id=item.id,
        name=item.name,
        slug=getattr(source, "slug", None),
        description=getattr(source, "description", None),
        category=item.category,
        interest_id=item.interest_id,
        sub_interest_id=item.sub_interest_id,
        address=getattr(source, "address", None),
        image_url=getattr(source, "image_url", None),
        price_range=item.price_range,
        average_rating=item.average_rating or 0.0,
        total_reviews=item.review_count or 0,
        latitude=item.latitude,
        longitude=item.longitude,
        verified=item.verified,
        percentiles=item.percentiles,
        created_at=item.created_at,
        personalization_score=round(score.personalization_score, 4),
        diversity_rank=entry.diversity_rank,
        score_breakdown=ScoreBreakdownResponse(
            interest_score=round(score.interest_score, 4),
            quality_score=round(score.quality_score, 4),
            freshness_score=round(score.freshness_score, 4),
            distance_score=round(score.distance_score, 4),
            randomness_term=round(score.randomness_term, 4),
        ),
        insights=entry.insights,
    )


@router.get("/for-you", response_model=RecommendationsResponse)
async def get_for_you_feed(
    response: Response,
    limit: int = Query(settings.FEED_DEFAULT_LIMIT, ge=1, le=settings.FEED_MAX_LIMIT),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    price_ranges: Optional[List[str]] = Query(None, description="Allowed price tiers, e.g. $ or $$"),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    exclude: Optional[List[str]] = Query(None, description="Business ids to leave out"),
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    t0 = now_ms()
    request_id = str(uuid_lib.uuid4())
    response.headers["Cache-Control"] = "no-store"

    preferences = feed_service.build_preferences(
        profile,
        limit=limit,
        latitude=lat,
        longitude=lng,
        price_ranges=price_ranges,
        min_rating=min_rating,
        excluded_ids=exclude,
    )

    try:
        scored = feed_service.get_personalized_feed(db, preferences, request_id=request_id)
    except Exception as e:
        error_type = type(e).__name__
        error_message = str(e) if str(e) else "An unexpected error occurred"
        logger.exception(
            "[GET /api/businesses/for-you ERROR] "
            f"profile_id={profile.id}, "
            f"error_type={error_type}, "
            f"error={error_message}"
        )
        raise HTTPException(
            status_code=500,
            detail={
                "detail": "internal_error",
                "error_type": error_type,
                "error": error_message,
            },
        )

    items = [_to_item(entry) for entry in scored]

    log_event_best_effort(
        event_name="feed_impression",
        profile_id=profile.id,
        request_id=request_id,
        properties={
            "count": len(items),
            "top_business_id": items[0].id if items else None,
        },
    )

    if settings.DEBUG:
        log_elapsed(t0, f"req_id={request_id} profile={profile.id} for_you_total", logger.debug)

    return RecommendationsResponse(request_id=request_id, items=items)
