"""Personalized "For You" feed: loads the active catalog and hands it to the ranker."""
from typing import Iterable, List, Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from sayso.core.config import settings
from sayso.models import Business, BusinessStatus, Profile
from sayso.services.personalization import (
    CandidateItem,
    RandomSource,
    RankingPreferences,
    ScoredItem,
    rank,
)
from sayso.utils.timing import now_ms, log_elapsed

logger = logging.getLogger(__name__)


def build_preferences(
    profile: Optional[Profile],
    limit: Optional[int] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    price_ranges: Optional[Iterable[str]] = None,
    min_rating: Optional[float] = None,
    excluded_ids: Optional[Iterable[str]] = None,
) -> RankingPreferences:
    """Combine the stored onboarding selections with the request's filters."""
    if limit is None:
        limit = settings.FEED_DEFAULT_LIMIT
    limit = max(0, min(limit, settings.FEED_MAX_LIMIT))

    return RankingPreferences(
        sub_interest_ids=(profile.subcategory_ids if profile else None) or [],
        interest_ids=(profile.interest_ids if profile else None) or [],
        dealbreaker_ids=(profile.dealbreaker_ids if profile else None) or [],
        latitude=latitude,
        longitude=longitude,
        price_ranges=price_ranges or [],
        min_rating=min_rating,
        excluded_ids=excluded_ids or [],
        limit=limit,
    )


def load_candidates(db: Session, pool_size: Optional[int] = None) -> List[CandidateItem]:
    """
    Active businesses for ranking, capped at the candidate pool size.

    Half the pool is the newest businesses, the rest is filled with the best
    rated ones so long-standing favorites of a large catalog are still scored.
    """
    pool_size = pool_size or settings.FEED_CANDIDATE_POOL
    active = db.query(Business).filter(Business.status == BusinessStatus.ACTIVE.value)

    rows = (
        active.order_by(Business.created_at.desc())
        .limit(pool_size - pool_size // 2)
        .all()
    )
    seen = {row.id for row in rows}

    if len(rows) < pool_size:
        best_rated = (
            active.order_by(
                func.coalesce(Business.average_rating, 0).desc(),
                func.coalesce(Business.total_reviews, 0).desc(),
                Business.created_at.desc(),
            )
            .limit(pool_size)
            .all()
        )
        for row in best_rated:
            if len(rows) >= pool_size:
                break
            if row.id not in seen:
                seen.add(row.id)
                rows.append(row)

    candidates = []
    for row in rows:
        item = CandidateItem.from_model(row)
        if item is not None:
            candidates.append(item)
    return candidates


def get_personalized_feed(
    db: Session,
    preferences: RankingPreferences,
    rng: Optional[RandomSource] = None,
    request_id: Optional[str] = None,
) -> List[ScoredItem]:
    t0 = now_ms()
    candidates = load_candidates(db)
    t1 = log_elapsed(t0, f"req_id={request_id} load_candidates")

    items = rank(candidates, preferences, rng=rng)
    log_elapsed(t1, f"req_id={request_id} rank")

    logger.info(
        "[FEED] req_id=%s candidates=%d returned=%d interests=%d subcategories=%d dealbreakers=%d has_location=%s",
        request_id,
        len(candidates),
        len(items),
        len(preferences.interest_ids),
        len(preferences.sub_interest_ids),
        len(preferences.dealbreaker_ids),
        preferences.has_location,
    )
    return items
