from pydantic import BaseModel
from typing import Optional, List, Dict
from datetime import datetime


class ScoreBreakdownResponse(BaseModel):
    interest_score: float
    quality_score: float
    freshness_score: float
    distance_score: float
    randomness_term: float


class RecommendationItem(BaseModel):
    id: str
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    interest_id: Optional[str] = None
    sub_interest_id: Optional[str] = None
    address: Optional[str] = None
    image_url: Optional[str] = None
    price_range: Optional[str] = None
    average_rating: float = 0.0
    total_reviews: int = 0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    verified: Optional[bool] = None
    percentiles: Optional[Dict[str, float]] = None
    created_at: Optional[datetime] = None
    personalization_score: float
    diversity_rank: int
    score_breakdown: ScoreBreakdownResponse
    insights: List[str] = []


class RecommendationsResponse(BaseModel):
    """Response wrapper for the feed that includes request_id for event tracking."""
    request_id: str
    items: List[RecommendationItem]
