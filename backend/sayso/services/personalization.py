"""
Personalized ranking for the "For You" business feed.

Formula (per candidate that survives filtering):

    personalization_score = interest_score * 2.0
                          + quality_score
                          + freshness_score
                          + distance_score
                          + randomness_term

Candidates are then grouped by category (sub_interest_id -> interest_id ->
category -> "uncategorized"), ranked inside their group, capped at
DIVERSITY_CAP per group, sorted globally and truncated to the requested limit.
The cap is applied before truncation so a single category can never crowd
out the feed.

Nothing here touches the database; feed_service supplies the candidate
snapshot and the requester's preferences.
"""
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Protocol
import logging
import math
import random

logger = logging.getLogger(__name__)

# Interest match levels
INTEREST_SUBCATEGORY_MATCH = 1.0
INTEREST_CATEGORY_MATCH = 0.6
INTEREST_BASELINE = 0.2  # Never zero, unmatched businesses keep some reach

# Component weights
W_INTEREST = 2.0
W_RATING = 0.5
W_REVIEWS = 0.3
W_FRESHNESS = 0.35
W_DISTANCE = 0.2

FRESHNESS_WINDOW_DAYS = 45.0
DISTANCE_RADIUS_KM = 15.0
EARTH_RADIUS_KM = 6371.0
RANDOMNESS_MAX = 0.05

DIVERSITY_CAP = 4
DEFAULT_LIMIT = 40
UNCATEGORIZED = "uncategorized"


class RandomSource(Protocol):
    def uniform(self, a: float, b: float) -> float:
        ...


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps come from the database in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_key(value: Any) -> Optional[str]:
    # Category ids may arrive as ints from the catalog; preferences are always strings
    if value is None:
        return None
    key = str(value).strip()
    return key or None


def _id_set(values: Optional[Iterable[Any]]) -> FrozenSet[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    return frozenset(str(v).strip() for v in values if v is not None and str(v).strip())


def _first(row: Mapping, *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


@dataclass
class CandidateItem:
    """Read-only snapshot of one business as seen by the ranker."""
    id: str
    name: Optional[str] = None
    sub_interest_id: Optional[str] = None
    interest_id: Optional[str] = None
    category: Optional[str] = None
    average_rating: Optional[float] = None
    review_count: Optional[int] = None
    created_at: Optional[datetime] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    price_range: Optional[str] = None
    is_active: bool = True
    verified: Optional[bool] = None
    percentiles: Optional[Dict[str, float]] = None
    # Original row/model, handed back untouched to the caller
    source: Any = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        # Malformed numbers (strings, NaN, inf) degrade to missing instead of failing the ranking pass
        if self.id is not None:
            self.id = str(self.id).strip()
        self.sub_interest_id = _to_key(self.sub_interest_id)
        self.interest_id = _to_key(self.interest_id)
        self.category = _to_key(self.category)
        self.average_rating = _to_float(self.average_rating)
        review_count = _to_float(self.review_count)
        self.review_count = int(review_count) if review_count is not None else None
        self.created_at = _to_datetime(self.created_at)
        self.latitude = _to_float(self.latitude)
        self.longitude = _to_float(self.longitude)
        self.price_range = self.price_range or None
        if not isinstance(self.percentiles, Mapping):
            self.percentiles = None

    @property
    def grouping_key(self) -> str:
        return self.sub_interest_id or self.interest_id or self.category or UNCATEGORIZED

    @classmethod
    def from_row(cls, row: Mapping) -> Optional["CandidateItem"]:
        """
        Build a candidate from a catalog row (dict / RPC result).

        Returns None when the row has no usable id: such a row cannot be
        scored or grouped.
        """
        item_id = row.get("id")
        if item_id is None or str(item_id).strip() == "":
            return None

        is_active = row.get("is_active")
        if is_active is None:
            status = row.get("status")
            is_active = status is None or str(status).lower() == "active"

        return cls(
            id=item_id,
            name=row.get("name"),
            sub_interest_id=row.get("sub_interest_id"),
            interest_id=row.get("interest_id"),
            category=row.get("category"),
            average_rating=row.get("average_rating"),
            review_count=_first(row, "review_count", "total_reviews"),
            created_at=row.get("created_at"),
            latitude=_first(row, "latitude", "lat"),
            longitude=_first(row, "longitude", "lng", "lon"),
            price_range=row.get("price_range"),
            is_active=bool(is_active),
            verified=row.get("verified"),
            percentiles=row.get("percentiles"),
            source=row,
        )

    @classmethod
    def from_model(cls, obj: Any) -> Optional["CandidateItem"]:
        """Build a candidate from an ORM object (or anything exposing the same attributes)."""
        fields = (
            "id", "name", "sub_interest_id", "interest_id", "category", "average_rating",
            "total_reviews", "created_at", "latitude", "longitude", "price_range",
            "status", "verified", "percentiles",
        )
        item = cls.from_row({name: getattr(obj, name, None) for name in fields})
        if item is not None:
            item.source = obj
        return item


@dataclass
class RankingPreferences:
    """What the requester asked for. All filters are optional."""
    sub_interest_ids: FrozenSet[str] = field(default_factory=frozenset)
    interest_ids: FrozenSet[str] = field(default_factory=frozenset)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    price_ranges: FrozenSet[str] = field(default_factory=frozenset)
    excluded_ids: FrozenSet[str] = field(default_factory=frozenset)
    min_rating: Optional[float] = None
    dealbreaker_ids: FrozenSet[str] = field(default_factory=frozenset)
    limit: Optional[int] = DEFAULT_LIMIT

    def __post_init__(self):
        self.sub_interest_ids = _id_set(self.sub_interest_ids)
        self.interest_ids = _id_set(self.interest_ids)
        self.price_ranges = _id_set(self.price_ranges)
        self.excluded_ids = _id_set(self.excluded_ids)
        self.dealbreaker_ids = _id_set(self.dealbreaker_ids)
        self.latitude = _to_float(self.latitude)
        self.longitude = _to_float(self.longitude)
        self.min_rating = _to_float(self.min_rating)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass
class ScoreBreakdown:
    interest_score: float = 0.0
    quality_score: float = 0.0
    freshness_score: float = 0.0
    distance_score: float = 0.0
    randomness_term: float = 0.0
    personalization_score: float = 0.0


@dataclass
class ScoredItem:
    item: CandidateItem
    score: ScoreBreakdown
    diversity_rank: int = 0
    insights: List[str] = field(default_factory=list)


# ----------------------------
# Deal-breakers
# ----------------------------

def _percentile(item: CandidateItem, key: str, default: float) -> float:
    value = _to_float((item.percentiles or {}).get(key))
    return default if value is None else value


def _value_for_money(item: CandidateItem) -> bool:
    if item.price_range:
        return item.price_range in ("$", "$$")
    return _percentile(item, "cost-effectiveness", 85) >= 75


# Each rule returns True when the business is acceptable for a user holding that deal-breaker.
# no-parking / cash-only / bad-hygiene have no business attributes to check yet and always pass.
DEALBREAKER_RULES: Dict[str, Callable[[CandidateItem], bool]] = {
    "trustworthiness": lambda item: item.verified is not False,
    "punctuality": lambda item: _percentile(item, "punctuality", 80) >= 70,
    "friendliness": lambda item: _percentile(item, "friendliness", 80) >= 65,
    "value-for-money": _value_for_money,
    "expensive": lambda item: item.price_range not in ("$$$", "$$$$"),
    "slow-service": lambda item: _percentile(item, "punctuality", 80) >= 60,
    "no-parking": lambda item: True,
    "cash-only": lambda item: True,
    "bad-hygiene": lambda item: True,
}


def violated_dealbreakers(item: CandidateItem, dealbreaker_ids: Iterable[str]) -> List[str]:
    violations = []
    for dealbreaker_id in dealbreaker_ids:
        rule = DEALBREAKER_RULES.get(dealbreaker_id)
        if rule is None:
            continue
        try:
            if not rule(item):
                violations.append(dealbreaker_id)
        except Exception:
            # A broken rule must not hide the business
            logger.warning(
                "[PERSONALIZATION] Deal-breaker rule failed: dealbreaker=%s item=%s",
                dealbreaker_id,
                item.id,
                exc_info=True,
            )
    return violations


# ----------------------------
# Filtering
# ----------------------------

def filter_candidates(candidates: Iterable[CandidateItem], preferences: RankingPreferences) -> List[CandidateItem]:
    """Drop inactive, off-price, excluded, under-rated and deal-breaker-violating businesses."""
    kept = []
    for item in candidates:
        if not item.is_active:
            continue
        if preferences.price_ranges and item.price_range not in preferences.price_ranges:
            continue
        if item.id in preferences.excluded_ids:
            continue
        if preferences.min_rating is not None and (item.average_rating or 0.0) < preferences.min_rating:
            continue
        if preferences.dealbreaker_ids and violated_dealbreakers(item, sorted(preferences.dealbreaker_ids)):
            continue
        kept.append(item)
    return kept


# ----------------------------
# Scoring components
# ----------------------------

def score_interest(item: CandidateItem, preferences: RankingPreferences) -> float:
    if preferences.sub_interest_ids and item.sub_interest_id in preferences.sub_interest_ids:
        return INTEREST_SUBCATEGORY_MATCH
    if preferences.interest_ids and item.interest_id in preferences.interest_ids:
        return INTEREST_CATEGORY_MATCH
    return INTEREST_BASELINE


def score_quality(item: CandidateItem) -> float:
    rating = item.average_rating or 0.0
    reviews = max(item.review_count or 0, 0)
    return W_RATING * rating + W_REVIEWS * math.log1p(reviews)


def score_freshness(item: CandidateItem, now: datetime) -> float:
    if item.created_at is None:
        return 0.0
    age_days = (_as_utc(now) - _as_utc(item.created_at)).total_seconds() / 86400.0
    # Timestamps in the future count as brand new
    age_days = max(age_days, 0.0)
    return max(0.0, 1.0 - age_days / FRESHNESS_WINDOW_DAYS) * W_FRESHNESS


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in kilometers."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2)
    c = 2 * math.asin(min(1.0, math.sqrt(a)))

    return c * EARTH_RADIUS_KM


def score_distance(item: CandidateItem, preferences: RankingPreferences) -> float:
    if not preferences.has_location or item.latitude is None or item.longitude is None:
        return 0.0
    distance = haversine_km(preferences.latitude, preferences.longitude, item.latitude, item.longitude)
    return max(0.0, 1.0 - distance / DISTANCE_RADIUS_KM) * W_DISTANCE


def score_candidate(
    item: CandidateItem,
    preferences: RankingPreferences,
    rng: RandomSource,
    now: datetime,
) -> ScoreBreakdown:
    interest = score_interest(item, preferences)
    quality = score_quality(item)
    freshness = score_freshness(item, now)
    distance = score_distance(item, preferences)
    randomness = rng.uniform(0.0, RANDOMNESS_MAX)
    return ScoreBreakdown(
        interest_score=interest,
        quality_score=quality,
        freshness_score=freshness,
        distance_score=distance,
        randomness_term=randomness,
        personalization_score=interest * W_INTEREST + quality + freshness + distance + randomness,
    )


# ----------------------------
# Insights
# ----------------------------

def build_insights(item: CandidateItem, preferences: RankingPreferences) -> List[str]:
    """Short reasons shown on the feed card."""
    insights: List[str] = []

    if item.interest_id and item.interest_id in preferences.interest_ids:
        insights.append(f"Matches your interest in {item.category or 'this category'}")

    if item.sub_interest_id and item.sub_interest_id in preferences.sub_interest_ids:
        insights.append(f"Perfect match for your preferred {item.category or 'category'}")

    if item.average_rating is not None and item.average_rating >= 4.5:
        insights.append(f"Highly rated with {item.average_rating:.1f} stars")

    if _percentile(item, "friendliness", 0) >= 80:
        insights.append("Known for excellent friendliness")

    if _percentile(item, "punctuality", 0) >= 80:
        insights.append("Known for fast, punctual service")

    if item.price_range in ("$", "$$"):
        insights.append("Great value for money")

    return insights


# ----------------------------
# Ranking
# ----------------------------

def _coerce_candidates(candidates: Iterable[Any]) -> List[CandidateItem]:
    items = []
    skipped = 0
    for candidate in candidates:
        if isinstance(candidate, CandidateItem):
            item = candidate if str(candidate.id or "").strip() else None
        elif isinstance(candidate, Mapping):
            item = CandidateItem.from_row(candidate)
        else:
            item = CandidateItem.from_model(candidate)
        if item is None:
            skipped += 1
            continue
        items.append(item)
    if skipped:
        logger.debug("[PERSONALIZATION] Skipped %d candidates without an id", skipped)
    return items


def assign_diversity_ranks(scored: List[ScoredItem]) -> List[ScoredItem]:
    """Set diversity_rank = 1-based position by score inside each category group."""
    groups: Dict[str, List[ScoredItem]] = defaultdict(list)
    for entry in scored:
        groups[entry.item.grouping_key].append(entry)

    for members in groups.values():
        members.sort(key=lambda entry: entry.score.personalization_score, reverse=True)
        for position, entry in enumerate(members, start=1):
            entry.diversity_rank = position

    return scored


def rank(
    candidates: Iterable[Any],
    preferences: Optional[RankingPreferences] = None,
    rng: Optional[RandomSource] = None,
    now: Optional[datetime] = None,
) -> List[ScoredItem]:
    """
    Rank a candidate snapshot for one requester.

    Candidates may be CandidateItem instances, catalog row mappings or ORM
    objects; entries without an id are skipped. Passing something that is not
    a collection of candidates (a string, a single mapping, None) raises
    TypeError.

    Pass `rng` (anything with uniform(a, b), e.g. random.Random(seed)) and
    `now` to make the result reproducible.
    """
    if isinstance(candidates, (str, bytes, Mapping)) or not isinstance(candidates, Iterable):
        raise TypeError(f"candidates must be a collection of items, got {type(candidates).__name__}")

    preferences = preferences or RankingPreferences()
    rng = rng if rng is not None else random.Random()
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)

    limit = DEFAULT_LIMIT if preferences.limit is None else preferences.limit
    if limit <= 0:
        return []

    items = _coerce_candidates(candidates)
    eligible = filter_candidates(items, preferences)

    scored = [
        ScoredItem(item=item, score=score_candidate(item, preferences, rng, now))
        for item in eligible
    ]
    assign_diversity_ranks(scored)

    # Cap per category first, then order globally and cut to size
    capped = [entry for entry in scored if entry.diversity_rank <= DIVERSITY_CAP]
    capped.sort(key=lambda entry: entry.score.personalization_score, reverse=True)
    selected = capped[:limit]

    for entry in selected:
        entry.insights = build_insights(entry.item, preferences)

    logger.debug(
        "[PERSONALIZATION] candidates=%d eligible=%d capped=%d returned=%d",
        len(items),
        len(eligible),
        len(capped),
        len(selected),
    )
    return selected
