"""Static interest / subcategory / deal-breaker catalog used to validate onboarding selections."""
from typing import Dict, Iterable, List, Optional


class InvalidSelectionError(ValueError):
    """Raised when an onboarding selection contains ids outside the catalog."""

    def __init__(self, kind: str, invalid_ids: List[str], allowed_values: List[str], message: Optional[str] = None):
        self.kind = kind
        self.invalid_ids = invalid_ids
        self.allowed_values = allowed_values
        super().__init__(
            message
            or f"Invalid {kind} ids: {', '.join(invalid_ids)}. Allowed values are: {', '.join(allowed_values)}"
        )


INTEREST_IDS = [
    "food-drink",
    "beauty-wellness",
    "professional-services",
    "outdoors-adventure",
    "experiences-entertainment",
    "arts-culture",
    "family-pets",
    "shopping-lifestyle",
]

SUBCATEGORY_TO_INTEREST: Dict[str, str] = {
    # Food & Drink
    "restaurants": "food-drink",
    "cafes": "food-drink",
    "bars": "food-drink",
    "fast-food": "food-drink",
    "fine-dining": "food-drink",
    # Beauty & Wellness
    "gyms": "beauty-wellness",
    "spas": "beauty-wellness",
    "salons": "beauty-wellness",
    "wellness": "beauty-wellness",
    "nail-salons": "beauty-wellness",
    # Professional Services
    "education-learning": "professional-services",
    "transport-travel": "professional-services",
    "finance-insurance": "professional-services",
    "plumbers": "professional-services",
    "electricians": "professional-services",
    "legal-services": "professional-services",
    # Outdoors & Adventure
    "hiking": "outdoors-adventure",
    "cycling": "outdoors-adventure",
    "water-sports": "outdoors-adventure",
    "camping": "outdoors-adventure",
    # Entertainment & Experiences
    "events-festivals": "experiences-entertainment",
    "sports-recreation": "experiences-entertainment",
    "nightlife": "experiences-entertainment",
    "comedy-clubs": "experiences-entertainment",
    "cinemas": "experiences-entertainment",
    # Arts & Culture
    "museums": "arts-culture",
    "galleries": "arts-culture",
    "theaters": "arts-culture",
    "concerts": "arts-culture",
    # Family & Pets
    "family-activities": "family-pets",
    "pet-services": "family-pets",
    "childcare": "family-pets",
    "veterinarians": "family-pets",
    # Shopping & Lifestyle
    "fashion": "shopping-lifestyle",
    "electronics": "shopping-lifestyle",
    "home-decor": "shopping-lifestyle",
    "books": "shopping-lifestyle",
}

DEALBREAKER_IDS = [
    "trustworthiness",
    "punctuality",
    "friendliness",
    "value-for-money",
    "expensive",
    "slow-service",
    "no-parking",
    "cash-only",
    "bad-hygiene",
]


def _clean_ids(values: Iterable[str]) -> List[str]:
    """Strip whitespace, drop blanks and duplicates, keep first-seen order."""
    cleaned: List[str] = []
    for value in values or []:
        if not isinstance(value, str):
            continue
        value = value.strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


def _validate(kind: str, values: Iterable[str], allowed: List[str]) -> List[str]:
    cleaned = _clean_ids(values)
    invalid = [value for value in cleaned if value not in allowed]
    if invalid:
        raise InvalidSelectionError(kind, invalid, list(allowed))
    return cleaned


def validate_interest_ids(values: Iterable[str]) -> List[str]:
    cleaned = _validate("interest", values, INTEREST_IDS)
    if not cleaned:
        raise InvalidSelectionError("interest", [], list(INTEREST_IDS), "Select at least one interest")
    return cleaned


def validate_subcategory_ids(values: Iterable[str]) -> List[str]:
    # An empty selection is allowed: the user may skip subcategories
    return _validate("subcategory", values, list(SUBCATEGORY_TO_INTEREST))


def validate_dealbreaker_ids(values: Iterable[str]) -> List[str]:
    return _validate("deal-breaker", values, DEALBREAKER_IDS)


def interest_for_subcategory(subcategory_id: str) -> Optional[str]:
    return SUBCATEGORY_TO_INTEREST.get(subcategory_id)
