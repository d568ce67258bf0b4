from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from uuid import UUID

from sayso.models import OnboardingStep


class InterestsPayload(BaseModel):
    interest_ids: List[str] = Field(default_factory=list)


class SubcategoriesPayload(BaseModel):
    subcategory_ids: List[str] = Field(default_factory=list)


class DealbreakersPayload(BaseModel):
    dealbreaker_ids: List[str] = Field(default_factory=list)


class OnboardingStateResponse(BaseModel):
    profile_id: UUID
    step: OnboardingStep
    complete: bool
    current_route: str
    interest_ids: List[str] = Field(default_factory=list)
    subcategory_ids: List[str] = Field(default_factory=list)
    dealbreaker_ids: List[str] = Field(default_factory=list)

    @field_validator("interest_ids", "subcategory_ids", "dealbreaker_ids", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or []


class OnboardingAccessResponse(BaseModel):
    step: OnboardingStep
    current_route: str
    is_complete: bool
    path: str
    is_onboarding_route: bool
    can_access: bool
    redirect_to: Optional[str] = None
