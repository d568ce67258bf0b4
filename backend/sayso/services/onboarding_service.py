"""
Onboarding save handlers.

Each handler persists one step's selections and then moves the profile's
onboarding_step exactly one step forward. The gate in onboarding_access
decides whether the step may be saved at all; re-saving an earlier step
never moves the marker backward.
"""
from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from sayso.models import OnboardingStep, Profile
from sayso.services import taxonomy
from sayso.services.onboarding_access import (
    OnboardingMarker,
    compare_steps,
    get_onboarding_access,
    next_step,
    required_step,
    route_for_step,
)
from sayso.utils.instrumentation import log_event_best_effort

logger = logging.getLogger(__name__)


class OnboardingStepError(Exception):
    """Raised when a profile tries to save a step the gate does not allow."""

    def __init__(self, message: str, redirect_to: Optional[str] = None):
        self.redirect_to = redirect_to
        super().__init__(message)


def _ensure_step_allowed(profile: Profile, step: OnboardingStep) -> None:
    access = get_onboarding_access(OnboardingMarker.from_profile(profile))
    route = route_for_step(step)
    if access.can_access(route):
        return
    if access.is_complete:
        raise OnboardingStepError("Onboarding is already complete")
    raise OnboardingStepError(
        f"Cannot save '{step.value}' before completing '{access.step.value}'",
        redirect_to=access.redirect_for(route),
    )


def _advance_after(profile: Profile, saved_step: OnboardingStep) -> OnboardingStep:
    current = required_step(OnboardingMarker.from_profile(profile))
    target = next_step(saved_step)
    if compare_steps(target, current) > 0:
        profile.onboarding_step = target.value
    else:
        # Keep the later marker; also rewrites unknown stored values to a valid one
        profile.onboarding_step = current.value
    profile.updated_at = datetime.utcnow()
    return OnboardingStep(profile.onboarding_step)


def _save_step(
    db: Session,
    profile: Profile,
    step: OnboardingStep,
    attribute: str,
    ids: List[str],
) -> Profile:
    _ensure_step_allowed(profile, step)

    setattr(profile, attribute, ids)
    new_step = _advance_after(profile, step)
    db.commit()
    db.refresh(profile)

    log_event_best_effort(
        event_name="onboarding_step_saved",
        profile_id=profile.id,
        properties={"step": step.value, "count": len(ids), "next_step": new_step.value},
    )

    logger.info(
        "[ONBOARDING] profile=%s saved step=%s count=%d next_step=%s",
        profile.id,
        step.value,
        len(ids),
        new_step.value,
    )
    return profile


def save_interests(db: Session, profile: Profile, interest_ids: List[str]) -> Profile:
    ids = taxonomy.validate_interest_ids(interest_ids)
    return _save_step(db, profile, OnboardingStep.INTERESTS, "interest_ids", ids)


def save_subcategories(db: Session, profile: Profile, subcategory_ids: List[str]) -> Profile:
    ids = taxonomy.validate_subcategory_ids(subcategory_ids)
    return _save_step(db, profile, OnboardingStep.SUBCATEGORIES, "subcategory_ids", ids)


def save_dealbreakers(db: Session, profile: Profile, dealbreaker_ids: List[str]) -> Profile:
    ids = taxonomy.validate_dealbreaker_ids(dealbreaker_ids)
    return _save_step(db, profile, OnboardingStep.DEAL_BREAKERS, "dealbreaker_ids", ids)


def complete_onboarding(db: Session, profile: Profile) -> Profile:
    """Finish onboarding. Only allowed once every step has been saved."""
    access = get_onboarding_access(OnboardingMarker.from_profile(profile))
    if access.is_complete:
        raise OnboardingStepError("Onboarding is already complete")
    if access.step != OnboardingStep.COMPLETE:
        raise OnboardingStepError(
            f"Cannot complete onboarding before completing '{access.step.value}'",
            redirect_to=access.current_route,
        )

    profile.onboarding_step = OnboardingStep.COMPLETE.value
    profile.onboarding_complete = True
    profile.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(profile)

    log_event_best_effort(
        event_name="onboarding_completed",
        profile_id=profile.id,
        properties={
            "interests_count": len(profile.interest_ids or []),
            "subcategories_count": len(profile.subcategory_ids or []),
            "dealbreakers_count": len(profile.dealbreaker_ids or []),
        },
    )

    logger.info("[ONBOARDING] profile=%s completed onboarding", profile.id)
    return profile
