"""
Onboarding access control.

Single source of truth for onboarding routing decisions. Decisions are made
from the persisted progress marker only (profiles.onboarding_step and
profiles.onboarding_complete), never from selection counts.

State machine:
- 'interests'     -> user must complete interests
- 'subcategories' -> user must complete subcategories
- 'deal-breakers' -> user must complete deal-breakers
- 'complete'      -> user can access the /complete screen

Transitions happen in the save handlers (sayso.services.onboarding_service),
one step forward per successful save. onboarding_complete=True is set by the
final "finish" action and takes priority over whatever step is stored.
"""
from dataclasses import dataclass
from typing import Any, Optional

from sayso.models import OnboardingStep

# Earlier = lower index
STEP_ORDER = [
    OnboardingStep.INTERESTS,
    OnboardingStep.SUBCATEGORIES,
    OnboardingStep.DEAL_BREAKERS,
    OnboardingStep.COMPLETE,
]

STEP_TO_ROUTE = {
    OnboardingStep.INTERESTS: "/interests",
    OnboardingStep.SUBCATEGORIES: "/subcategories",
    OnboardingStep.DEAL_BREAKERS: "/deal-breakers",
    OnboardingStep.COMPLETE: "/complete",
}

ROUTE_TO_STEP = {route: step for step, route in STEP_TO_ROUTE.items()}

ONBOARDING_ROUTES = tuple(STEP_TO_ROUTE.values())


@dataclass(frozen=True)
class OnboardingMarker:
    """Persisted onboarding progress: the raw step value plus the completion flag."""
    step: Any = None
    complete: Optional[bool] = None

    @classmethod
    def from_profile(cls, profile: Any) -> "OnboardingMarker":
        if profile is None:
            return cls()
        return cls(
            step=getattr(profile, "onboarding_step", None),
            complete=getattr(profile, "onboarding_complete", None),
        )


def _coerce_step(value: Any) -> Optional[OnboardingStep]:
    if isinstance(value, OnboardingStep):
        return value
    if isinstance(value, str):
        try:
            return OnboardingStep(value)
        except ValueError:
            return None
    return None


def required_step(marker: Optional[OnboardingMarker]) -> OnboardingStep:
    """
    Get the step the user still has to complete.

    Defaults to 'interests' if the marker is missing or its step is null,
    unknown, or not a string.
    """
    if marker is None:
        return OnboardingStep.INTERESTS
    return _coerce_step(marker.step) or OnboardingStep.INTERESTS


def _is_complete(marker: Optional[OnboardingMarker]) -> bool:
    return marker is not None and marker.complete is True


def compare_steps(step1: OnboardingStep, step2: OnboardingStep) -> int:
    """Negative if step1 is earlier than step2, 0 if equal, positive if later."""
    return STEP_ORDER.index(step1) - STEP_ORDER.index(step2)


def is_onboarding_route(pathname: str) -> bool:
    return pathname in ROUTE_TO_STEP


def step_for_route(pathname: str) -> Optional[OnboardingStep]:
    return ROUTE_TO_STEP.get(pathname)


def route_for_step(step: OnboardingStep) -> str:
    return STEP_TO_ROUTE[step]


def next_step(step: OnboardingStep) -> OnboardingStep:
    """The step that follows `step`; 'complete' is terminal."""
    index = STEP_ORDER.index(step)
    return STEP_ORDER[min(index + 1, len(STEP_ORDER) - 1)]


def can_access(marker: Optional[OnboardingMarker], pathname: str) -> bool:
    """
    Check if the user may open `pathname`.

    1. onboarding_complete=True: every onboarding route is blocked, anything
       else is allowed (other authorization lives elsewhere).
    2. Otherwise non-onboarding routes are allowed, and an onboarding route is
       allowed when its step is the required step or an earlier one (back
       navigation). Later steps are never allowed.
    """
    if _is_complete(marker):
        return not is_onboarding_route(pathname)

    requested = step_for_route(pathname)
    if requested is None:
        return True

    return compare_steps(requested, required_step(marker)) <= 0


def redirect_for(marker: Optional[OnboardingMarker], pathname: str) -> Optional[str]:
    """
    Get the route to redirect to for `pathname`, or None if no redirect is needed.

    A completed user hitting an onboarding route also gets None: the caller
    decides where finished users go.
    """
    if _is_complete(marker) and is_onboarding_route(pathname):
        return None

    requested = step_for_route(pathname)
    if requested is None:
        return None

    required = required_step(marker)
    if compare_steps(requested, required) > 0:
        # No skipping ahead
        return route_for_step(required)

    return None


@dataclass(frozen=True)
class OnboardingAccess:
    marker: OnboardingMarker
    step: OnboardingStep
    current_route: str
    is_complete: bool

    def can_access(self, pathname: str) -> bool:
        return can_access(self.marker, pathname)

    def redirect_for(self, pathname: str) -> Optional[str]:
        return redirect_for(self.marker, pathname)


def get_onboarding_access(marker: Optional[OnboardingMarker]) -> OnboardingAccess:
    marker = marker or OnboardingMarker()
    step = required_step(marker)
    return OnboardingAccess(
        marker=marker,
        step=step,
        current_route=route_for_step(step),
        is_complete=_is_complete(marker),
    )
