from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from typing import Callable
import logging

from sayso.database import get_db
from sayso.models import Profile
from sayso.schemas.onboarding import (
    DealbreakersPayload,
    InterestsPayload,
    OnboardingAccessResponse,
    OnboardingStateResponse,
    SubcategoriesPayload,
)
from sayso.core.auth import get_current_profile
from sayso.services import onboarding_service
from sayso.services.onboarding_access import (
    OnboardingMarker,
    get_onboarding_access,
    is_onboarding_route,
)
from sayso.services.onboarding_service import OnboardingStepError
from sayso.services.taxonomy import InvalidSelectionError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/onboarding", tags=["onboarding"])


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate"


def _state_response(profile: Profile) -> OnboardingStateResponse:
    access = get_onboarding_access(OnboardingMarker.from_profile(profile))
    return OnboardingStateResponse(
        profile_id=profile.id,
        step=access.step,
        complete=access.is_complete,
        current_route=access.current_route,
        interest_ids=profile.interest_ids,
        subcategory_ids=profile.subcategory_ids,
        dealbreaker_ids=profile.dealbreaker_ids,
    )


def _run_save(db: Session, profile: Profile, step_name: str, save: Callable[[], Profile]) -> OnboardingStateResponse:
    """Run a save handler and translate its domain errors into HTTP errors."""
    try:
        return _state_response(save())
    except InvalidSelectionError as e:
        db.rollback()
        logger.info("[ONBOARDING] profile=%s step=%s invalid selection: %s", profile.id, step_name, e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": str(e),
                "invalid_ids": e.invalid_ids,
                "allowed_values": e.allowed_values,
            },
        )
    except OnboardingStepError as e:
        db.rollback()
        logger.info("[ONBOARDING] profile=%s step=%s rejected: %s", profile.id, step_name, e)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": str(e), "redirect_to": e.redirect_to},
        )
    except Exception as e:
        db.rollback()
        error_type = type(e).__name__
        error_message = str(e) if str(e) else "An unexpected error occurred"
        logger.exception(
            f"[POST /api/onboarding/{step_name} ERROR] "
            f"profile_id={profile.id}, "
            f"error_type={error_type}, "
            f"error={error_message}"
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "detail": "internal_error",
                "error_type": error_type,
                "error": error_message,
            },
        )


@router.get("", response_model=OnboardingStateResponse)
async def get_onboarding(
    response: Response,
    profile: Profile = Depends(get_current_profile),
):
    """
    Get the onboarding marker and saved selections for the authenticated user.
    """
    _no_store(response)
    return _state_response(profile)


@router.get("/access", response_model=OnboardingAccessResponse)
async def get_onboarding_access_decision(
    response: Response,
    path: str = Query(..., min_length=1, description="Route the client is about to open"),
    profile: Profile = Depends(get_current_profile),
):
    """
    Gate decision for a route: whether it may be opened and where to redirect otherwise.
    """
    _no_store(response)
    access = get_onboarding_access(OnboardingMarker.from_profile(profile))
    return OnboardingAccessResponse(
        step=access.step,
        current_route=access.current_route,
        is_complete=access.is_complete,
        path=path,
        is_onboarding_route=is_onboarding_route(path),
        can_access=access.can_access(path),
        redirect_to=access.redirect_for(path),
    )


@router.post("/interests", response_model=OnboardingStateResponse)
async def save_interests(
    payload: InterestsPayload,
    response: Response,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    _no_store(response)
    return _run_save(
        db, profile, "interests",
        lambda: onboarding_service.save_interests(db, profile, payload.interest_ids),
    )


@router.post("/subcategories", response_model=OnboardingStateResponse)
async def save_subcategories(
    payload: SubcategoriesPayload,
    response: Response,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    _no_store(response)
    return _run_save(
        db, profile, "subcategories",
        lambda: onboarding_service.save_subcategories(db, profile, payload.subcategory_ids),
    )


@router.post("/deal-breakers", response_model=OnboardingStateResponse)
async def save_dealbreakers(
    payload: DealbreakersPayload,
    response: Response,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    _no_store(response)
    return _run_save(
        db, profile, "deal-breakers",
        lambda: onboarding_service.save_dealbreakers(db, profile, payload.dealbreaker_ids),
    )


@router.post("/complete", response_model=OnboardingStateResponse)
async def complete_onboarding(
    response: Response,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    _no_store(response)
    return _run_save(
        db, profile, "complete",
        lambda: onboarding_service.complete_onboarding(db, profile),
    )
