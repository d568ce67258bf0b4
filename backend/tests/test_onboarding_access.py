"""Tests for the onboarding state machine / route gate."""
import pytest
from types import SimpleNamespace

from sayso.models import OnboardingStep
from sayso.services.onboarding_access import (
    ONBOARDING_ROUTES,
    STEP_ORDER,
    OnboardingMarker,
    can_access,
    get_onboarding_access,
    is_onboarding_route,
    next_step,
    redirect_for,
    required_step,
    route_for_step,
    step_for_route,
)


@pytest.mark.parametrize("raw_step", [None, "", "bogus", "INTERESTS", "deal_breakers", 3, ["interests"]])
def test_required_step_defaults_to_interests_for_missing_or_invalid_step(raw_step):
    assert required_step(OnboardingMarker(step=raw_step)) == OnboardingStep.INTERESTS


def test_required_step_for_missing_marker_is_interests():
    assert required_step(None) == OnboardingStep.INTERESTS


@pytest.mark.parametrize("step", list(OnboardingStep))
def test_required_step_accepts_enum_and_string_values(step):
    assert required_step(OnboardingMarker(step=step)) == step
    assert required_step(OnboardingMarker(step=step.value)) == step


@pytest.mark.parametrize("raw_step", [None, "interests", "subcategories", "deal-breakers", "complete", "bogus"])
@pytest.mark.parametrize("route", ONBOARDING_ROUTES)
def test_completed_marker_blocks_every_onboarding_route(raw_step, route):
    marker = OnboardingMarker(step=raw_step, complete=True)
    assert can_access(marker, route) is False
    # The caller decides where finished users go
    assert redirect_for(marker, route) is None


def test_completed_marker_allows_other_routes():
    marker = OnboardingMarker(step="complete", complete=True)
    assert can_access(marker, "/home") is True
    assert redirect_for(marker, "/home") is None


@pytest.mark.parametrize("path", ["/home", "/business/abc", "/", "/interests/", "/onboarding"])
def test_non_onboarding_routes_are_not_gated(path):
    marker = OnboardingMarker(step="interests", complete=False)
    assert is_onboarding_route(path) is False
    assert can_access(marker, path) is True
    assert redirect_for(marker, path) is None


def test_no_skip_from_interests():
    marker = OnboardingMarker(step="interests")
    assert redirect_for(marker, "/deal-breakers") == "/interests"
    assert redirect_for(marker, "/subcategories") == "/interests"
    assert redirect_for(marker, "/complete") == "/interests"
    assert redirect_for(marker, "/interests") is None
    assert can_access(marker, "/interests") is True
    assert can_access(marker, "/subcategories") is False


def test_back_navigation_allowed_from_deal_breakers():
    marker = OnboardingMarker(step="deal-breakers", complete=False)
    assert can_access(marker, "/interests") is True
    assert can_access(marker, "/subcategories") is True
    assert can_access(marker, "/deal-breakers") is True
    assert can_access(marker, "/complete") is False
    assert redirect_for(marker, "/complete") == "/deal-breakers"
    assert redirect_for(marker, "/interests") is None


@pytest.mark.parametrize("raw_step", [None, "bogus"] + [step.value for step in OnboardingStep])
def test_access_is_monotonic_backwards(raw_step):
    marker = OnboardingMarker(step=raw_step, complete=False)
    for index, step in enumerate(STEP_ORDER):
        if can_access(marker, route_for_step(step)):
            for earlier in STEP_ORDER[:index]:
                assert can_access(marker, route_for_step(earlier)) is True


@pytest.mark.parametrize("raw_step", [None, "bogus"] + [step.value for step in OnboardingStep])
def test_redirect_is_set_exactly_when_access_is_denied(raw_step):
    marker = OnboardingMarker(step=raw_step, complete=False)
    for route in ONBOARDING_ROUTES:
        redirect = redirect_for(marker, route)
        if can_access(marker, route):
            assert redirect is None
        else:
            assert redirect == route_for_step(required_step(marker))


def test_unknown_step_never_grants_more_than_interests():
    marker = OnboardingMarker(step="totally-done", complete=False)
    assert can_access(marker, "/interests") is True
    assert can_access(marker, "/subcategories") is False
    assert can_access(marker, "/complete") is False


def test_complete_step_without_flag_allows_complete_screen():
    marker = OnboardingMarker(step="complete", complete=False)
    assert can_access(marker, "/complete") is True
    assert redirect_for(marker, "/complete") is None


def test_marker_from_profile_reads_persisted_fields():
    profile = SimpleNamespace(onboarding_step="subcategories", onboarding_complete=None)
    marker = OnboardingMarker.from_profile(profile)
    assert marker == OnboardingMarker(step="subcategories", complete=None)
    assert OnboardingMarker.from_profile(None) == OnboardingMarker()


def test_get_onboarding_access_bundles_decisions():
    access = get_onboarding_access(OnboardingMarker(step="subcategories"))
    assert access.step == OnboardingStep.SUBCATEGORIES
    assert access.current_route == "/subcategories"
    assert access.is_complete is False
    assert access.can_access("/interests") is True
    assert access.redirect_for("/complete") == "/subcategories"

    empty = get_onboarding_access(None)
    assert empty.step == OnboardingStep.INTERESTS
    assert empty.current_route == "/interests"


def test_route_and_step_helpers_round_trip():
    for step in OnboardingStep:
        assert step_for_route(route_for_step(step)) == step
    assert step_for_route("/home") is None


def test_next_step_moves_one_forward_and_stops_at_complete():
    assert next_step(OnboardingStep.INTERESTS) == OnboardingStep.SUBCATEGORIES
    assert next_step(OnboardingStep.SUBCATEGORIES) == OnboardingStep.DEAL_BREAKERS
    assert next_step(OnboardingStep.DEAL_BREAKERS) == OnboardingStep.COMPLETE
    assert next_step(OnboardingStep.COMPLETE) == OnboardingStep.COMPLETE
