"""
Helper functions for profile management with Supabase auth.
"""
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sayso.models import Profile, OnboardingStep
import logging

logger = logging.getLogger(__name__)


def get_or_create_profile_by_auth_id(
    db: Session,
    auth_user_id: str,
    email: str = "",
    endpoint_path: str = "",
) -> Profile:
    """
    Get or create the local Profile for a Supabase auth user.

    Supabase Auth is the source of truth for identity; the profile row is keyed
    by auth_user_id (Supabase "sub") and is created on first access with the
    onboarding marker at its defaults (step='interests', complete=False).

    Idempotent under concurrent first requests: a losing INSERT rolls back and
    re-reads the winner's row.
    """
    normalized_email = email.lower().strip() if email else None

    profile = db.query(Profile).filter(Profile.auth_user_id == auth_user_id).one_or_none()
    if profile:
        if normalized_email and not profile.email:
            profile.email = normalized_email
            db.commit()
            db.refresh(profile)
        return profile

    profile = Profile(
        auth_user_id=auth_user_id,
        email=normalized_email,
        onboarding_step=OnboardingStep.INTERESTS.value,
        onboarding_complete=False,
    )
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(
            "[get_or_create_profile_by_auth_id] concurrent create, re-reading: endpoint=%s auth_user_id=%s",
            endpoint_path,
            auth_user_id,
        )
        return db.query(Profile).filter(Profile.auth_user_id == auth_user_id).one()

    db.refresh(profile)
    logger.info(
        "[get_or_create_profile_by_auth_id] created profile: endpoint=%s auth_user_id=%s profile_id=%s",
        endpoint_path,
        auth_user_id,
        profile.id,
    )
    return profile
