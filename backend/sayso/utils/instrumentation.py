"""
Server-side event logging helper.

Logs events to both the database (for querying) and structured logs (for immediate visibility).
"""
import logging
from typing import Optional, Dict, Any
from uuid import UUID
from sqlalchemy.exc import OperationalError, ProgrammingError
from sayso.models import EventLog
from sayso.database import SessionLocal

logger = logging.getLogger(__name__)


def log_event_best_effort(
    event_name: str,
    profile_id: Optional[UUID] = None,
    properties: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> None:
    """
    Log an event using a separate database session (best-effort, non-blocking).

    This function creates its own database session and commits independently,
    so it will never break the main business transaction (e.g., onboarding save).
    Call it after the caller's own commit.

    Args:
        event_name: Name of the event (e.g., "onboarding_step_saved", "feed_impression")
        profile_id: Optional profile ID (UUID)
        properties: Optional dict of event properties
        request_id: Optional request ID for correlating events

    This function never raises exceptions - failures are logged as warnings.
    """
    db = None
    try:
        db = SessionLocal()
        event = EventLog(
            event_name=event_name,
            profile_id=profile_id,
            properties=properties,
            request_id=request_id,
        )
        db.add(event)
        db.commit()

        # Also emit structured log
        log_data = {
            "event_name": event_name,
            "profile_id": str(profile_id) if profile_id else None,
            "request_id": request_id,
            "properties": properties,
        }
        logger.info("event_logged", extra=log_data)
    except (OperationalError, ProgrammingError) as e:
        error_str = str(e).lower()
        if "does not exist" in error_str or "no such table" in error_str:
            logger.warning(
                "event_logs table missing - run alembic upgrade head. "
                "Event logging disabled until migration is applied."
            )
        else:
            logger.warning(
                "Failed to log event (database error): event_name=%s, profile_id=%s, error=%s",
                event_name,
                profile_id,
                str(e),
                exc_info=True,
            )
        if db:
            db.rollback()
    except Exception as e:
        # Never break the request path - log warning and continue
        logger.warning(
            "Failed to log event: event_name=%s, profile_id=%s, error=%s",
            event_name,
            profile_id,
            str(e),
            exc_info=True,
        )
        if db:
            db.rollback()
    finally:
        if db:
            db.close()
