from sqlalchemy import Column, String, Integer, Boolean, DateTime, Float, JSON, Uuid, Index
import uuid
from datetime import datetime
import enum
from sayso.database import Base


class OnboardingStep(str, enum.Enum):
    INTERESTS = "interests"
    SUBCATEGORIES = "subcategories"
    DEAL_BREAKERS = "deal-breakers"
    COMPLETE = "complete"


class BusinessStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    auth_user_id = Column(String, unique=True, index=True, nullable=False)  # Supabase user UUID
    email = Column(String, nullable=True)
    # Stored as plain text: rows written by older clients may hold values outside OnboardingStep
    onboarding_step = Column(String, nullable=True, default=OnboardingStep.INTERESTS.value)
    onboarding_complete = Column(Boolean, nullable=True, default=False)
    interest_ids = Column(JSON, nullable=True)
    subcategory_ids = Column(JSON, nullable=True)
    dealbreaker_ids = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=True, index=True)
    description = Column(String, nullable=True)
    category = Column(String, nullable=True)
    interest_id = Column(String, nullable=True, index=True)
    sub_interest_id = Column(String, nullable=True, index=True)
    address = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    price_range = Column(String, nullable=True)
    average_rating = Column(Float, nullable=True)
    total_reviews = Column(Integer, nullable=True, default=0)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    verified = Column(Boolean, nullable=True, default=False)
    percentiles = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default=BusinessStatus.ACTIVE.value)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_businesses_status_created_at", "status", "created_at"),
    )


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    profile_id = Column(Uuid, nullable=True, index=True)
    event_name = Column(String, nullable=False, index=True)
    properties = Column(JSON, nullable=True)
    request_id = Column(String, nullable=True)
