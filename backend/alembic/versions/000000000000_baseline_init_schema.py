"""baseline_init_schema

Revision ID: 000000000000
Revises:
Create Date: 2026-02-02 00:00:00.000000

Creates profiles (onboarding marker + selections), businesses (feed catalog)
and event_logs. All other migrations should depend on this revision.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '000000000000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("auth_user_id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        # Plain text, not an enum: the gate tolerates unknown values
        sa.Column("onboarding_step", sa.String(), nullable=True, server_default="interests"),
        sa.Column("onboarding_complete", sa.Boolean(), nullable=True, server_default=sa.false()),
        sa.Column("interest_ids", sa.JSON(), nullable=True),
        sa.Column("subcategory_ids", sa.JSON(), nullable=True),
        sa.Column("dealbreaker_ids", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_profiles_auth_user_id", "profiles", ["auth_user_id"], unique=True)

    op.create_table(
        "businesses",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("interest_id", sa.String(), nullable=True),
        sa.Column("sub_interest_id", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("price_range", sa.String(), nullable=True),
        sa.Column("average_rating", sa.Float(), nullable=True),
        sa.Column("total_reviews", sa.Integer(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=True),
        sa.Column("percentiles", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_businesses_slug", "businesses", ["slug"])
    op.create_index("ix_businesses_interest_id", "businesses", ["interest_id"])
    op.create_index("ix_businesses_sub_interest_id", "businesses", ["sub_interest_id"])
    op.create_index("ix_businesses_status_created_at", "businesses", ["status", "created_at"])

    op.create_table(
        "event_logs",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("profile_id", sa.Uuid(), nullable=True),
        sa.Column("event_name", sa.String(), nullable=False),
        sa.Column("properties", sa.JSON(), nullable=True),
        sa.Column("request_id", sa.String(), nullable=True),
    )
    op.create_index("ix_event_logs_created_at", "event_logs", ["created_at"])
    op.create_index("ix_event_logs_event_name", "event_logs", ["event_name"])
    op.create_index("ix_event_logs_profile_id", "event_logs", ["profile_id"])


def downgrade() -> None:
    op.drop_index("ix_event_logs_profile_id", table_name="event_logs")
    op.drop_index("ix_event_logs_event_name", table_name="event_logs")
    op.drop_index("ix_event_logs_created_at", table_name="event_logs")
    op.drop_table("event_logs")

    op.drop_index("ix_businesses_status_created_at", table_name="businesses")
    op.drop_index("ix_businesses_sub_interest_id", table_name="businesses")
    op.drop_index("ix_businesses_interest_id", table_name="businesses")
    op.drop_index("ix_businesses_slug", table_name="businesses")
    op.drop_table("businesses")

    op.drop_index("ix_profiles_auth_user_id", table_name="profiles")
    op.drop_table("profiles")
