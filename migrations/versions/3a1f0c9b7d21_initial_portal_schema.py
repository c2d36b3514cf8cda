"""initial portal schema: roles, profiles, audit, family members, demands, notifications

Revision ID: 3a1f0c9b7d21
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3a1f0c9b7d21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _ts(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp())


def upgrade() -> None:
    existing_tables = set(inspect(op.get_bind()).get_table_names())

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("key", sa.String(64), nullable=False),
            sa.Column("name", sa.String(128), nullable=False),
            _ts("created_at"),
            sa.UniqueConstraint("key", name="uq_roles_key"),
        )

    if "permissions" not in existing_tables:
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("key", sa.String(128), nullable=False),
            sa.Column("name", sa.String(128), nullable=False),
            _ts("created_at"),
            sa.UniqueConstraint("key", name="uq_permissions_key"),
        )

    if "role_permissions" not in existing_tables:
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("permission_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("role_id", "permission_id"),
        )

    if "profiles" not in existing_tables:
        op.create_table(
            "profiles",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("full_name", sa.String(255), nullable=False),
            sa.Column("phone", sa.String(64), nullable=True),
            sa.Column("role", sa.String(64), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["role"], ["roles.key"], ondelete="RESTRICT"),
            sa.UniqueConstraint("email", name="uq_profiles_email"),
        )

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            _ts("created_at"),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("actor_profile_id", sa.Integer(), nullable=True),
            sa.Column("actor_email", sa.String(320), nullable=True),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("severity", sa.String(16), nullable=False, server_default="info"),
            sa.Column("category", sa.String(64), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["actor_profile_id"], ["profiles.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_audit_events_created_at", "audit_events", ["created_at"])
        op.create_index("idx_audit_events_category", "audit_events", ["category"])

    if "family_members" not in existing_tables:
        op.create_table(
            "family_members",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("owner_user_id", sa.Integer(), nullable=False),
            sa.Column("first_name", sa.String(128), nullable=False),
            sa.Column("last_name", sa.String(128), nullable=False),
            sa.Column("national_id", sa.String(64), nullable=True),
            sa.Column("birth_certificate_ref", sa.String(128), nullable=True),
            sa.Column("date_of_birth", sa.Date(), nullable=True),
            sa.Column("relation", sa.String(32), nullable=False),
            sa.Column("justification_document", _JSON, nullable=True),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["owner_user_id"], ["profiles.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_family_members_owner_relation", "family_members", ["owner_user_id", "relation"])

    if "demands" not in existing_tables:
        op.create_table(
            "demands",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("member_id", sa.Integer(), nullable=False),
            sa.Column("member_name", sa.String(255), nullable=False),
            sa.Column("service_type", sa.String(64), nullable=False),
            sa.Column("beneficiary_name", sa.String(255), nullable=False),
            sa.Column("beneficiary_relation", sa.String(32), nullable=True),
            sa.Column("amount", sa.Numeric(12, 2), nullable=True),
            sa.Column("event_date", sa.Date(), nullable=True),
            sa.Column("justification_document", _JSON, nullable=True),
            sa.Column("payment_info", _JSON, nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="en_attente"),
            sa.Column("controller_id", sa.Integer(), nullable=True),
            sa.Column("controller_name", sa.String(255), nullable=True),
            sa.Column("processing_date", sa.Date(), nullable=True),
            sa.Column("administrator_id", sa.Integer(), nullable=True),
            sa.Column("administrator_name", sa.String(255), nullable=True),
            sa.Column("validation_date", sa.Date(), nullable=True),
            sa.Column("comment", sa.Text(), nullable=True),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["member_id"], ["profiles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["controller_id"], ["profiles.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["administrator_id"], ["profiles.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_demands_member_created", "demands", ["member_id", "created_at"])
        op.create_index("idx_demands_status_created", "demands", ["status", "created_at"])

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("recipient_id", sa.Integer(), nullable=False),
            sa.Column("demand_id", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["recipient_id"], ["profiles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["demand_id"], ["demands.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_notifications_recipient", "notifications", ["recipient_id", "is_read"])


def downgrade() -> None:
    op.drop_index("idx_notifications_recipient", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("idx_demands_status_created", table_name="demands")
    op.drop_index("idx_demands_member_created", table_name="demands")
    op.drop_table("demands")

    op.drop_index("idx_family_members_owner_relation", table_name="family_members")
    op.drop_table("family_members")

    op.drop_index("idx_audit_events_category", table_name="audit_events")
    op.drop_index("idx_audit_events_created_at", table_name="audit_events")
    op.drop_table("audit_events")

    op.drop_table("profiles")
    op.drop_table("role_permissions")
    op.drop_table("permissions")
    op.drop_table("roles")
