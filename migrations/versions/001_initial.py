"""Create enclaves and audit_log tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None

ENCLAVE_STATUSES = (
    "PENDING_DEPLOY",
    "DEPLOYING",
    "DEPLOYED",
    "PAUSING",
    "PAUSED",
    "RESUMING",
    "PENDING_DESTROY",
    "DESTROYING",
    "DESTROYED",
    "FAILED",
)


def upgrade() -> None:
    op.create_table(
        "enclaves",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column(
            "status",
            sa.Enum(*ENCLAVE_STATUSES, name="enclave_status"),
            nullable=False,
            server_default="PENDING_DEPLOY",
        ),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("owner_id", sa.String(128), nullable=False),
        sa.Column("region", sa.String(50), nullable=False),
        sa.Column("provider_id", sa.String(50), nullable=False),
        sa.Column("provider_config", sa.JSON, nullable=False),
        sa.Column("github_connection", sa.JSON, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_enclaves_status", "enclaves", ["status"])
    op.create_index("ix_enclaves_owner_id", "enclaves", ["owner_id"])
    op.create_index("ix_enclaves_owner_status", "enclaves", ["owner_id", "status"])
    op.create_index("ix_enclaves_status_updated", "enclaves", ["status", "updated_at"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "ts",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "actor_kind",
            sa.Enum("human", "system", name="audit_actor_kind"),
            nullable=False,
        ),
        sa.Column("actor_id", sa.String(128), nullable=False),
        sa.Column(
            "action",
            sa.Enum(
                "created",
                "status_changed",
                "deleted",
                "trigger_failed",
                "trigger_retried",
                name="audit_action",
            ),
            nullable=False,
        ),
        sa.Column("entity_kind", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(128), nullable=False),
        sa.Column("before", sa.JSON, nullable=True),
        sa.Column("after", sa.JSON, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
    )
    op.create_index("ix_audit_log_ts", "audit_log", ["ts"])
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"])
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_entity", "audit_log", ["entity_kind", "entity_id"])
    op.create_index(
        "ix_audit_log_entity_ts", "audit_log", ["entity_kind", "entity_id", "ts"]
    )


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("enclaves")
    sa.Enum(name="audit_action").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="audit_actor_kind").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="enclave_status").drop(op.get_bind(), checkfirst=True)
