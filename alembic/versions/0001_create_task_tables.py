"""create contract, task, lease, annotation and review tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

contract_status = sa.Enum(
    "pending", "active", "submitted", "completed", "cancelled", name="contract_status"
)
task_status = sa.Enum("ready", "leased", "submitted", "accepted", "rejected", name="task_status")
review_decision = sa.Enum("accept", "reject", name="review_decision")


def upgrade() -> None:
    op.create_table(
        "contracts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("listing_id", sa.String(64), nullable=False),
        sa.Column("client_user_id", sa.String(128), nullable=False),
        sa.Column("labeler_user_id", sa.String(128), nullable=False),
        sa.Column("status", contract_status, nullable=False),
    )
    op.create_index("ix_contracts_listing_id", "contracts", ["listing_id"])
    op.create_index("ix_contracts_client_user_id", "contracts", ["client_user_id"])
    op.create_index("ix_contracts_labeler_user_id", "contracts", ["labeler_user_id"])

    op.create_table(
        "tasks",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "contract_id",
            sa.String(64),
            sa.ForeignKey("contracts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("asset_id", sa.String(64), nullable=False),
        sa.Column("status", task_status, nullable=False),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("contract_id", "asset_id", name="uq_tasks_contract_asset"),
    )
    op.create_index("ix_tasks_contract_id", "tasks", ["contract_id"])
    op.create_index("ix_tasks_status", "tasks", ["status"])

    op.create_table(
        "task_leases",
        sa.Column(
            "task_id",
            sa.String(64),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("labeler_user_id", sa.String(128), nullable=False),
        sa.Column("lease_token", sa.String(64), nullable=False, unique=True),
        sa.Column("leased_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_task_leases_leased_until", "task_leases", ["leased_until"])

    op.create_table(
        "annotations_raw",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "task_id",
            sa.String(64),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("labeler_user_id", sa.String(128), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_annotations_raw_task_id", "annotations_raw", ["task_id"])

    op.create_table(
        "reviews",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "task_id",
            sa.String(64),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reviewer_user_id", sa.String(128), nullable=False),
        sa.Column("decision", review_decision, nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_reviews_task_id", "reviews", ["task_id"])


def downgrade() -> None:
    op.drop_table("reviews")
    op.drop_table("annotations_raw")
    op.drop_table("task_leases")
    op.drop_table("tasks")
    op.drop_table("contracts")
    bind = op.get_bind()
    for enum in (review_decision, task_status, contract_status):
        enum.drop(bind, checkfirst=True)
