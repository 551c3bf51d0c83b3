"""Create bundle cache tables

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "a1c2e3f4b5d6"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "bundles",
        sa.Column("bundle_id", sa.Integer(), autoincrement=False, primary_key=True),
        sa.Column("removed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("last_update", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("queued_for_update", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("idx_bundles_queued_last_update", "bundles", ["queued_for_update", "last_update"])

    op.create_table(
        "bundle_names",
        sa.Column(
            "bundle_id",
            sa.Integer(),
            sa.ForeignKey("bundles.bundle_id", ondelete="CASCADE"),
            autoincrement=False,
            primary_key=True,
        ),
        sa.Column("name", sa.String(512), nullable=False),
    )

    op.create_table(
        "bundle_apps",
        sa.Column(
            "bundle_id",
            sa.Integer(),
            sa.ForeignKey("bundles.bundle_id", ondelete="CASCADE"),
            autoincrement=False,
            primary_key=True,
        ),
        sa.Column("app_id", sa.Integer(), autoincrement=False, primary_key=True),
    )
    op.create_index("idx_bundle_apps_app", "bundle_apps", ["app_id"])


def downgrade():
    op.drop_index("idx_bundle_apps_app", table_name="bundle_apps")
    op.drop_table("bundle_apps")
    op.drop_table("bundle_names")
    op.drop_index("idx_bundles_queued_last_update", table_name="bundles")
    op.drop_table("bundles")
