"""Add links and custom_domains tables

Revision ID: 0001_custom_domains
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_custom_domains"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "links",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("code", sa.String(64), nullable=False, unique=True),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_links_owner_id", "links", ["owner_id"])

    op.create_table(
        "custom_domains",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column(
            "distribution_id",
            sa.String(64),
            sa.ForeignKey("links.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("hostname", sa.String(253), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending_dns"),
        sa.Column("verification_method", sa.String(16), nullable=False, server_default="txt"),
        sa.Column("verification_token", sa.String(64), nullable=False),
        sa.Column("cf_hostname_id", sa.String(64), nullable=True),
        sa.Column("dns_target", sa.String(253), nullable=False),
        sa.Column("txt_name", sa.String(253), nullable=True),
        sa.Column("txt_value", sa.String(255), nullable=True),
        sa.Column("last_error", sa.String(1024), nullable=True),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("hostname", name="uq_custom_domains_hostname"),
    )
    op.create_index("ix_custom_domains_owner_id", "custom_domains", ["owner_id"])
    op.create_index("ix_custom_domains_distribution_id", "custom_domains", ["distribution_id"])


def downgrade() -> None:
    op.drop_index("ix_custom_domains_distribution_id", table_name="custom_domains")
    op.drop_index("ix_custom_domains_owner_id", table_name="custom_domains")
    op.drop_table("custom_domains")
    op.drop_index("ix_links_owner_id", table_name="links")
    op.drop_table("links")
