"""create_homepage_tables

Revision ID: a1c4e7f2b9d0
Revises:
Create Date: 2026-10-17

Creates the homepage section, version, schedule and association tables,
plus the minimal product and category catalog they reference.
"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision = "a1c4e7f2b9d0"
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

SECTION_TYPES = (
    "hero_banner",
    "product_carousel",
    "text_block",
    "category_grid",
    "promo_banner",
    "newsletter",
    "custom_html",
)


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("image_url", sa.String(length=1024), nullable=True),
        sa.Column("inventory_count", sa.Integer(), nullable=False),
        sa.Column("is_featured", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_products_id", "products", ["id"], unique=False)

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_categories_id", "categories", ["id"], unique=False)
    op.create_index("ix_categories_slug", "categories", ["slug"], unique=False)

    op.create_table(
        "homepage_sections",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("section_type", sa.Enum(*SECTION_TYPES, name="sectiontype"), nullable=False),
        sa.Column("section_key", sa.String(length=120), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("locale", sa.String(length=10), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("draft", "published", "archived", name="sectionstatus"),
            nullable=False,
        ),
        sa.Column("published_version_id", sa.Integer(), nullable=True),
        sa.Column("draft_version_id", sa.Integer(), nullable=True),
        sa.Column("metadata", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("locale", "section_key", name="uq_homepage_section_locale_key"),
    )
    op.create_index("ix_homepage_sections_id", "homepage_sections", ["id"], unique=False)
    op.create_index("ix_homepage_sections_locale", "homepage_sections", ["locale"], unique=False)
    op.create_index(
        "idx_homepage_sections_render",
        "homepage_sections",
        ["locale", "is_active", "status", "display_order"],
        unique=False,
    )

    op.create_table(
        "section_versions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("content", JSONType, nullable=False),
        sa.Column("change_summary", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["section_id"], ["homepage_sections.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("section_id", "version_number", name="uq_section_version_number"),
    )
    op.create_index("ix_section_versions_id", "section_versions", ["id"], unique=False)
    op.create_index(
        "idx_section_versions_history", "section_versions", ["section_id", "version_number"], unique=False
    )

    op.create_table(
        "section_schedules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=True),
        sa.Column("publish_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expire_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "active", "expired", "cancelled", name="schedulestatus"),
            nullable=False,
        ),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "expire_at IS NULL OR publish_at IS NULL OR expire_at > publish_at",
            name="valid_schedule_window",
        ),
        sa.ForeignKeyConstraint(["section_id"], ["homepage_sections.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["version_id"], ["section_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_section_schedules_id", "section_schedules", ["id"], unique=False)
    op.create_index("ix_section_schedules_section_id", "section_schedules", ["section_id"], unique=False)
    op.create_index("idx_section_schedules_pending", "section_schedules", ["status", "publish_at"], unique=False)
    op.create_index("idx_section_schedules_expiry", "section_schedules", ["status", "expire_at"], unique=False)

    op.create_table(
        "section_products",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("metadata", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["section_id"], ["homepage_sections.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("section_id", "product_id", name="uq_section_product"),
    )
    op.create_index("ix_section_products_id", "section_products", ["id"], unique=False)
    op.create_index("idx_section_products_order", "section_products", ["section_id", "display_order"], unique=False)

    op.create_table(
        "section_categories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("metadata", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["section_id"], ["homepage_sections.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("section_id", "category_id", name="uq_section_category"),
    )
    op.create_index("ix_section_categories_id", "section_categories", ["id"], unique=False)
    op.create_index(
        "idx_section_categories_order", "section_categories", ["section_id", "display_order"], unique=False
    )


def downgrade() -> None:
    op.drop_table("section_categories")
    op.drop_table("section_products")
    op.drop_table("section_schedules")
    op.drop_table("section_versions")
    op.drop_table("homepage_sections")
    op.drop_table("categories")
    op.drop_table("products")
    sa.Enum(name="schedulestatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="sectionstatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="sectiontype").drop(op.get_bind(), checkfirst=True)
