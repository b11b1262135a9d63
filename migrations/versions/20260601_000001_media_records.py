from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20260601_000001"
down_revision = None
branch_labels = None
depends_on = None


def _content_table(name: str, *extra: sa.Column) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *extra,
        sa.Column("image_url", sa.String(length=2048), nullable=True),
        sa.Column("published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def upgrade() -> None:
    media_type_enum = sa.Enum("image", "video", name="mediatype")

    op.create_table(
        "media_records",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("file_path", sa.String(length=1024), nullable=False),
        sa.Column("poster_path", sa.String(length=1024), nullable=True),
        sa.Column("folder", sa.String(length=128), nullable=False),
        sa.Column("type", media_type_enum, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("file_path", name="uq_media_records_file_path"),
    )
    op.create_index("ix_media_records_poster_path", "media_records", ["poster_path"])

    _content_table(
        "blog_posts",
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
    )
    _content_table(
        "portfolio_items",
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("featured", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    _content_table(
        "services",
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
    )
    _content_table(
        "testimonials",
        sa.Column("author", sa.String(length=255), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
    )


def downgrade() -> None:
    op.drop_table("testimonials")
    op.drop_table("services")
    op.drop_table("portfolio_items")
    op.drop_table("blog_posts")
    op.drop_index("ix_media_records_poster_path", table_name="media_records")
    op.drop_table("media_records")

    sa.Enum(name="mediatype").drop(op.get_bind(), checkfirst=True)
