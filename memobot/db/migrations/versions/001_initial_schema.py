"""Create memory, classification, relationship and account tables.

Revision ID: 001
Revises:
Create Date: 2025-02-03

Tables: categories, tags, memories, memory_tags, memory_relationships,
link_codes, platform_links
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

EMBEDDING_DIMENSIONS = 512


def upgrade() -> None:
    """Create tables, vector indexes and the generated full-text column."""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "categories",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("color", sa.String(32)),
        sa.Column("memory_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
    )
    op.execute(f"ALTER TABLE categories ADD COLUMN embedding vector({EMBEDDING_DIMENSIONS})")
    op.execute(
        "CREATE UNIQUE INDEX uq_categories_owner_name ON categories (owner_id, lower(name))"
    )

    op.create_table(
        "tags",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("normalized_name", sa.Text, nullable=False),
        sa.Column("usage_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.UniqueConstraint("owner_id", "normalized_name", name="uq_tags_owner_normalized"),
    )
    op.execute(f"ALTER TABLE tags ADD COLUMN embedding vector({EMBEDDING_DIMENSIONS})")
    op.create_index("idx_tags_usage", "tags", ["owner_id", sa.text("usage_count DESC")])

    op.create_table(
        "memories",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("title", sa.Text),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("summary", sa.Text),
        sa.Column(
            "category_id",
            UUID,
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
        ),
        sa.Column("source_channel", sa.String(16)),
        sa.Column("occurred_at", sa.TIMESTAMP(timezone=True)),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("sync_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True)),
        sa.CheckConstraint(
            "source_channel IN ('whatsapp', 'telegram', 'web')",
            name="chk_memories_source_channel",
        ),
        sa.CheckConstraint(
            "sync_status IN ('pending', 'synced', 'conflict')",
            name="chk_memories_sync_status",
        ),
    )
    op.execute(f"ALTER TABLE memories ADD COLUMN embedding vector({EMBEDDING_DIMENSIONS})")
    op.execute(
        """
        ALTER TABLE memories ADD COLUMN fts tsvector GENERATED ALWAYS AS (
            setweight(to_tsvector('english', coalesce(title, '')), 'A') ||
            setweight(to_tsvector('english', content), 'B')
        ) STORED
        """
    )
    op.create_index("idx_memories_owner_created", "memories", ["owner_id", sa.text("created_at DESC")])
    op.create_index("idx_memories_owner_category", "memories", ["owner_id", "category_id"])
    op.execute("CREATE INDEX idx_memories_fts ON memories USING gin (fts)")

    op.create_table(
        "memory_tags",
        sa.Column(
            "memory_id",
            UUID,
            sa.ForeignKey("memories.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "tag_id",
            UUID,
            sa.ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "memory_relationships",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column(
            "memory_a_id",
            UUID,
            sa.ForeignKey("memories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "memory_b_id",
            UUID,
            sa.ForeignKey("memories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("relationship_type", sa.String(32), nullable=False, server_default="related"),
        sa.Column("similarity_score", sa.Numeric(3, 2)),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.CheckConstraint("memory_a_id < memory_b_id", name="chk_relationships_canonical"),
        sa.CheckConstraint(
            "similarity_score BETWEEN 0 AND 1", name="chk_relationships_score"
        ),
        sa.UniqueConstraint(
            "owner_id", "memory_a_id", "memory_b_id", name="uq_relationships_pair"
        ),
    )
    op.create_index("idx_relationships_b", "memory_relationships", ["memory_b_id"])

    for table in ("memories", "categories", "tags"):
        op.execute(
            f"CREATE INDEX idx_{table}_embedding ON {table} "
            "USING hnsw (embedding vector_cosine_ops)"
        )

    op.create_table(
        "link_codes",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("code", sa.String(6), nullable=False),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("used_at", sa.TIMESTAMP(timezone=True)),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("idx_link_codes_lookup", "link_codes", ["channel", "code"])

    op.create_table(
        "platform_links",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("channel_user_id", sa.Text, nullable=False),
        sa.Column("linked_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.UniqueConstraint("channel", "channel_user_id", name="uq_platform_links_identity"),
    )


def downgrade() -> None:
    """Drop all tables created by this revision."""
    for table in (
        "platform_links",
        "link_codes",
        "memory_relationships",
        "memory_tags",
        "memories",
        "tags",
        "categories",
    ):
        op.drop_table(table)
