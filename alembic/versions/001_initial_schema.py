"""Initial schema.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

BOOK_STATUSES = ("pending_approval", "available", "rented", "rejected")
TRANSACTION_STATUSES = ("pending", "approved", "active", "pending_return", "returned", "rejected")

# The ORM writes embeddings as JSON arrays; the trigger keeps a pgvector copy.
SYNC_EMBEDDING_SQL = """
CREATE OR REPLACE FUNCTION books_sync_embedding_vector() RETURNS trigger
LANGUAGE plpgsql AS $$
BEGIN
    IF NEW.embedding IS NULL
       OR json_typeof(NEW.embedding) <> 'array'
       OR json_array_length(NEW.embedding) = 0 THEN
        NEW.embedding_vector := NULL;
    ELSE
        NEW.embedding_vector := (NEW.embedding::text)::vector;
    END IF;
    RETURN NEW;
END
$$;

CREATE TRIGGER books_embedding_vector
BEFORE INSERT OR UPDATE OF embedding ON books
FOR EACH ROW EXECUTE FUNCTION books_sync_embedding_vector();
"""

HYBRID_SEARCH_SQL = """
CREATE OR REPLACE FUNCTION hybrid_search(
    query_embedding vector,
    min_joy double precision DEFAULT 0,
    min_sadness double precision DEFAULT 0,
    match_threshold double precision DEFAULT 0.3,
    match_count integer DEFAULT 10
)
RETURNS TABLE (
    id integer,
    title varchar,
    author varchar,
    image_url varchar,
    average_rating double precision,
    emotion_joy double precision,
    similarity double precision
)
LANGUAGE sql STABLE AS $$
    SELECT b.id, b.title, b.author, b.image_url, b.average_rating, b.emotion_joy,
           1 - (b.embedding_vector <=> query_embedding) AS similarity
    FROM books AS b
    WHERE b.status IN ('available', 'rented')
      AND b.embedding_vector IS NOT NULL
      AND vector_dims(b.embedding_vector) = vector_dims(query_embedding)
      AND coalesce(b.emotion_joy, 0) >= min_joy
      AND coalesce(b.emotion_sadness, 0) >= min_sadness
      AND 1 - (b.embedding_vector <=> query_embedding) >= match_threshold
    ORDER BY similarity DESC
    LIMIT match_count
$$;
"""


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # Books
    op.create_table(
        "books",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("isbn13", sa.BigInteger, nullable=True, index=True),
        sa.Column("title", sa.String(500), nullable=False, index=True),
        sa.Column("author", sa.String(300), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("broad_category", sa.String(100), nullable=True),
        sa.Column("image_url", sa.String(1000), nullable=True),
        sa.Column("published_year", sa.Integer, nullable=True),
        sa.Column("num_pages", sa.Integer, nullable=True),
        sa.Column("embedding", sa.JSON, nullable=True),
        sa.Column("emotion_joy", sa.Float, server_default="0"),
        sa.Column("emotion_sadness", sa.Float, server_default="0"),
        sa.Column("emotion_fear", sa.Float, server_default="0"),
        sa.Column("emotion_surprise", sa.Float, server_default="0"),
        sa.Column(
            "status",
            postgresql.ENUM(*BOOK_STATUSES, name="book_status_enum", create_type=True),
            nullable=False,
            server_default="pending_approval",
            index=True,
        ),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("average_rating", sa.Float, nullable=True),
        sa.Column("ratings_count", sa.Integer, server_default="0"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.execute("ALTER TABLE books ADD COLUMN embedding_vector vector")
    op.execute(SYNC_EMBEDDING_SQL)

    # Transactions
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "book_id",
            sa.Integer,
            sa.ForeignKey("books.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column(
            "status",
            postgresql.ENUM(*TRANSACTION_STATUSES, name="transaction_status_enum", create_type=True),
            nullable=False,
            server_default="pending",
            index=True,
        ),
        sa.Column("approval_date", sa.DateTime, nullable=True),
        sa.Column("due_date", sa.DateTime, nullable=True),
        sa.Column("returned_at", sa.DateTime, nullable=True),
        sa.Column("extension_requested", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), index=True),
    )
    # Trending reads the newest rows first
    op.create_index("ix_transactions_recent", "transactions", [sa.text("created_at DESC"), sa.text("id DESC")])

    # Wishlists
    op.create_table(
        "wishlists",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column(
            "book_id",
            sa.Integer,
            sa.ForeignKey("books.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "book_id", name="uq_wishlist_user_book"),
    )

    # Reviews
    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "book_id",
            sa.Integer,
            sa.ForeignKey("books.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    op.execute(HYBRID_SEARCH_SQL)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS hybrid_search(vector, double precision, double precision, double precision, integer)")
    op.drop_table("reviews")
    op.drop_table("wishlists")
    op.drop_index("ix_transactions_recent", table_name="transactions")
    op.drop_table("transactions")
    op.execute("DROP TYPE IF EXISTS transaction_status_enum")
    op.execute("DROP TRIGGER IF EXISTS books_embedding_vector ON books")
    op.drop_table("books")
    op.execute("DROP FUNCTION IF EXISTS books_sync_embedding_vector()")
    op.execute("DROP TYPE IF EXISTS book_status_enum")
