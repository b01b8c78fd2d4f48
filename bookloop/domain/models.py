"""SQLAlchemy ORM models."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from bookloop.domain.enums import BookStatus, TransactionStatus


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    pass


class Book(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    isbn13 = Column(BigInteger, nullable=True, index=True)
    title = Column(String(500), nullable=False, index=True)
    author = Column(String(300), nullable=True)
    description = Column(Text, nullable=True)
    broad_category = Column(String(100), nullable=True)
    image_url = Column(String(1000), nullable=True)
    published_year = Column(Integer, nullable=True)
    num_pages = Column(Integer, nullable=True)
    # Postgres mirrors this into a pgvector column (see the initial migration).
    embedding = Column(JSON(none_as_null=True), nullable=True)
    emotion_joy = Column(Float, default=0.0)
    emotion_sadness = Column(Float, default=0.0)
    emotion_fear = Column(Float, default=0.0)
    emotion_surprise = Column(Float, default=0.0)
    status = Column(
        Enum(BookStatus, name="book_status_enum", values_callable=_enum_values),
        nullable=False,
        default=BookStatus.PENDING_APPROVAL,
        index=True,
    )
    owner_id = Column(Uuid, nullable=True, index=True)
    average_rating = Column(Float, nullable=True)
    ratings_count = Column(Integer, default=0)
    created_at = Column(DateTime, default=utcnow)

    transactions = relationship("Transaction", back_populates="book", lazy="noload", passive_deletes=True)
    reviews = relationship("Review", back_populates="book", lazy="noload", passive_deletes=True)


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, nullable=False, index=True)
    status = Column(
        Enum(TransactionStatus, name="transaction_status_enum", values_callable=_enum_values),
        nullable=False,
        default=TransactionStatus.PENDING,
        index=True,
    )
    approval_date = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)
    extension_requested = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, index=True)

    book = relationship("Book", back_populates="transactions", lazy="selectin")


class Wishlist(Base):
    __tablename__ = "wishlists"
    __table_args__ = (UniqueConstraint("user_id", "book_id", name="uq_wishlist_user_book"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid, nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    book = relationship("Book", lazy="selectin")


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    book = relationship("Book", back_populates="reviews")
