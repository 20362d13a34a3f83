from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    return _as_utc(datetime.fromisoformat(text))


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


class Base(DeclarativeBase):
    """
    Declarative base with row conversion.

    A "row" is the wire shape the hosted database returns: a dict keyed by
    column name, timestamps and dates as ISO-8601 strings, JSON columns as
    plain Python values.
    """

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, datetime):
                value = _as_utc(value).isoformat()
            elif isinstance(value, date):
                value = value.isoformat()
            row[column.key] = value
        return row

    @classmethod
    def row_values(cls, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Convert row values to column-typed Python values, dropping unknown keys."""
        columns = cls.__table__.columns
        values: Dict[str, Any] = {}
        for key, value in row.items():
            if key not in columns:
                continue
            column_type = columns[key].type
            if isinstance(column_type, DateTime):
                value = _parse_datetime(value)
            elif isinstance(column_type, Date):
                value = _parse_date(value)
            values[key] = value
        return values

    @classmethod
    def from_row(cls, row: Mapping[str, Any]):
        return cls(**cls.row_values(row))


class AdminUserModel(Base):
    __tablename__ = "admin_users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(256), unique=True)
    name: Mapped[str] = mapped_column(String(256), default="")
    role: Mapped[str] = mapped_column(String(16), default="admin")  # admin/super_admin
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class CategoryModel(Base):
    """Event category lookup (replaces the legacy events.type enum)."""

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(128))
    slug: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color_class: Mapped[str] = mapped_column(String(128), default="bg-gray-100 text-gray-800")
    icon_emoji: Mapped[str] = mapped_column(String(16), default="📅")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


class EventModel(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(512))
    description: Mapped[str] = mapped_column(Text)
    short_description: Mapped[str] = mapped_column(Text)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    location: Mapped[str] = mapped_column(String(512))

    # academic/cultural/research/workshop, superseded by category_id
    type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True, index=True)
    category_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )

    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    poster_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pdf_brochure_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    registration_required: Mapped[bool] = mapped_column(Boolean, default=True)
    registration_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    custom_registration_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    registration_deadline: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    featured: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    speakers: Mapped[Optional[List[str]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    schedule: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    tags: Mapped[Optional[List[str]]] = mapped_column(JSON(none_as_null=True), nullable=True)

    status: Mapped[str] = mapped_column(
        String(16), default="draft", index=True
    )  # draft/published/cancelled/completed
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_by: Mapped[str] = mapped_column(String(64))


class AuthorModel(Base):
    __tablename__ = "authors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(256), index=True)
    email: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    affiliation: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    orcid_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    photo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="active", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class JournalModel(Base):
    __tablename__ = "journals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(512), index=True)
    publisher: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    impact_factor: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    issn: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    website_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="active", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ResearchCategoryModel(Base):
    __tablename__ = "research_categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(256), index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(16), default="#3B82F6")
    status: Mapped[str] = mapped_column(String(16), default="active", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ResearchPaperModel(Base):
    __tablename__ = "research_papers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(Text)
    abstract: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    publication_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    doi: Mapped[Optional[str]] = mapped_column(String(256), nullable=True, index=True)
    journal_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("journals.id", ondelete="SET NULL"), nullable=True, index=True
    )
    volume: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    issue: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    pages: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    pdf_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    external_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), default="draft", index=True
    )  # draft/in-review/published/rejected
    citation_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=0)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    keywords: Mapped[Optional[List[str]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    journal = relationship("JournalModel")
    authors = relationship(
        "PaperAuthorModel",
        order_by="PaperAuthorModel.author_order",
        viewonly=True,
    )
    categories = relationship("PaperCategoryModel", viewonly=True)


class PaperAuthorModel(Base):
    __tablename__ = "paper_authors"
    __table_args__ = (UniqueConstraint("paper_id", "author_id", name="uq_paper_authors_pair"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    paper_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("research_papers.id", ondelete="CASCADE"), index=True
    )
    author_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("authors.id", ondelete="CASCADE"), index=True
    )
    author_order: Mapped[int] = mapped_column(Integer, default=0)
    is_corresponding: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    author = relationship("AuthorModel")


class PaperCategoryModel(Base):
    __tablename__ = "paper_categories"
    __table_args__ = (
        UniqueConstraint("paper_id", "category_id", name="uq_paper_categories_pair"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    paper_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("research_papers.id", ondelete="CASCADE"), index=True
    )
    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("research_categories.id", ondelete="CASCADE"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    category = relationship("ResearchCategoryModel")


class AdminSettingModel(Base):
    """Sparse key/value configuration; ``value`` holds any JSON-compatible setting."""

    __tablename__ = "admin_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    key: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    value: Mapped[Any] = mapped_column(JSON)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(64), default="general", index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


class AdminActivityLogModel(Base):
    """Append-only admin audit trail."""

    __tablename__ = "admin_activity_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    admin_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("admin_users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action: Mapped[str] = mapped_column(String(64), index=True)
    resource_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    resource_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, index=True
    )
