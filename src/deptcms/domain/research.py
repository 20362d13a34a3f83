# src/deptcms/domain/research.py
"""
Research publication domain models.

Contains:
- Author, Journal, ResearchCategory: lookup entities
- ResearchPaper: a publication with its journal, ordered authors and categories
- PaperAuthor / PaperCategory: join rows with their nested entity
- PaperAuthorInput: author assignment supplied when writing a paper
- ResearchFilters / ResearchStats: listing filters and dashboard aggregates
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class RecordStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class PaperStatus(str, Enum):
    DRAFT = "draft"
    IN_REVIEW = "in-review"
    PUBLISHED = "published"
    REJECTED = "rejected"


AUTHOR_FIELDS = frozenset(
    {"name", "email", "affiliation", "orcid_id", "bio", "website_url", "photo_url", "status"}
)
JOURNAL_FIELDS = frozenset(
    {"name", "publisher", "impact_factor", "issn", "website_url", "description", "status"}
)
RESEARCH_CATEGORY_FIELDS = frozenset({"name", "description", "color", "status"})
PAPER_FIELDS = frozenset(
    {
        "title",
        "abstract",
        "publication_date",
        "doi",
        "journal_id",
        "volume",
        "issue",
        "pages",
        "pdf_url",
        "external_url",
        "status",
        "citation_count",
        "is_featured",
        "keywords",
        "created_by",
    }
)


@dataclass
class Author:
    id: str
    name: str
    status: str
    created_at: str
    updated_at: str
    email: Optional[str] = None
    affiliation: Optional[str] = None
    orcid_id: Optional[str] = None
    bio: Optional[str] = None
    website_url: Optional[str] = None
    photo_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Journal:
    id: str
    name: str
    status: str
    created_at: str
    updated_at: str
    publisher: Optional[str] = None
    impact_factor: Optional[float] = None
    issn: Optional[str] = None
    website_url: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ResearchCategory:
    id: str
    name: str
    color: str
    status: str
    created_at: str
    updated_at: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PaperAuthor:
    id: str
    paper_id: str
    author_id: str
    author: Optional[Author]
    author_order: int
    is_corresponding: bool
    created_at: str


@dataclass
class PaperCategory:
    id: str
    paper_id: str
    category_id: str
    category: Optional[ResearchCategory]
    created_at: str


@dataclass
class ResearchPaper:
    id: str
    title: str
    status: str
    citation_count: Optional[int]
    is_featured: bool
    created_at: str
    updated_at: str
    abstract: Optional[str] = None
    publication_date: Optional[str] = None
    doi: Optional[str] = None
    journal_id: Optional[str] = None
    journal: Optional[Journal] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    pages: Optional[str] = None
    pdf_url: Optional[str] = None
    external_url: Optional[str] = None
    keywords: Optional[List[str]] = None
    created_by: Optional[str] = None
    authors: List[PaperAuthor] = field(default_factory=list)
    categories: List[PaperCategory] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PaperAuthorInput:
    author_id: str
    author_order: int
    is_corresponding: bool = False

    @classmethod
    def coerce(cls, value: Any) -> "PaperAuthorInput":
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            return cls(
                author_id=str(value["author_id"]),
                author_order=int(value.get("author_order") or 0),
                is_corresponding=bool(value.get("is_corresponding") or False),
            )
        raise TypeError(f"unsupported author assignment: {value!r}")


@dataclass
class ResearchFilters:
    status: Optional[str] = None
    is_featured: Optional[bool] = None
    journal_id: Optional[str] = None
    category_id: Optional[str] = None
    author_id: Optional[str] = None
    year: Optional[int] = None
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    search: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None


@dataclass
class ResearchStats:
    total_papers: int = 0
    published_papers: int = 0
    in_review_papers: int = 0
    total_citations: int = 0
    total_authors: int = 0
    total_journals: int = 0
    papers_by_year: List[Dict[str, int]] = field(default_factory=list)
    papers_by_category: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
