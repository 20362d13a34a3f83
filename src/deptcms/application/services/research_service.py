# src/deptcms/application/services/research_service.py
"""
Research publications: authors, journals, research categories and papers.

All methods raise ``DataAccessError`` when the database rejects a call and
``RecordNotFoundError`` when a required row is missing. Paper writes are a
paper row plus author/category join rows:

- default: each step commits on its own and join failures are logged and
  swallowed, so the paper row survives a failed join insert
- ``atomic_paper_writes=True``: paper and joins commit in one transaction
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import delete, extract, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from deptcms.application.errors import DataAccessError, RecordNotFoundError
from deptcms.domain.paper_identity import format_date_parts
from deptcms.domain.research import (
    AUTHOR_FIELDS,
    JOURNAL_FIELDS,
    PAPER_FIELDS,
    RESEARCH_CATEGORY_FIELDS,
    Author,
    Journal,
    PaperAuthorInput,
    PaperStatus,
    RecordStatus,
    ResearchCategory,
    ResearchFilters,
    ResearchPaper,
    ResearchStats,
)
from deptcms.infrastructure.connectors.crossref_connector import CrossrefConnector
from deptcms.infrastructure.stores.models import (
    AuthorModel,
    Base,
    JournalModel,
    PaperAuthorModel,
    PaperCategoryModel,
    ResearchCategoryModel,
    ResearchPaperModel,
)
from deptcms.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url
from deptcms.infrastructure.stores.transforms import (
    author_from_row,
    journal_from_row,
    paper_author_from_row,
    paper_category_from_row,
    paper_from_row,
    research_category_from_row,
)
from deptcms.utils.actor_context import get_current_actor
from deptcms.utils.logging_config import LogFiles, Logger

DEFAULT_PAGE_SIZE = 50
SEARCH_LIMIT = 20


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_fields(data: Mapping[str, Any], allowed: Iterable[str], label: str) -> None:
    unknown = set(data) - set(allowed)
    if unknown:
        raise ValueError(f"unknown {label} field(s): {', '.join(sorted(unknown))}")


def _check_status(data: Mapping[str, Any], status_enum) -> None:
    if data.get("status") is not None:
        status_enum(data["status"])


def _paginate(query, limit: Optional[int], offset: Optional[int]):
    if offset:
        return query.offset(int(offset)).limit(int(limit or DEFAULT_PAGE_SIZE))
    if limit:
        return query.limit(int(limit))
    return query


def _year_start(year: int) -> date:
    return date(int(year), 1, 1)


class ResearchService:
    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        auto_create_schema: bool = True,
        session_provider: Optional[SessionProvider] = None,
        crossref: Optional[CrossrefConnector] = None,
        atomic_paper_writes: bool = False,
        stats_workers: int = 5,
    ):
        self._provider = session_provider or SessionProvider(db_url or get_db_url())
        self.db_url = self._provider.db_url
        self.crossref = crossref or CrossrefConnector()
        self.atomic_paper_writes = atomic_paper_writes
        self.stats_workers = max(1, int(stats_workers))
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)

    # ==========================================================================
    # Authors
    # ==========================================================================

    def get_authors(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Author]:
        query = select(AuthorModel).order_by(AuthorModel.name.asc())
        if status:
            query = query.where(AuthorModel.status == status)
        if search:
            query = query.where(AuthorModel.name.ilike(f"%{search}%"))
        query = _paginate(query, limit, offset)
        return self._fetch_all(query, author_from_row, "authors")

    def get_author(self, author_id: str) -> Author:
        return self._fetch_one(AuthorModel, author_id, author_from_row, "author")

    def create_author(self, data: Mapping[str, Any]) -> Author:
        _check_fields(data, AUTHOR_FIELDS, "author")
        _check_status(data, RecordStatus)
        return self._insert(AuthorModel, data, author_from_row, "author")

    def update_author(self, author_id: str, updates: Mapping[str, Any]) -> Author:
        _check_fields(updates, AUTHOR_FIELDS, "author")
        _check_status(updates, RecordStatus)
        return self._update(AuthorModel, author_id, updates, author_from_row, "author")

    def delete_author(self, author_id: str) -> None:
        self._delete(AuthorModel, author_id, "author")

    def search_authors(self, text: str) -> List[Author]:
        """Active authors whose name, email or affiliation contains ``text``."""
        pattern = f"%{text}%"
        query = (
            select(AuthorModel)
            .where(
                or_(
                    AuthorModel.name.ilike(pattern),
                    AuthorModel.email.ilike(pattern),
                    AuthorModel.affiliation.ilike(pattern),
                ),
                AuthorModel.status == RecordStatus.ACTIVE.value,
            )
            .order_by(AuthorModel.name.asc())
            .limit(SEARCH_LIMIT)
        )
        return self._fetch_all(query, author_from_row, "authors")

    # ==========================================================================
    # Journals
    # ==========================================================================

    def get_journals(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Journal]:
        query = select(JournalModel).order_by(JournalModel.name.asc())
        if status:
            query = query.where(JournalModel.status == status)
        if search:
            query = query.where(JournalModel.name.ilike(f"%{search}%"))
        query = _paginate(query, limit, offset)
        return self._fetch_all(query, journal_from_row, "journals")

    def get_journal(self, journal_id: str) -> Journal:
        return self._fetch_one(JournalModel, journal_id, journal_from_row, "journal")

    def create_journal(self, data: Mapping[str, Any]) -> Journal:
        _check_fields(data, JOURNAL_FIELDS, "journal")
        _check_status(data, RecordStatus)
        return self._insert(JournalModel, data, journal_from_row, "journal")

    def update_journal(self, journal_id: str, updates: Mapping[str, Any]) -> Journal:
        _check_fields(updates, JOURNAL_FIELDS, "journal")
        _check_status(updates, RecordStatus)
        return self._update(JournalModel, journal_id, updates, journal_from_row, "journal")

    def delete_journal(self, journal_id: str) -> None:
        self._delete(JournalModel, journal_id, "journal")

    def search_journals(self, text: str) -> List[Journal]:
        """Active journals matching ``text`` by name or publisher, highest impact first."""
        pattern = f"%{text}%"
        query = (
            select(JournalModel)
            .where(
                or_(JournalModel.name.ilike(pattern), JournalModel.publisher.ilike(pattern)),
                JournalModel.status == RecordStatus.ACTIVE.value,
            )
            .order_by(JournalModel.impact_factor.desc(), JournalModel.name.asc())
            .limit(SEARCH_LIMIT)
        )
        return self._fetch_all(query, journal_from_row, "journals")

    # ==========================================================================
    # Research categories
    # ==========================================================================

    def get_research_categories(self) -> List[ResearchCategory]:
        query = (
            select(ResearchCategoryModel)
            .where(ResearchCategoryModel.status == RecordStatus.ACTIVE.value)
            .order_by(ResearchCategoryModel.name.asc())
        )
        return self._fetch_all(query, research_category_from_row, "research categories")

    def get_research_category(self, category_id: str) -> ResearchCategory:
        return self._fetch_one(
            ResearchCategoryModel, category_id, research_category_from_row, "research category"
        )

    def create_research_category(self, data: Mapping[str, Any]) -> ResearchCategory:
        _check_fields(data, RESEARCH_CATEGORY_FIELDS, "research category")
        _check_status(data, RecordStatus)
        return self._insert(
            ResearchCategoryModel, data, research_category_from_row, "research category"
        )

    def update_research_category(
        self, category_id: str, updates: Mapping[str, Any]
    ) -> ResearchCategory:
        _check_fields(updates, RESEARCH_CATEGORY_FIELDS, "research category")
        _check_status(updates, RecordStatus)
        return self._update(
            ResearchCategoryModel,
            category_id,
            updates,
            research_category_from_row,
            "research category",
        )

    def delete_research_category(self, category_id: str) -> None:
        self._delete(ResearchCategoryModel, category_id, "research category")

    # ==========================================================================
    # Papers
    # ==========================================================================

    def get_research_papers(self, filters: Optional[ResearchFilters] = None) -> List[ResearchPaper]:
        filters = filters or ResearchFilters()
        paper = ResearchPaperModel
        query = self._paper_query()

        if filters.status:
            query = query.where(paper.status == filters.status)
        if filters.is_featured is not None:
            query = query.where(paper.is_featured == bool(filters.is_featured))
        if filters.journal_id:
            query = query.where(paper.journal_id == filters.journal_id)
        if filters.year:
            query = query.where(
                paper.publication_date >= _year_start(filters.year),
                paper.publication_date < _year_start(filters.year + 1),
            )
        if filters.year_from:
            query = query.where(paper.publication_date >= _year_start(filters.year_from))
        if filters.year_to:
            query = query.where(paper.publication_date < _year_start(filters.year_to + 1))
        if filters.category_id:
            query = query.where(
                paper.id.in_(
                    select(PaperCategoryModel.paper_id).where(
                        PaperCategoryModel.category_id == filters.category_id
                    )
                )
            )
        if filters.author_id:
            query = query.where(
                paper.id.in_(
                    select(PaperAuthorModel.paper_id).where(
                        PaperAuthorModel.author_id == filters.author_id
                    )
                )
            )
        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.where(or_(paper.title.ilike(pattern), paper.abstract.ilike(pattern)))

        query = query.order_by(paper.publication_date.desc(), paper.created_at.desc())
        query = _paginate(query, filters.limit, filters.offset)

        try:
            with self._provider.session() as session:
                return [self._paper_to_model(row) for row in session.execute(query).scalars()]
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to fetch research papers: {exc}") from exc

    def get_research_paper(self, paper_id: str) -> ResearchPaper:
        query = self._paper_query().where(ResearchPaperModel.id == paper_id)
        try:
            with self._provider.session() as session:
                row = session.execute(query).scalars().first()
                paper = self._paper_to_model(row) if row else None
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to fetch research paper: {exc}") from exc
        if paper is None:
            raise RecordNotFoundError("research paper", paper_id)
        return paper

    def create_research_paper(self, data: Mapping[str, Any]) -> ResearchPaper:
        """
        Insert a paper with optional ``authors`` (``PaperAuthorInput`` or
        dicts) and ``category_ids``, then return it with relations loaded.
        """
        fields, authors, category_ids = self._split_paper_payload(data)
        fields = {key: value for key, value in fields.items() if value is not None}
        fields.setdefault("created_by", get_current_actor())
        fields.setdefault("status", PaperStatus.DRAFT.value)
        now = _utcnow()

        if self.atomic_paper_writes:
            try:
                with self._provider.session() as session:
                    row = ResearchPaperModel(
                        **ResearchPaperModel.row_values(fields), created_at=now, updated_at=now
                    )
                    session.add(row)
                    session.flush()
                    paper_id = row.id
                    self._add_author_links(session, paper_id, authors or ())
                    self._add_category_links(session, paper_id, category_ids or ())
                    session.commit()
            except SQLAlchemyError as exc:
                raise DataAccessError(f"Failed to create research paper: {exc}") from exc
        else:
            try:
                with self._provider.session() as session:
                    row = ResearchPaperModel(
                        **ResearchPaperModel.row_values(fields), created_at=now, updated_at=now
                    )
                    session.add(row)
                    session.commit()
                    paper_id = row.id
            except SQLAlchemyError as exc:
                raise DataAccessError(f"Failed to create research paper: {exc}") from exc

            if authors:
                self._best_effort(
                    "adding authors to paper",
                    paper_id,
                    lambda session: self._add_author_links(session, paper_id, authors),
                )
            if category_ids:
                self._best_effort(
                    "adding categories to paper",
                    paper_id,
                    lambda session: self._add_category_links(session, paper_id, category_ids),
                )

        Logger.info(f"Created research paper {paper_id}", file=LogFiles.RESEARCH)
        return self.get_research_paper(paper_id)

    def update_research_paper(self, paper_id: str, updates: Mapping[str, Any]) -> ResearchPaper:
        """
        Update paper fields and rewrite join rows.

        ``authors``/``category_ids`` given (even empty) replace every existing
        join row of that kind; omitted keys leave the joins untouched.
        """
        fields, authors, category_ids = self._split_paper_payload(updates)

        def _apply(session: Session) -> None:
            row = session.get(ResearchPaperModel, paper_id)
            if row is None:
                raise RecordNotFoundError("research paper", paper_id)
            if fields:
                for key, value in ResearchPaperModel.row_values(fields).items():
                    setattr(row, key, value)
                row.updated_at = _utcnow()

        def _replace_authors(session: Session) -> None:
            session.execute(delete(PaperAuthorModel).where(PaperAuthorModel.paper_id == paper_id))
            self._add_author_links(session, paper_id, authors)

        def _replace_categories(session: Session) -> None:
            session.execute(
                delete(PaperCategoryModel).where(PaperCategoryModel.paper_id == paper_id)
            )
            self._add_category_links(session, paper_id, category_ids)

        if self.atomic_paper_writes:
            try:
                with self._provider.session() as session:
                    _apply(session)
                    if authors is not None:
                        _replace_authors(session)
                    if category_ids is not None:
                        _replace_categories(session)
                    session.commit()
            except SQLAlchemyError as exc:
                raise DataAccessError(f"Failed to update research paper: {exc}") from exc
        else:
            try:
                with self._provider.session() as session:
                    _apply(session)
                    session.commit()
            except SQLAlchemyError as exc:
                raise DataAccessError(f"Failed to update research paper: {exc}") from exc

            if authors is not None:
                self._best_effort("replacing paper authors", paper_id, _replace_authors)
            if category_ids is not None:
                self._best_effort("replacing paper categories", paper_id, _replace_categories)

        Logger.info(
            f"Updated research paper {paper_id} fields={sorted(fields)}", file=LogFiles.RESEARCH
        )
        return self.get_research_paper(paper_id)

    def delete_research_paper(self, paper_id: str) -> None:
        """Hard delete; join rows go with it through ON DELETE CASCADE."""
        self._delete(ResearchPaperModel, paper_id, "research paper")

    # ==========================================================================
    # Statistics
    # ==========================================================================

    def get_research_stats(self) -> ResearchStats:
        paper = ResearchPaperModel
        counts: Dict[str, Any] = {
            "total_papers": select(func.count()).select_from(paper),
            "published_papers": select(func.count())
            .select_from(paper)
            .where(paper.status == PaperStatus.PUBLISHED.value),
            "in_review_papers": select(func.count())
            .select_from(paper)
            .where(paper.status == PaperStatus.IN_REVIEW.value),
            "total_authors": select(func.count())
            .select_from(AuthorModel)
            .where(AuthorModel.status == RecordStatus.ACTIVE.value),
            "total_journals": select(func.count())
            .select_from(JournalModel)
            .where(JournalModel.status == RecordStatus.ACTIVE.value),
        }

        try:
            if self._provider.single_connection:
                totals = {name: int(self._scalar(query) or 0) for name, query in counts.items()}
            else:
                with ThreadPoolExecutor(max_workers=self.stats_workers) as pool:
                    futures = {
                        name: pool.submit(self._scalar, query) for name, query in counts.items()
                    }
                    totals = {name: int(f.result() or 0) for name, f in futures.items()}

            year = extract("year", paper.publication_date)
            with self._provider.session() as session:
                citations = session.execute(
                    select(func.coalesce(func.sum(paper.citation_count), 0)).where(
                        paper.citation_count.is_not(None)
                    )
                ).scalar_one()
                by_year = session.execute(
                    select(year, func.count())
                    .where(
                        paper.publication_date.is_not(None),
                        paper.status == PaperStatus.PUBLISHED.value,
                    )
                    .group_by(year)
                ).all()
                by_category = session.execute(
                    select(ResearchCategoryModel.name, func.count(PaperCategoryModel.id))
                    .join(
                        ResearchCategoryModel,
                        ResearchCategoryModel.id == PaperCategoryModel.category_id,
                    )
                    .group_by(ResearchCategoryModel.name)
                ).all()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to fetch research statistics: {exc}") from exc

        papers_by_year = sorted(
            ({"year": int(y), "count": int(c)} for y, c in by_year), key=lambda item: -item["year"]
        )
        papers_by_category = sorted(
            ({"category": name, "count": int(c)} for name, c in by_category if name),
            key=lambda item: (-item["count"], item["category"]),
        )
        return ResearchStats(
            total_citations=int(citations or 0),
            papers_by_year=papers_by_year,
            papers_by_category=papers_by_category,
            **totals,
        )

    # ==========================================================================
    # DOI lookup
    # ==========================================================================

    def lookup_doi(self, doi: str) -> Optional[Dict[str, Any]]:
        """
        Prefill a paper payload from CrossRef metadata.

        Returns ``None`` on any failure (unknown DOI, network, malformed body).
        """
        try:
            work = self.crossref.get_work(doi)
            if not work:
                return None
            titles = work.get("title") or []
            date_parts = ((work.get("published") or {}).get("date-parts") or [None])[0]
            payload: Dict[str, Any] = {
                "title": titles[0] if titles else "",
                "abstract": work.get("abstract") or "",
                "publication_date": format_date_parts(date_parts),
                "doi": work.get("DOI"),
                "volume": work.get("volume"),
                "issue": work.get("issue"),
                "pages": work.get("page"),
                "external_url": work.get("URL"),
            }
        except Exception as exc:
            Logger.warning(f"Error looking up DOI {doi!r}: {exc}", file=LogFiles.RESEARCH)
            return None
        return {key: value for key, value in payload.items() if value is not None}

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _paper_query():
        return select(ResearchPaperModel).options(
            selectinload(ResearchPaperModel.journal),
            selectinload(ResearchPaperModel.authors).selectinload(PaperAuthorModel.author),
            selectinload(ResearchPaperModel.categories).selectinload(PaperCategoryModel.category),
        )

    @staticmethod
    def _paper_to_model(row: ResearchPaperModel) -> ResearchPaper:
        return paper_from_row(
            row.to_row(),
            journal_row=row.journal.to_row() if row.journal else None,
            authors=[
                paper_author_from_row(link.to_row(), link.author.to_row() if link.author else None)
                for link in row.authors
            ],
            categories=[
                paper_category_from_row(
                    link.to_row(), link.category.to_row() if link.category else None
                )
                for link in row.categories
            ],
        )

    @staticmethod
    def _split_paper_payload(
        data: Mapping[str, Any],
    ) -> Tuple[Dict[str, Any], Optional[List[PaperAuthorInput]], Optional[List[str]]]:
        fields = dict(data)
        raw_authors = fields.pop("authors", None)
        raw_categories = fields.pop("category_ids", None)
        _check_fields(fields, PAPER_FIELDS, "research paper")
        _check_status(fields, PaperStatus)

        authors = None
        if raw_authors is not None:
            authors = [PaperAuthorInput.coerce(item) for item in raw_authors]
        category_ids = [str(cid) for cid in raw_categories] if raw_categories is not None else None
        return fields, authors, category_ids

    @staticmethod
    def _add_author_links(
        session: Session, paper_id: str, authors: Sequence[PaperAuthorInput]
    ) -> None:
        now = _utcnow()
        for author in authors:
            session.add(
                PaperAuthorModel(
                    paper_id=paper_id,
                    author_id=author.author_id,
                    author_order=author.author_order,
                    is_corresponding=author.is_corresponding,
                    created_at=now,
                )
            )
        session.flush()

    @staticmethod
    def _add_category_links(session: Session, paper_id: str, category_ids: Sequence[str]) -> None:
        now = _utcnow()
        for category_id in category_ids:
            session.add(
                PaperCategoryModel(paper_id=paper_id, category_id=category_id, created_at=now)
            )
        session.flush()

    def _best_effort(self, step: str, paper_id: str, work: Callable[[Session], None]) -> None:
        """Run one join-row step in its own transaction; failures are logged only."""
        try:
            with self._provider.session() as session:
                work(session)
                session.commit()
        except SQLAlchemyError as exc:
            Logger.error(f"Error {step} {paper_id}: {exc}", file=LogFiles.RESEARCH)

    def _scalar(self, query) -> Any:
        with self._provider.session() as session:
            return session.execute(query).scalar_one()

    def _fetch_all(self, query, to_model: Callable, label: str) -> List[Any]:
        try:
            with self._provider.session() as session:
                return [to_model(row.to_row()) for row in session.execute(query).scalars()]
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to fetch {label}: {exc}") from exc

    def _fetch_one(self, model, record_id: str, to_model: Callable, label: str) -> Any:
        try:
            with self._provider.session() as session:
                row = session.get(model, record_id)
                data = row.to_row() if row else None
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to fetch {label}: {exc}") from exc
        if data is None:
            raise RecordNotFoundError(label, record_id)
        return to_model(data)

    def _insert(self, model, data: Mapping[str, Any], to_model: Callable, label: str) -> Any:
        now = _utcnow()
        try:
            with self._provider.session() as session:
                values = {key: value for key, value in data.items() if value is not None}
                row = model(**model.row_values(values), created_at=now, updated_at=now)
                session.add(row)
                session.commit()
                created = row.to_row()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to create {label}: {exc}") from exc
        Logger.info(f"Created {label} {created['id']}", file=LogFiles.RESEARCH)
        return to_model(created)

    def _update(
        self, model, record_id: str, updates: Mapping[str, Any], to_model: Callable, label: str
    ) -> Any:
        try:
            with self._provider.session() as session:
                row = session.get(model, record_id)
                if row is None:
                    raise RecordNotFoundError(label, record_id)
                for key, value in model.row_values(updates).items():
                    setattr(row, key, value)
                row.updated_at = _utcnow()
                session.commit()
                updated = row.to_row()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to update {label}: {exc}") from exc
        return to_model(updated)

    def _delete(self, model, record_id: str, label: str) -> None:
        try:
            with self._provider.session() as session:
                session.execute(delete(model).where(model.id == record_id))
                session.commit()
        except SQLAlchemyError as exc:
            raise DataAccessError(f"Failed to delete {label}: {exc}") from exc
        Logger.info(f"Deleted {label} {record_id}", file=LogFiles.RESEARCH)
