"""
ResearchService integration tests.

Covers lookup entities, paper writes in both transaction modes, listing
filters, dashboard statistics and the DOI prefill.
"""

import pytest
import requests

from deptcms.application.errors import DataAccessError, RecordNotFoundError
from deptcms.application.services.research_service import ResearchService
from deptcms.domain.research import PaperAuthorInput, ResearchFilters

MISSING_ID = "00000000-0000-0000-0000-000000000000"


class _FakeCrossref:
    def __init__(self, work=None, error=None):
        self.work = work
        self.error = error
        self.calls = []

    def get_work(self, doi):
        self.calls.append(doi)
        if self.error is not None:
            raise self.error
        return self.work


@pytest.fixture
def research(db_url):
    return ResearchService(db_url=db_url, crossref=_FakeCrossref())


@pytest.fixture
def people(research):
    return {
        "rao": research.create_author(
            {"name": "Meera Rao", "email": "mrao@aiesr.edu", "affiliation": "AIESR"}
        ),
        "pierce": research.create_author({"name": "Alan Pierce", "affiliation": "Leeds"}),
        "old": research.create_author({"name": "Ada Retired", "status": "inactive"}),
    }


class TestLookupEntities:
    def test_author_crud(self, research):
        author = research.create_author({"name": "Kavya Sen", "orcid_id": "0000-0002-1825-0097"})
        assert author.status == "active"
        assert author.email is None

        updated = research.update_author(author.id, {"affiliation": "Delhi University"})
        assert updated.affiliation == "Delhi University"
        assert research.get_author(author.id).orcid_id == "0000-0002-1825-0097"

        research.delete_author(author.id)
        with pytest.raises(RecordNotFoundError):
            research.get_author(author.id)

    def test_author_validation_happens_before_writes(self, research):
        with pytest.raises(ValueError):
            research.create_author({"name": "X", "status": "retired"})
        with pytest.raises(ValueError):
            research.create_author({"name": "X", "twitter": "@x"})
        assert research.get_authors() == []

    def test_update_missing_author_raises(self, research):
        with pytest.raises(RecordNotFoundError):
            research.update_author(MISSING_ID, {"name": "Nobody"})

    def test_author_listing_and_search(self, research, people):
        assert [a.name for a in research.get_authors()] == [
            "Ada Retired",
            "Alan Pierce",
            "Meera Rao",
        ]
        assert [a.name for a in research.get_authors(status="active", limit=1)] == ["Alan Pierce"]
        assert [a.name for a in research.get_authors(offset=1)] == ["Alan Pierce", "Meera Rao"]
        assert [a.name for a in research.search_authors("aiesr")] == ["Meera Rao"]
        assert research.search_authors("retired") == []

    def test_journal_search_orders_by_impact(self, research):
        research.create_journal({"name": "Victorian Studies", "impact_factor": 0.4})
        research.create_journal(
            {"name": "Review of English Studies", "publisher": "OUP", "impact_factor": 0.9}
        )
        research.create_journal({"name": "Studies Archive", "status": "inactive"})

        assert [j.name for j in research.search_journals("studies")] == [
            "Review of English Studies",
            "Victorian Studies",
        ]
        assert [j.name for j in research.search_journals("oup")] == ["Review of English Studies"]

    def test_research_categories_list_active_only(self, research):
        research.create_research_category({"name": "Postcolonial", "color": "#10B981"})
        research.create_research_category({"name": "Linguistics"})
        hidden = research.create_research_category({"name": "Archived", "status": "inactive"})

        assert [c.name for c in research.get_research_categories()] == [
            "Linguistics",
            "Postcolonial",
        ]
        assert research.get_research_category(hidden.id).color == "#3B82F6"


class TestPaperWrites:
    def test_create_with_authors_and_categories(self, research, people):
        category = research.create_research_category({"name": "Modernism"})

        paper = research.create_research_paper(
            {
                "title": "Streams of Consciousness",
                "publication_date": "2023-05-01",
                "authors": [
                    PaperAuthorInput(author_id=people["pierce"].id, author_order=2),
                    {
                        "author_id": people["rao"].id,
                        "author_order": 1,
                        "is_corresponding": True,
                    },
                ],
                "category_ids": [category.id],
            }
        )

        assert paper.status == "draft"
        assert paper.citation_count == 0
        assert [link.author.name for link in paper.authors] == ["Meera Rao", "Alan Pierce"]
        assert paper.authors[0].is_corresponding is True
        assert [link.category.name for link in paper.categories] == ["Modernism"]

    def test_failed_category_join_keeps_paper(self, research, people):
        paper = research.create_research_paper(
            {
                "title": "Partial Write",
                "authors": [
                    {"author_id": people["rao"].id, "author_order": 1},
                    {"author_id": people["pierce"].id, "author_order": 2},
                ],
                "category_ids": [MISSING_ID],
            }
        )

        fetched = research.get_research_paper(paper.id)
        assert fetched.title == "Partial Write"
        assert len(fetched.authors) == 2
        assert fetched.categories == []

    def test_atomic_mode_rolls_back_paper(self, db_url, people):
        atomic = ResearchService(
            db_url=db_url, crossref=_FakeCrossref(), atomic_paper_writes=True
        )

        with pytest.raises(DataAccessError):
            atomic.create_research_paper(
                {
                    "title": "All Or Nothing",
                    "authors": [{"author_id": people["rao"].id, "author_order": 1}],
                    "category_ids": [MISSING_ID],
                }
            )

        assert atomic.get_research_papers() == []

    def test_update_replaces_given_joins_only(self, research, people):
        first = research.create_research_category({"name": "Drama"})
        second = research.create_research_category({"name": "Poetry"})
        paper = research.create_research_paper(
            {
                "title": "Stagecraft",
                "authors": [{"author_id": people["rao"].id, "author_order": 1}],
                "category_ids": [first.id],
            }
        )

        updated = research.update_research_paper(
            paper.id, {"status": "published", "category_ids": [second.id]}
        )
        assert updated.status == "published"
        assert [link.author_id for link in updated.authors] == [people["rao"].id]
        assert [link.category_id for link in updated.categories] == [second.id]

        cleared = research.update_research_paper(paper.id, {"authors": []})
        assert cleared.authors == []
        assert [link.category_id for link in cleared.categories] == [second.id]

    def test_update_missing_paper_raises(self, research):
        with pytest.raises(RecordNotFoundError):
            research.update_research_paper(MISSING_ID, {"title": "Ghost"})

    def test_invalid_paper_status_rejected(self, research):
        with pytest.raises(ValueError):
            research.create_research_paper({"title": "Bad", "status": "accepted"})

    def test_delete_cascades_joins(self, research, people):
        paper = research.create_research_paper(
            {"title": "Gone", "authors": [{"author_id": people["rao"].id, "author_order": 1}]}
        )

        research.delete_research_paper(paper.id)

        with pytest.raises(RecordNotFoundError):
            research.get_research_paper(paper.id)
        assert research.get_research_papers(ResearchFilters(author_id=people["rao"].id)) == []


class TestPaperQueries:
    @pytest.fixture
    def catalogue(self, research, people):
        journal = research.create_journal({"name": "Textual Practice"})
        theory = research.create_research_category({"name": "Theory"})
        drama = research.create_research_category({"name": "Drama"})
        papers = {
            "a": research.create_research_paper(
                {
                    "title": "Reading Rushdie",
                    "abstract": "Magic realism and migration",
                    "publication_date": "2021-03-01",
                    "status": "published",
                    "journal_id": journal.id,
                    "citation_count": 12,
                    "authors": [{"author_id": people["rao"].id, "author_order": 1}],
                    "category_ids": [theory.id],
                }
            ),
            "b": research.create_research_paper(
                {
                    "title": "Beckett's Silences",
                    "publication_date": "2023-09-15",
                    "status": "published",
                    "is_featured": True,
                    "citation_count": 3,
                    "category_ids": [theory.id, drama.id],
                }
            ),
            "c": research.create_research_paper(
                {
                    "title": "Notes on Migration",
                    "publication_date": "2023-01-10",
                    "status": "in-review",
                    "authors": [{"author_id": people["pierce"].id, "author_order": 1}],
                }
            ),
            "d": research.create_research_paper({"title": "Undated Draft"}),
        }
        return {"journal": journal, "theory": theory, "drama": drama, **papers}

    def _titles(self, research, **filters):
        return [p.title for p in research.get_research_papers(ResearchFilters(**filters))]

    def test_filters(self, research, people, catalogue):
        assert self._titles(research, status="published") == [
            "Beckett's Silences",
            "Reading Rushdie",
        ]
        assert self._titles(research, is_featured=True) == ["Beckett's Silences"]
        assert self._titles(research, journal_id=catalogue["journal"].id) == ["Reading Rushdie"]
        assert self._titles(research, category_id=catalogue["drama"].id) == ["Beckett's Silences"]
        assert self._titles(research, author_id=people["pierce"].id) == ["Notes on Migration"]
        assert self._titles(research, year=2023) == ["Beckett's Silences", "Notes on Migration"]
        assert self._titles(research, year_from=2022, year_to=2023) == [
            "Beckett's Silences",
            "Notes on Migration",
        ]
        assert self._titles(research, search="migration") == [
            "Notes on Migration",
            "Reading Rushdie",
        ]
        assert self._titles(research, status="published", offset=1) == ["Reading Rushdie"]

    def test_stats(self, research, people, catalogue):
        stats = research.get_research_stats()

        assert stats.total_papers == 4
        assert stats.published_papers == 2
        assert stats.in_review_papers == 1
        assert stats.total_citations == 15
        assert stats.total_authors == 2
        assert stats.total_journals == 1
        assert stats.papers_by_year == [{"year": 2023, "count": 1}, {"year": 2021, "count": 1}]
        assert stats.papers_by_category == [
            {"category": "Theory", "count": 2},
            {"category": "Drama", "count": 1},
        ]

    def test_stats_on_empty_tables(self, research):
        stats = research.get_research_stats()

        assert stats.total_papers == 0
        assert stats.total_citations == 0
        assert stats.papers_by_year == []
        assert stats.papers_by_category == []

    def test_stats_on_in_memory_database(self):
        research = ResearchService(db_url="sqlite:///:memory:", crossref=_FakeCrossref())
        research.create_author({"name": "Meera Rao"})
        research.create_research_paper(
            {
                "title": "Reading Rushdie",
                "publication_date": "2024-02-01",
                "status": "published",
                "citation_count": 4,
            }
        )

        stats = research.get_research_stats()

        assert stats.total_authors == 1
        assert stats.total_papers == 1
        assert stats.published_papers == 1
        assert stats.total_citations == 4
        assert stats.papers_by_year == [{"year": 2024, "count": 1}]


class TestDoiLookup:
    def test_maps_crossref_work(self, db_url):
        crossref = _FakeCrossref(
            work={
                "title": ["Reading Rushdie Again"],
                "published": {"date-parts": [[2022, 7]]},
                "DOI": "10.1093/res/hgz001",
                "volume": "73",
                "page": "101-120",
                "URL": "https://doi.org/10.1093/res/hgz001",
            }
        )
        research = ResearchService(db_url=db_url, crossref=crossref)

        assert research.lookup_doi("10.1093/RES/HGZ001") == {
            "title": "Reading Rushdie Again",
            "abstract": "",
            "publication_date": "2022-07-01",
            "doi": "10.1093/res/hgz001",
            "volume": "73",
            "pages": "101-120",
            "external_url": "https://doi.org/10.1093/res/hgz001",
        }
        assert crossref.calls == ["10.1093/RES/HGZ001"]

    def test_unknown_doi_returns_none(self, research):
        assert research.lookup_doi("10.1000/missing") is None

    def test_network_failure_returns_none(self, db_url):
        crossref = _FakeCrossref(error=requests.ConnectionError("offline"))
        research = ResearchService(db_url=db_url, crossref=crossref)

        assert research.lookup_doi("10.1000/xyz") is None
