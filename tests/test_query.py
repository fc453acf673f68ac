"""Listing: visibility, search, category filter, sorting and pagination."""

from __future__ import annotations

import pytest

from bookstore.errors import ValidationError
from bookstore.services.catalog import create_book, soft_delete_book
from bookstore.services.query import list_books
from factories import book_draft


@pytest.fixture
def seed_books(db_session, make_user):
    async def _seed():
        owner = await make_user("owner")
        books = {}
        for title, author, category, price, description in [
            ("Dune", "Frank Herbert", "Science Fiction", 9.99, "Desert planet politics"),
            ("Emma", "Jane Austen", "Romance", 5.5, "Matchmaking gone wrong"),
            ("Neuromancer", "William Gibson", "Science Fiction", 12.0, "Cyberspace heist"),
            ("Cosmos", "Carl Sagan", "Science", 20.0, None),
        ]:
            books[title] = await create_book(
                db_session,
                book_draft(title=title, author=author, category=category, price=price, description=description),
                owner,
            )
        return owner, books

    return _seed


@pytest.mark.asyncio
async def test_default_listing_is_newest_first(db_session, seed_books):
    await seed_books()
    page = await list_books(db_session)

    assert [b.title for b in page.items] == ["Cosmos", "Neuromancer", "Emma", "Dune"]
    assert page.total == 4
    assert page.total_pages == 1


@pytest.mark.asyncio
async def test_pagination_over_thirty_books(db_session, make_user):
    owner = await make_user("owner")
    for i in range(30):
        await create_book(db_session, book_draft(title=f"Book {i:02d}"), owner)

    third = await list_books(db_session, page=3, page_size=12)
    assert len(third.items) == 6
    assert third.total == 30
    assert third.total_pages == 3

    fourth = await list_books(db_session, page=4, page_size=12)
    assert fourth.items == []
    assert fourth.total_pages == 3


@pytest.mark.asyncio
async def test_pages_do_not_overlap(db_session, make_user):
    owner = await make_user("owner")
    for i in range(7):
        # Identical sort keys force the id tie-breaker
        await create_book(db_session, book_draft(title=f"Same {i}", price=1.0), owner)

    seen = []
    for page_number in (1, 2, 3):
        page = await list_books(db_session, page=page_number, page_size=3, sort_by="price", sort_order="asc")
        seen.extend(b.id for b in page.items)
    assert len(seen) == 7
    assert len(set(seen)) == 7


@pytest.mark.asyncio
async def test_soft_deleted_books_never_listed(db_session, seed_books):
    owner, books = await seed_books()
    await soft_delete_book(db_session, books["Cosmos"].id, owner)

    page = await list_books(db_session)
    assert "Cosmos" not in [b.title for b in page.items]
    assert page.total == 3
    assert "Science" not in page.categories


@pytest.mark.asyncio
async def test_search_matches_title_author_and_description(db_session, seed_books):
    await seed_books()

    assert [b.title for b in (await list_books(db_session, search="dune")).items] == ["Dune"]
    assert [b.title for b in (await list_books(db_session, search="AUSTEN")).items] == ["Emma"]
    assert [b.title for b in (await list_books(db_session, search="cyberspace")).items] == ["Neuromancer"]


@pytest.mark.asyncio
async def test_search_any_term_matches(db_session, seed_books):
    await seed_books()
    page = await list_books(db_session, search="sagan gibson", sort_by="title", sort_order="asc")
    assert [b.title for b in page.items] == ["Cosmos", "Neuromancer"]


@pytest.mark.asyncio
async def test_search_wildcards_are_literal(db_session, seed_books):
    await seed_books()
    page = await list_books(db_session, search="%")
    assert page.items == []
    assert page.total == 0


@pytest.mark.asyncio
async def test_category_filter_and_distinct_categories(db_session, seed_books):
    await seed_books()
    page = await list_books(db_session, category="Science Fiction", sort_by="title", sort_order="asc")

    assert [b.title for b in page.items] == ["Dune", "Neuromancer"]
    assert page.total == 2
    # Independent of the active filter
    assert page.categories == ["Romance", "Science", "Science Fiction"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "sort_by,sort_order,expected",
    [
        ("price", "asc", ["Emma", "Dune", "Neuromancer", "Cosmos"]),
        ("price", "desc", ["Cosmos", "Neuromancer", "Dune", "Emma"]),
        ("title", "asc", ["Cosmos", "Dune", "Emma", "Neuromancer"]),
        ("author", "desc", ["William Gibson", "Jane Austen", "Frank Herbert", "Carl Sagan"]),
    ],
)
async def test_sorting(db_session, seed_books, sort_by, sort_order, expected):
    await seed_books()
    page = await list_books(db_session, sort_by=sort_by, sort_order=sort_order)
    key = "author" if sort_by == "author" else "title"
    assert [getattr(b, key) for b in page.items] == expected


@pytest.mark.asyncio
async def test_invalid_sort_arguments(db_session):
    with pytest.raises(ValidationError):
        await list_books(db_session, sort_by="password")
    with pytest.raises(ValidationError):
        await list_books(db_session, sort_order="sideways")
    with pytest.raises(ValidationError):
        await list_books(db_session, page=0)


@pytest.mark.asyncio
async def test_empty_catalog(db_session):
    page = await list_books(db_session)
    assert page.items == []
    assert page.total == 0
    assert page.total_pages == 0
    assert page.categories == []
