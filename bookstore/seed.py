"""
Seed script: populates the database with sample users, books and reviews for demo.
Run: python -m bookstore.seed
"""

from __future__ import annotations

import asyncio
import random
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.auth.password import hash_password
from bookstore.database import Base, async_session, engine
from bookstore.models.user import User, UserRole
from bookstore.schemas.book import BookCreate
from bookstore.schemas.review import ReviewCreate
from bookstore.services.catalog import create_book
from bookstore.services.reviews import add_review

SAMPLE_BOOKS = [
    {
        "title": "Dune",
        "author": "Frank Herbert",
        "category": "Science Fiction",
        "description": "A noble family is entrusted with the desert planet Arrakis.",
        "isbn": "978-0441172719",
        "price": 9.99,
        "stock": 5,
    },
    {
        "title": "The Hobbit",
        "author": "J.R.R. Tolkien",
        "category": "Fantasy",
        "description": "Bilbo Baggins embarks on an unexpected journey.",
        "isbn": "978-0547928227",
        "price": 12.5,
        "stock": 8,
    },
    {
        "title": "Pride and Prejudice",
        "author": "Jane Austen",
        "category": "Romance",
        "description": "The turbulent relationship between Elizabeth Bennet and Mr. Darcy.",
        "isbn": "978-0141439518",
        "price": 7.99,
        "stock": 3,
    },
    {
        "title": "The Hound of the Baskervilles",
        "author": "Arthur Conan Doyle",
        "category": "Mystery",
        "description": "Sherlock Holmes investigates a legendary spectral hound.",
        "isbn": "978-0141034324",
        "price": 6.49,
        "stock": 4,
    },
    {
        "title": "A Brief History of Time",
        "author": "Stephen Hawking",
        "category": "Science",
        "description": "From the Big Bang to black holes, for the general reader.",
        "isbn": "978-0553380163",
        "price": 14.0,
        "stock": 6,
    },
    {
        "title": "Sapiens",
        "author": "Yuval Noah Harari",
        "category": "History",
        "description": "A brief history of humankind.",
        "isbn": "978-0062316097",
        "price": 16.99,
        "stock": 10,
    },
    {
        "title": "The Pragmatic Programmer",
        "author": "David Thomas, Andrew Hunt",
        "category": "Technology",
        "description": "Practical advice for working software developers.",
        "isbn": "978-0135957059",
        "price": 39.99,
        "stock": 2,
    },
    {
        "title": "Meditations",
        "author": "Marcus Aurelius",
        "category": "Philosophy",
        "description": "Private notes of a Roman emperor on Stoic philosophy.",
        "isbn": "978-0812968255",
        "price": 8.75,
        "stock": 7,
    },
    {
        "title": "Salt Fat Acid Heat",
        "author": "Samin Nosrat",
        "category": "Cooking",
        "description": "The four elements of good cooking.",
        "isbn": "978-1476753836",
        "price": 24.0,
        "stock": 0,
    },
    {
        "title": "Steve Jobs",
        "author": "Walter Isaacson",
        "category": "Biography",
        "description": None,
        "isbn": "978-1451648539",
        "price": 18.5,
        "stock": 1,
    },
]

SAMPLE_USERS = [
    {"email": "admin@bookstore.local", "username": "admin", "password": "Admin@123456", "role": UserRole.ADMIN},
    {"email": "alice@example.com", "username": "alice", "password": "Alice@123456", "role": UserRole.USER},
    {"email": "bob@example.com", "username": "bob", "password": "Bob@1234567", "role": UserRole.USER},
    {"email": "carol@example.com", "username": "carol", "password": "Carol@123456", "role": UserRole.USER},
]

REVIEW_COMMENTS = ["Loved it", "Solid read", "Not for me", "Would recommend", None]


async def seed_catalog(session: AsyncSession, rng: Optional[random.Random] = None) -> dict[str, int]:
    """Insert sample users, books and reviews. Returns how many of each were created,
    all zero when the database already holds users."""
    rng = rng or random.Random()

    result = await session.execute(select(User).limit(1))
    if result.scalar_one_or_none():
        return {"users": 0, "books": 0, "reviews": 0}

    users = []
    for u in SAMPLE_USERS:
        user = User(
            email=u["email"],
            username=u["username"],
            hashed_password=hash_password(u["password"]),
            role=u["role"],
        )
        session.add(user)
        users.append(user)
    await session.flush()

    readers = users[1:]
    books = []
    for i, data in enumerate(SAMPLE_BOOKS):
        owner = readers[i % len(readers)]
        books.append(await create_book(session, BookCreate(**data), owner))

    reviews = 0
    for book in books:
        for reader in rng.sample(readers, rng.randint(0, len(readers))):
            review = ReviewCreate(rating=rng.randint(1, 5), comment=rng.choice(REVIEW_COMMENTS))
            await add_review(session, book.id, reader, review)
            reviews += 1

    await session.commit()
    return {"users": len(users), "books": len(books), "reviews": reviews}


async def seed():
    """Seed the database with sample data."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        counts = await seed_catalog(session)

    if not any(counts.values()):
        print("Database already seeded. Skipping.")
        return
    print(f"Created {counts['users']} users, {counts['books']} books, {counts['reviews']} reviews")
    print("Seeding complete!")


def main() -> None:
    asyncio.run(seed())


if __name__ == "__main__":
    main()
