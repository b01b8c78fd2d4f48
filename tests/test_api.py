"""Integration tests for the BookLoop HTTP API."""

from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from bookloop.api.middleware.auth import create_access_token
from bookloop.database import get_session_factory
from bookloop.domain.enums import BookStatus, Role
from bookloop.main import app
from bookloop.repositories import BookRepository, TransactionRepository

BASE = "http://test"
DESERT = "Desert planet politics, spice trade and a prophecy of rebellion"


def auth(user_id=None, role: Role = Role.USER) -> dict[str, str]:
    token = create_access_token(user_id or uuid4(), role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=BASE) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def user_headers(borrower) -> dict[str, str]:
    return auth(borrower.user_id)


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return auth(admin.user_id, Role.ADMIN)


# ── System & auth ──────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy", "service": "bookloop"}


@pytest.mark.asyncio
async def test_unauthenticated_access(client: AsyncClient):
    resp = await client.get("/rentals")
    assert resp.status_code in (401, 403)


@pytest.mark.asyncio
async def test_invalid_token(client: AsyncClient):
    resp = await client.get("/rentals", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_admin_routes_reject_users(client: AsyncClient, user_headers):
    resp = await client.get("/admin/submissions", headers=user_headers)
    assert resp.status_code == 403


# ── Books ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_submit_moderate_and_browse(client: AsyncClient, user_headers, admin_headers):
    resp = await client.post(
        "/books",
        json={"title": "Dune", "author": "Frank Herbert", "description": DESERT, "isbn13": 9780441013593},
        headers=user_headers,
    )
    assert resp.status_code == 201
    book = resp.json()
    assert book["status"] == "pending_approval"

    resp = await client.get("/books")
    assert resp.json() == []

    resp = await client.get("/admin/submissions", headers=admin_headers)
    assert resp.status_code == 200
    [item] = resp.json()
    assert item["book"]["id"] == book["id"]
    assert item["duplicate"] == {"is_duplicate": False, "reason": ""}

    resp = await client.post(f"/admin/submissions/{book['id']}/approve", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "available"

    resp = await client.get("/books", params={"q": "herbert"})
    assert [b["id"] for b in resp.json()] == [book["id"]]

    resp = await client.get("/books/mine", headers=user_headers)
    assert [b["id"] for b in resp.json()] == [book["id"]]


@pytest.mark.asyncio
async def test_submit_blank_title(client: AsyncClient, user_headers):
    resp = await client.post(
        "/books", json={"title": " ", "author": "A", "description": "B"}, headers=user_headers
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_book_not_found(client: AsyncClient):
    resp = await client.get("/books/999")
    assert resp.status_code == 404
    assert "detail" in resp.json()


# ── Rentals ────────────────────────────────────────


@pytest.mark.asyncio
async def test_rental_lifecycle(client: AsyncClient, add_book, user_headers, admin_headers):
    book = await add_book(description=DESERT, embed=True)

    resp = await client.post(f"/books/{book.id}/rentals", headers=user_headers)
    assert resp.status_code == 201
    rental = resp.json()
    assert rental["status"] == "pending"

    resp = await client.post(f"/books/{book.id}/rentals", headers=user_headers)
    assert resp.status_code == 409

    resp = await client.get("/admin/rentals", headers=admin_headers)
    assert [r["id"] for r in resp.json()] == [rental["id"]]

    resp = await client.post(f"/admin/rentals/{rental['id']}/approve", headers=admin_headers)
    assert resp.status_code == 200
    approved = resp.json()
    assert approved["status"] == "approved"
    assert approved["due_date"] is not None
    assert approved["book"]["status"] == "rented"

    resp = await client.post(f"/rentals/{rental['id']}/extension", headers=user_headers)
    assert resp.json()["extension_requested"] is True
    resp = await client.post(
        f"/admin/rentals/{rental['id']}/extension", json={"approve": True}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.json()["due_date"] > approved["due_date"]

    resp = await client.post(f"/rentals/{rental['id']}/return", headers=user_headers)
    assert resp.json()["status"] == "pending_return"

    resp = await client.post(f"/admin/rentals/{rental['id']}/confirm-return", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "returned"
    assert resp.json()["book"]["status"] == "available"

    resp = await client.post(f"/admin/rentals/{rental['id']}/force-return", headers=admin_headers)
    assert resp.status_code == 409

    resp = await client.post(f"/books/{book.id}/reviews", json={"rating": 4}, headers=user_headers)
    assert resp.status_code == 201
    resp = await client.get(f"/books/{book.id}/reviews")
    assert [r["rating"] for r in resp.json()] == [4]

    resp = await client.get("/rentals", headers=user_headers)
    assert [r["status"] for r in resp.json()] == ["returned"]


@pytest.mark.asyncio
async def test_cancel_request(client: AsyncClient, add_book, user_headers):
    book = await add_book()
    rental = (await client.post(f"/books/{book.id}/rentals", headers=user_headers)).json()

    resp = await client.delete(f"/rentals/{rental['id']}", headers=user_headers)
    assert resp.status_code == 204

    resp = await client.get(f"/rentals/{rental['id']}", headers=user_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_rental_hidden_from_other_users(client: AsyncClient, add_book, user_headers):
    book = await add_book()
    rental = (await client.post(f"/books/{book.id}/rentals", headers=user_headers)).json()
    resp = await client.get(f"/rentals/{rental['id']}", headers=auth())
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_partial_update_reported(client: AsyncClient, add_book, user_headers, admin_headers, monkeypatch):
    book = await add_book()
    rental = (await client.post(f"/books/{book.id}/rentals", headers=user_headers)).json()

    async def broken_set_status(self, book_id, status):
        raise SQLAlchemyError("books table is locked")

    monkeypatch.setattr(BookRepository, "set_status", broken_set_status)

    resp = await client.post(f"/admin/rentals/{rental['id']}/approve", headers=admin_headers)
    assert resp.status_code == 500
    assert resp.json()["transaction_id"] == rental["id"]
    assert resp.json()["book_id"] == book.id


# ── Discovery ──────────────────────────────────────


@pytest.mark.asyncio
async def test_wishlist_and_recommendations(client: AsyncClient, add_book, user_headers):
    seed = await add_book(title="Dune", description=DESERT, embed=True)
    sibling = await add_book(title="Dune Messiah", description=DESERT, embed=True)

    resp = await client.post(f"/books/{seed.id}/wishlist", headers=user_headers)
    assert resp.json() == {"book_id": seed.id, "in_wishlist": True}

    resp = await client.get("/wishlist", headers=user_headers)
    assert [w["book_id"] for w in resp.json()] == [seed.id]

    resp = await client.get("/recommendations/wishlist", headers=user_headers)
    body = resp.json()
    assert body["source_title"] == "Dune"
    assert [r["id"] for r in body["recommendations"]] == [sibling.id]

    resp = await client.get("/recommendations", headers=user_headers)
    feed = resp.json()
    assert feed["wishlist"]["source_title"] == "Dune"
    assert feed["history"] == {"source_title": None, "recommendations": []}


@pytest.mark.asyncio
async def test_search(client: AsyncClient, add_book):
    book = await add_book(description=DESERT, embed=True, emotion_joy=0.2)
    await add_book(title="Hidden", description=DESERT, embed=True, status=BookStatus.REJECTED)

    resp = await client.get("/search", params={"q": DESERT})
    assert resp.status_code == 200
    [match] = resp.json()
    assert match["id"] == book.id
    assert match["match_percent"] == 100

    resp = await client.get("/search", params={"q": DESERT, "joy": 0.5})
    assert resp.json() == []


@pytest.mark.asyncio
async def test_anonymous_home_feed(client: AsyncClient, add_book):
    book = await add_book(ratings_count=10)
    resp = await client.get("/recommendations")
    assert resp.status_code == 200
    assert [b["id"] for b in resp.json()["trending"]] == [book.id]
    assert resp.json()["wishlist"]["recommendations"] == []


@pytest.mark.asyncio
async def test_recommendation_routes_degrade_without_storage(tmp_path, user_headers):
    empty = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    app.dependency_overrides[get_session_factory] = lambda: async_sessionmaker(empty, expire_on_commit=False)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url=BASE) as c:
            resp = await c.get("/recommendations/trending")
            assert resp.status_code == 200
            assert resp.json() == []

            resp = await c.get("/recommendations/history", headers=user_headers)
            assert resp.json() == {"source_title": None, "recommendations": []}
    finally:
        app.dependency_overrides.clear()
        await empty.dispose()


@pytest.mark.asyncio
async def test_storage_failure_before_any_write(client: AsyncClient, add_book, user_headers, admin_headers, monkeypatch):
    book = await add_book()
    rental = (await client.post(f"/books/{book.id}/rentals", headers=user_headers)).json()

    async def broken_transition(self, *args, **kwargs):
        raise SQLAlchemyError("transactions table is locked")

    monkeypatch.setattr(TransactionRepository, "transition", broken_transition)

    resp = await client.post(f"/admin/rentals/{rental['id']}/approve", headers=admin_headers)
    assert resp.status_code == 503
    assert "transaction_id" not in resp.json()


@pytest.mark.asyncio
async def test_wishlist_rejects_unpublished_books(client: AsyncClient, add_book, user_headers):
    draft = await add_book(title="Draft", status=BookStatus.PENDING_APPROVAL)
    resp = await client.post(f"/books/{draft.id}/wishlist", headers=user_headers)
    assert resp.status_code == 404
