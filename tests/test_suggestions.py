"""
Suggestion box endpoint tests — listing, creation, admin status changes
and the vote endpoints exercised over HTTP.

Accounts come from the ``alice`` / ``bob`` / ``admin`` fixtures; tokens are
minted directly so the tests do not depend on the login flow.
"""
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import create_suggestion


async def _new_suggestion(client: AsyncClient, headers: dict, title: str = "Add dark mode") -> int:
    resp = await client.post(
        "/api/v1/suggestions",
        json={"title": title, "description": "Please."},
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()["id"]


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_suggestions_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/suggestions")
    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.asyncio
async def test_create_suggestion(async_client: AsyncClient, alice, alice_headers):
    resp = await async_client.post(
        "/api/v1/suggestions",
        json={"title": "RSS feed", "description": "For my reader."},
        headers=alice_headers,
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["title"] == "RSS feed"
    assert data["status"] == "pending"
    assert data["upvotes_count"] == 0
    assert data["user_id"] == alice.id
    assert data["has_voted"] is False


@pytest.mark.asyncio
async def test_create_suggestion_requires_login(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/suggestions", json={"title": "RSS feed", "description": "x"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_suggestion_rejects_blank_title(async_client: AsyncClient, alice_headers):
    resp = await async_client.post(
        "/api/v1/suggestions", json={"title": "", "description": "x"}, headers=alice_headers
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_get_suggestion_not_found(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/suggestions/99999")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_invalid_token_rejected(async_client: AsyncClient):
    resp = await async_client.get(
        "/api/v1/suggestions", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Vote lifecycle: cast, second voter, retract
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_vote_lifecycle(async_client: AsyncClient, alice_headers, bob_headers):
    sid = await _new_suggestion(async_client, alice_headers)

    resp = await async_client.post(f"/api/v1/suggestions/{sid}/vote", headers=alice_headers)
    assert resp.status_code == 201
    assert resp.json() == {"suggestion_id": sid, "upvotes_count": 1, "has_voted": True}

    alice_view = (await async_client.get(f"/api/v1/suggestions/{sid}", headers=alice_headers)).json()
    bob_view = (await async_client.get(f"/api/v1/suggestions/{sid}", headers=bob_headers)).json()
    assert alice_view["has_voted"] is True
    assert bob_view["has_voted"] is False

    resp = await async_client.post(f"/api/v1/suggestions/{sid}/vote", headers=bob_headers)
    assert resp.json()["upvotes_count"] == 2

    resp = await async_client.delete(f"/api/v1/suggestions/{sid}/vote", headers=alice_headers)
    assert resp.status_code == 200
    assert resp.json() == {"suggestion_id": sid, "upvotes_count": 1, "has_voted": False}

    anon = (await async_client.get(f"/api/v1/suggestions/{sid}")).json()
    assert anon["upvotes_count"] == 1
    assert anon["has_voted"] is False


# ---------------------------------------------------------------------------
# Retract without a vote
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_retract_without_vote_succeeds(async_client: AsyncClient, alice_headers):
    sid = await _new_suggestion(async_client, alice_headers)

    resp = await async_client.delete(f"/api/v1/suggestions/{sid}/vote", headers=alice_headers)

    assert resp.status_code == 200
    assert resp.json()["upvotes_count"] == 0
    assert resp.json()["has_voted"] is False


@pytest.mark.asyncio
async def test_retract_on_missing_suggestion_succeeds(async_client: AsyncClient, alice_headers):
    resp = await async_client.delete("/api/v1/suggestions/99999/vote", headers=alice_headers)
    assert resp.status_code == 200
    assert resp.json() == {"suggestion_id": 99999, "upvotes_count": 0, "has_voted": False}


# ---------------------------------------------------------------------------
# Double cast
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_double_vote_returns_400(async_client: AsyncClient, alice_headers):
    sid = await _new_suggestion(async_client, alice_headers)
    await async_client.post(f"/api/v1/suggestions/{sid}/vote", headers=alice_headers)

    resp = await async_client.post(f"/api/v1/suggestions/{sid}/vote", headers=alice_headers)

    assert resp.status_code == 400
    assert resp.json()["detail"] == "You have already voted for this suggestion"
    current = (await async_client.get(f"/api/v1/suggestions/{sid}")).json()
    assert current["upvotes_count"] == 1


@pytest.mark.asyncio
async def test_vote_on_missing_suggestion_returns_404(async_client: AsyncClient, alice_headers):
    resp = await async_client.post("/api/v1/suggestions/99999/vote", headers=alice_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_anonymous_vote_rejected(async_client: AsyncClient, alice_headers):
    sid = await _new_suggestion(async_client, alice_headers)

    cast = await async_client.post(f"/api/v1/suggestions/{sid}/vote")
    retract = await async_client.delete(f"/api/v1/suggestions/{sid}/vote")

    assert cast.status_code == 401
    assert retract.status_code == 401
    assert cast.headers.get("www-authenticate") == "Bearer"


# ---------------------------------------------------------------------------
# Listing order and has_voted
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_listing_orders_by_votes_then_newest(
    async_client: AsyncClient, db_session: AsyncSession, alice, bob, alice_headers, bob_headers
):
    now = datetime.now(timezone.utc)
    old = await create_suggestion(db_session, alice.id, "Old idea", now - timedelta(days=2))
    new = await create_suggestion(db_session, alice.id, "New idea", now - timedelta(days=1))
    top = await create_suggestion(db_session, alice.id, "Popular idea", now - timedelta(days=3))
    await db_session.commit()

    await async_client.post(f"/api/v1/suggestions/{top.id}/vote", headers=alice_headers)
    await async_client.post(f"/api/v1/suggestions/{top.id}/vote", headers=bob_headers)
    await async_client.post(f"/api/v1/suggestions/{new.id}/vote", headers=bob_headers)
    await async_client.post(f"/api/v1/suggestions/{old.id}/vote", headers=alice_headers)

    resp = await async_client.get("/api/v1/suggestions", headers=alice_headers)
    assert resp.status_code == 200
    data = resp.json()

    # top: 2 votes; new and old tie at 1, newer first.
    assert [s["id"] for s in data] == [top.id, new.id, old.id]
    assert [s["upvotes_count"] for s in data] == [2, 1, 1]
    assert [s["has_voted"] for s in data] == [True, False, True]


@pytest.mark.asyncio
async def test_listing_anonymous_reports_no_votes(async_client: AsyncClient, alice_headers):
    sid = await _new_suggestion(async_client, alice_headers)
    await async_client.post(f"/api/v1/suggestions/{sid}/vote", headers=alice_headers)

    data = (await async_client.get("/api/v1/suggestions")).json()

    assert data[0]["upvotes_count"] == 1
    assert data[0]["has_voted"] is False


@pytest.mark.asyncio
async def test_retract_reorders_listing(async_client: AsyncClient, alice_headers, bob_headers):
    first = await _new_suggestion(async_client, alice_headers, "First")
    second = await _new_suggestion(async_client, alice_headers, "Second")
    await async_client.post(f"/api/v1/suggestions/{first}/vote", headers=alice_headers)

    ids = [s["id"] for s in (await async_client.get("/api/v1/suggestions")).json()]
    assert ids == [first, second]

    await async_client.delete(f"/api/v1/suggestions/{first}/vote", headers=alice_headers)
    await async_client.post(f"/api/v1/suggestions/{second}/vote", headers=bob_headers)

    ids = [s["id"] for s in (await async_client.get("/api/v1/suggestions")).json()]
    assert ids == [second, first]


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_admin_updates_status(async_client: AsyncClient, alice_headers, admin_headers):
    sid = await _new_suggestion(async_client, alice_headers)

    resp = await async_client.patch(
        f"/api/v1/suggestions/{sid}/status", json={"status": "reviewed"}, headers=admin_headers
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "reviewed"


@pytest.mark.asyncio
async def test_status_update_requires_admin(async_client: AsyncClient, alice_headers):
    sid = await _new_suggestion(async_client, alice_headers)

    resp = await async_client.patch(
        f"/api/v1/suggestions/{sid}/status", json={"status": "completed"}, headers=alice_headers
    )

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_status_update_rejects_unknown_status(
    async_client: AsyncClient, alice_headers, admin_headers
):
    sid = await _new_suggestion(async_client, alice_headers)
    resp = await async_client.patch(
        f"/api/v1/suggestions/{sid}/status", json={"status": "shipped"}, headers=admin_headers
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_status_update_missing_suggestion(async_client: AsyncClient, admin_headers):
    resp = await async_client.patch(
        "/api/v1/suggestions/99999/status", json={"status": "reviewed"}, headers=admin_headers
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_reconcile_endpoint(async_client: AsyncClient, alice_headers, admin_headers):
    sid = await _new_suggestion(async_client, alice_headers)
    await async_client.post(f"/api/v1/suggestions/{sid}/vote", headers=alice_headers)

    resp = await async_client.post("/api/v1/suggestions/reconcile", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"repaired": []}

    forbidden = await async_client.post("/api/v1/suggestions/reconcile", headers=alice_headers)
    assert forbidden.status_code == 403
