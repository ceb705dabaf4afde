"""
Regression tests for issues found during code review.

1. Unique constraint violations must return 409 (not 500)
2. view_count must increment on every access
3. X-Query-Count header must report the actual query count
4. CORS must only echo configured origins
5. A failed vote must not leave an orphan ledger row behind
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.models import SuggestionVote
from blog_api.services import vote_service


async def _published_post(client: AsyncClient, headers: dict, title: str = "Regression") -> int:
    resp = await client.post(
        "/api/v1/posts",
        json={"title": title, "content": "Content", "status": "published"},
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.json()["id"]


# ---------------------------------------------------------------------------
# 1. Unique constraint violations -> 409
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_post_slug_collision_handled(async_client: AsyncClient, admin_headers):
    """Renaming a post onto another post's slug doesn't cause 500."""
    await _published_post(async_client, admin_headers, "First Post")
    second = await _published_post(async_client, admin_headers, "Second Post")

    resp = await async_client.put(
        f"/api/v1/posts/{second}", json={"title": "First Post"}, headers=admin_headers
    )

    assert resp.status_code == 200
    assert resp.json()["slug"].startswith("first-post-")


# ---------------------------------------------------------------------------
# 2. view_count increments on every access
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_view_count_increments_via_http(async_client: AsyncClient, admin_headers):
    post_id = await _published_post(async_client, admin_headers)

    count1 = (await async_client.get(f"/api/v1/posts/{post_id}")).json()["view_count"]
    count2 = (await async_client.get(f"/api/v1/posts/{post_id}")).json()["view_count"]

    assert count2 == count1 + 1


# ---------------------------------------------------------------------------
# 3. X-Query-Count reports actual query count
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_query_count_header_exact_for_post_list(async_client: AsyncClient, admin_headers):
    """
    Post list issues SELECT(joinedload author) + selectinload(tags) = 2
    queries, regardless of how many posts exist.
    """
    await _published_post(async_client, admin_headers, "QC One")
    await _published_post(async_client, admin_headers, "QC Two")

    resp = await async_client.get("/api/v1/posts")
    assert resp.status_code == 200
    count = int(resp.headers["x-query-count"])
    assert count == 2, f"Expected exactly 2 queries for post list, got {count}"


@pytest.mark.asyncio
async def test_query_count_header_exact_for_post_detail(async_client: AsyncClient, admin_headers):
    """
    Anonymous post detail: SELECT(joinedload author) + selectinload(tags) +
    SELECT comments + UPDATE view_count + SELECT view_count = 5 queries.
    """
    post_id = await _published_post(async_client, admin_headers)

    resp = await async_client.get(f"/api/v1/posts/{post_id}")
    assert resp.status_code == 200
    count = int(resp.headers["x-query-count"])
    assert count == 5, f"Expected exactly 5 queries for post detail, got {count}"


# ---------------------------------------------------------------------------
# 4. CORS headers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cors_allows_configured_origin(async_client: AsyncClient):
    resp = await async_client.options(
        "/api/v1/posts",
        headers={
            "Origin": "http://localhost:8080",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert resp.headers.get("access-control-allow-origin") == "http://localhost:8080"
    assert resp.headers.get("access-control-allow-credentials") == "true"


@pytest.mark.asyncio
async def test_cors_ignores_unknown_origin(async_client: AsyncClient):
    resp = await async_client.options(
        "/api/v1/posts",
        headers={
            "Origin": "https://evil.example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert resp.headers.get("access-control-allow-origin") != "https://evil.example.com"


# ---------------------------------------------------------------------------
# 5. Failed vote leaves no orphan ledger row
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_failed_vote_returns_500_without_orphan_row(
    async_client: AsyncClient, db_session: AsyncSession, alice_headers, monkeypatch
):
    sid = (await async_client.post(
        "/api/v1/suggestions", json={"title": "Atomic", "description": "x"}, headers=alice_headers
    )).json()["id"]

    async def failing_delta(db, suggestion_id, delta):
        raise OperationalError("UPDATE suggestions", {}, Exception("deadlock detected"))

    monkeypatch.setattr(vote_service, "_apply_delta", failing_delta)

    resp = await async_client.post(f"/api/v1/suggestions/{sid}/vote", headers=alice_headers)

    assert resp.status_code == 500
    assert resp.json()["detail"] == "The vote could not be recorded, please retry"
    votes = await db_session.execute(select(func.count()).select_from(SuggestionVote))
    assert votes.scalar_one() == 0
