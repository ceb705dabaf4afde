"""
Suggestion service — the suggestion box read path and plain CRUD.

The listing is not cached: its order follows the live
``upvotes_count`` and ``has_voted`` must come from the vote ledger as it
is at read time.  Counter updates belong to ``vote_service``; nothing in
this module writes ``upvotes_count``.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.models import Suggestion, SuggestionVote
from blog_api.schemas import SuggestionCreate
from blog_api.services import vote_service

# Most upvoted first; newest first on ties; id settles rows created in the
# same clock tick.
_LISTING_ORDER = (
    Suggestion.upvotes_count.desc(),
    Suggestion.created_at.desc(),
    Suggestion.id.desc(),
)


def _fresh(stmt):
    # vote_service moves the counter with bulk UPDATEs that bypass the
    # identity map; overwrite any instance this session already holds.
    return stmt.execution_options(populate_existing=True)


def _suggestion_to_dict(suggestion: Suggestion, has_voted: bool = False) -> dict:
    return {
        "id": suggestion.id,
        "title": suggestion.title,
        "description": suggestion.description,
        "status": suggestion.status,
        "upvotes_count": suggestion.upvotes_count,
        "user_id": suggestion.user_id,
        "created_at": suggestion.created_at.isoformat() if suggestion.created_at else None,
        "has_voted": has_voted,
    }


async def _voted_ids(db: AsyncSession, user_id: int) -> set[int]:
    result = await db.execute(
        select(SuggestionVote.suggestion_id).where(SuggestionVote.user_id == user_id)
    )
    return set(result.scalars().all())


async def list_suggestions(db: AsyncSession, requester_id: int | None = None) -> list[dict]:
    """
    Return every suggestion ranked by upvotes, annotated with ``has_voted``.

    With no *requester_id* every row reports ``has_voted=False``.  Otherwise
    the requester's ledger rows are fetched in a single extra query, so the
    annotation is independent of the (denormalized) counter.
    """
    result = await db.execute(_fresh(select(Suggestion).order_by(*_LISTING_ORDER)))
    suggestions = result.scalars().all()

    voted = await _voted_ids(db, requester_id) if requester_id is not None else set()
    return [_suggestion_to_dict(s, s.id in voted) for s in suggestions]


async def get_suggestion(
    db: AsyncSession, suggestion_id: int, requester_id: int | None = None
) -> dict | None:
    result = await db.execute(_fresh(select(Suggestion).where(Suggestion.id == suggestion_id)))
    suggestion = result.scalar_one_or_none()
    if suggestion is None:
        return None

    voted = False
    if requester_id is not None:
        voted = await vote_service.has_voted(db, suggestion_id, requester_id)
    return _suggestion_to_dict(suggestion, voted)


async def create_suggestion(db: AsyncSession, user_id: int, data: SuggestionCreate) -> dict:
    suggestion = Suggestion(
        title=data.title,
        description=data.description,
        user_id=user_id,
        status="pending",
        upvotes_count=0,
    )
    db.add(suggestion)
    await db.flush()
    await db.refresh(suggestion)
    return _suggestion_to_dict(suggestion)


async def update_status(db: AsyncSession, suggestion_id: int, status: str) -> dict | None:
    """Administrative status change.  Returns None when the suggestion does not exist."""
    result = await db.execute(_fresh(select(Suggestion).where(Suggestion.id == suggestion_id)))
    suggestion = result.scalar_one_or_none()
    if suggestion is None:
        return None

    suggestion.status = status
    await db.flush()
    return _suggestion_to_dict(suggestion)
