"""
Vote service — the suggestion upvote ledger.

Two stores must move together: the ``suggestion_votes`` ledger (one row
per (suggestion, user), enforced by ``uq_suggestion_votes_suggestion_user``)
and the denormalized ``suggestions.upvotes_count`` counter.

Concurrency model
-----------------
- Each operation is one transaction, committed or rolled back here
  before returning.  Nothing is locked in-process.
- The counter only ever moves by a relative SQL delta
  (``upvotes_count = upvotes_count + 1``) issued after the ledger write
  succeeds.  Under READ COMMITTED the UPDATE row-locks the suggestion and
  re-reads the latest committed value, so concurrent deltas serialize.
- Duplicate casts are not pre-checked; the UNIQUE index rejects the
  second INSERT (the racing transaction blocks on the index entry until
  the winner commits) and the ``IntegrityError`` becomes ``AlreadyVoted``.
- Retraction decrements only when its DELETE actually removed a row.  Two
  racing retracts both target the same row; the second blocks on its
  lock and then deletes nothing.
"""
import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.errors import AlreadyVoted, StoreFailure, SuggestionNotFound, Unauthorized
from blog_api.models import Suggestion, SuggestionVote, User

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _suggestion_exists(db: AsyncSession, suggestion_id: int) -> bool:
    result = await db.execute(select(Suggestion.id).where(Suggestion.id == suggestion_id))
    return result.scalar_one_or_none() is not None


async def _user_exists(db: AsyncSession, user_id: int) -> bool:
    result = await db.execute(select(User.id).where(User.id == user_id))
    return result.scalar_one_or_none() is not None


async def _apply_delta(db: AsyncSession, suggestion_id: int, delta: int) -> bool:
    """Shift the counter by *delta* in SQL.  Returns False if the row is gone."""
    result = await db.execute(
        update(Suggestion)
        .where(Suggestion.id == suggestion_id)
        .values(upvotes_count=Suggestion.upvotes_count + delta)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _commit(db: AsyncSession, what: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Commit failed for %s", what)
        raise StoreFailure() from exc


async def get_vote_count(db: AsyncSession, suggestion_id: int) -> int:
    """Current counter value; raises SuggestionNotFound."""
    result = await db.execute(
        select(Suggestion.upvotes_count).where(Suggestion.id == suggestion_id)
    )
    count = result.scalar_one_or_none()
    if count is None:
        raise SuggestionNotFound()
    return count


async def has_voted(db: AsyncSession, suggestion_id: int, user_id: int) -> bool:
    result = await db.execute(
        select(SuggestionVote.id).where(
            SuggestionVote.suggestion_id == suggestion_id,
            SuggestionVote.user_id == user_id,
        )
    )
    return result.scalar_one_or_none() is not None


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------

async def cast_vote(db: AsyncSession, suggestion_id: int, user_id: int) -> int:
    """
    Record *user_id*'s upvote on *suggestion_id* and bump the counter.

    Returns the counter value after commit.

    Raises ``SuggestionNotFound`` if the suggestion does not exist (also
    when it is deleted concurrently), ``AlreadyVoted`` if the ledger already
    holds this pair, ``Unauthorized`` if the voter no longer exists,
    ``StoreFailure`` for any other store error.  On every
    error path the transaction is rolled back, so ledger and counter stay
    untouched.
    """
    # Distinguishes 404 from 400 up front; a FK violation on a missing
    # suggestion would otherwise look like a uniqueness violation.
    if not await _suggestion_exists(db, suggestion_id):
        raise SuggestionNotFound()

    try:
        db.add(SuggestionVote(suggestion_id=suggestion_id, user_id=user_id))
        await db.flush()
        counted = await _apply_delta(db, suggestion_id, +1)
    except IntegrityError:
        await db.rollback()
        if not await _suggestion_exists(db, suggestion_id):
            raise SuggestionNotFound()
        # A voter deleted mid-request trips the user FK, not the ledger UNIQUE.
        if not await _user_exists(db, user_id):
            logger.info("Vote from deleted user rejected: suggestion=%s user=%s", suggestion_id, user_id)
            raise Unauthorized()
        logger.info("Duplicate vote rejected: suggestion=%s user=%s", suggestion_id, user_id)
        raise AlreadyVoted()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("cast_vote aborted: suggestion=%s user=%s", suggestion_id, user_id)
        raise StoreFailure() from exc

    if not counted:
        await db.rollback()
        raise SuggestionNotFound()

    await _commit(db, f"cast_vote on suggestion {suggestion_id}")
    logger.debug("Vote cast: suggestion=%s user=%s", suggestion_id, user_id)
    return await get_vote_count(db, suggestion_id)


async def retract_vote(db: AsyncSession, suggestion_id: int, user_id: int) -> bool:
    """
    Remove *user_id*'s upvote from *suggestion_id*, if there is one.

    Idempotent: when no vote exists (including when the suggestion itself
    does not exist) nothing is written and False is returned.  The counter
    is decremented exactly once per removed ledger row.

    Raises ``StoreFailure`` when the store aborts the transaction.
    """
    try:
        result = await db.execute(
            delete(SuggestionVote)
            .where(
                SuggestionVote.suggestion_id == suggestion_id,
                SuggestionVote.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        removed = result.rowcount == 1
        if removed:
            await _apply_delta(db, suggestion_id, -1)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("retract_vote aborted: suggestion=%s user=%s", suggestion_id, user_id)
        raise StoreFailure() from exc

    await _commit(db, f"retract_vote on suggestion {suggestion_id}")
    if removed:
        logger.debug("Vote retracted: suggestion=%s user=%s", suggestion_id, user_id)
    return removed


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------

def _ledger_counts():
    return (
        select(SuggestionVote.suggestion_id, func.count().label("votes"))
        .group_by(SuggestionVote.suggestion_id)
        .subquery()
    )


async def find_drifted(db: AsyncSession) -> list[int]:
    """Ids of suggestions whose counter disagrees with the ledger."""
    counts = _ledger_counts()
    q = (
        select(Suggestion.id)
        .outerjoin(counts, counts.c.suggestion_id == Suggestion.id)
        .where(Suggestion.upvotes_count != func.coalesce(counts.c.votes, 0))
        .order_by(Suggestion.id)
    )
    result = await db.execute(q)
    return list(result.scalars().all())


async def reconcile_counters(db: AsyncSession) -> list[int]:
    """
    Recompute every drifted counter from the ledger and commit.

    Only needed after a crash between ledger write and commit on a store
    without atomic commit, or after manual edits.  Returns the repaired ids.
    """
    drifted = await find_drifted(db)
    if not drifted:
        return []

    live_count = (
        select(func.count())
        .select_from(SuggestionVote)
        .where(SuggestionVote.suggestion_id == Suggestion.id)
        .scalar_subquery()
    )
    try:
        await db.execute(
            update(Suggestion)
            .where(Suggestion.id.in_(drifted))
            .values(upvotes_count=live_count)
            .execution_options(synchronize_session=False)
        )
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Counter reconciliation aborted")
        raise StoreFailure("Counter reconciliation failed") from exc

    await _commit(db, "counter reconciliation")
    logger.warning("Reconciled upvote counters for suggestions %s", drifted)
    return drifted
