from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from blog_api.database import get_db
from blog_api.models import Comment, Post, Suggestion, SuggestionVote, User
from blog_api.schemas import MetricsResponse
from blog_api.cache import cache
from blog_api.services import vote_service

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])

async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()

@router.get("", response_model=MetricsResponse)
async def get_metrics(db: AsyncSession = Depends(get_db)):
    total_posts = await _count(db, Post)
    total_comments = await _count(db, Comment)
    avg_comments = total_comments / total_posts if total_posts > 0 else 0

    return MetricsResponse(
        total_posts=total_posts,
        total_comments=total_comments,
        total_users=await _count(db, User),
        total_suggestions=await _count(db, Suggestion),
        total_votes=await _count(db, SuggestionVote),
        avg_comments_per_post=round(avg_comments, 2),
        # Non-zero means a counter disagrees with the vote ledger; see
        # POST /api/v1/suggestions/reconcile.
        drifted_suggestions=len(await vote_service.find_drifted(db)),
        cache_info=cache.stats,
    )
