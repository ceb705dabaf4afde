from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from blog_api.database import get_db
from blog_api.dependencies import get_current_user, get_optional_user, require_admin
from blog_api.models import User
from blog_api.schemas import (
    ReconcileResponse,
    SuggestionCreate,
    SuggestionResponse,
    SuggestionStatusUpdate,
    VoteResponse,
)
from blog_api.services import suggestion_service, vote_service

router = APIRouter(prefix="/api/v1/suggestions", tags=["suggestions"])

@router.get("", response_model=list[SuggestionResponse])
async def list_suggestions(
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await suggestion_service.list_suggestions(db, user.id if user else None)

@router.post("", status_code=201, response_model=SuggestionResponse)
async def create_suggestion(
    data: SuggestionCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await suggestion_service.create_suggestion(db, current_user.id, data)

@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_counters(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return {"repaired": await vote_service.reconcile_counters(db)}

@router.get("/{suggestion_id}", response_model=SuggestionResponse)
async def get_suggestion(
    suggestion_id: int,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    suggestion = await suggestion_service.get_suggestion(
        db, suggestion_id, user.id if user else None
    )
    if not suggestion:
        raise HTTPException(status_code=404, detail="Suggestion not found")
    return suggestion

@router.patch("/{suggestion_id}/status", response_model=SuggestionResponse)
async def update_status(
    suggestion_id: int,
    data: SuggestionStatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    suggestion = await suggestion_service.update_status(db, suggestion_id, data.status)
    if not suggestion:
        raise HTTPException(status_code=404, detail="Suggestion not found")
    return suggestion

# Vote endpoints: SuggestionNotFound / AlreadyVoted / StoreFailure raised by
# vote_service are rendered by the BlogAPIError handler in main.py.

@router.post("/{suggestion_id}/vote", status_code=201, response_model=VoteResponse)
async def cast_vote(
    suggestion_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await vote_service.cast_vote(db, suggestion_id, current_user.id)
    return VoteResponse(suggestion_id=suggestion_id, upvotes_count=count, has_voted=True)

@router.delete("/{suggestion_id}/vote", response_model=VoteResponse)
async def retract_vote(
    suggestion_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_id = current_user.id
    await vote_service.retract_vote(db, suggestion_id, user_id)
    suggestion = await suggestion_service.get_suggestion(db, suggestion_id, user_id)
    return VoteResponse(
        suggestion_id=suggestion_id,
        upvotes_count=suggestion["upvotes_count"] if suggestion else 0,
        has_voted=suggestion["has_voted"] if suggestion else False,
    )
