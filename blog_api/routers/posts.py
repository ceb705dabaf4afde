from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from blog_api.database import get_db
from blog_api.dependencies import get_optional_user, require_admin
from blog_api.models import User
from blog_api.schemas import (
    CommentCreate,
    CommentResponse,
    PostCreate,
    PostDetail,
    PostSummary,
    PostUpdate,
    TagResponse,
)
from blog_api.services import comment_service, post_service

router = APIRouter(prefix="/api/v1", tags=["posts"])

@router.get("/posts", response_model=list[PostSummary])
async def list_posts(db: AsyncSession = Depends(get_db)):
    return await post_service.get_posts(db)

@router.get("/posts/{post_id}", response_model=PostDetail)
async def get_post(
    post_id: int,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    include_drafts = user is not None and user.is_admin
    post = await post_service.get_post(db, post_id, include_drafts=include_drafts)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post

@router.post("/posts", status_code=201, response_model=PostDetail)
async def create_post(
    data: PostCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.create_post(db, admin.id, data)

@router.put("/posts/{post_id}", response_model=PostDetail)
async def update_post(
    post_id: int,
    data: PostUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.update_post(db, post_id, data)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post

@router.delete("/posts/{post_id}", status_code=204)
async def delete_post(
    post_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    deleted = await post_service.delete_post(db, post_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Post not found")

@router.get("/posts/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(post_id: int, db: AsyncSession = Depends(get_db)):
    return await comment_service.get_comments(db, post_id)

@router.post("/posts/{post_id}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    post_id: int,
    data: CommentCreate,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.add_comment(db, post_id, data, user)
    if not comment:
        raise HTTPException(status_code=404, detail="Post not found")
    return comment

@router.get("/tags", response_model=list[TagResponse])
async def list_tags(db: AsyncSession = Depends(get_db)):
    return await post_service.list_tags(db)
