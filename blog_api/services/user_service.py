"""
User service — public profiles and self-service profile edits.

Account creation lives in ``auth_service`` because it owns password
hashing.  Users are not cached; the data changes rarely and the list is
small.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from blog_api.models import Post, User
from blog_api.schemas import ProfileUpdate


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "display_name": user.display_name,
        "bio": user.bio,
        "avatar_url": user.avatar_url,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _post_summary_to_dict(post: Post) -> dict:
    """
    Lightweight post dict for embedding in a profile.  Author and tags
    are omitted to avoid circular nesting.
    """
    return {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "excerpt": post.excerpt,
        "cover_image": post.cover_image,
        "status": post.status,
        "view_count": post.view_count,
        "published_at": post.published_at.isoformat() if post.published_at else None,
        "created_at": post.created_at.isoformat() if post.created_at else None,
        "author_id": post.author_id,
        "author": None,
        "tags": [],
    }


async def get_users(db: AsyncSession) -> list[dict]:
    """All users, newest first."""
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return [user_to_dict(u) for u in result.scalars().all()]


async def get_user(db: AsyncSession, user_id: int) -> dict | None:
    """
    Profile of *user_id* with their published posts, or None.

    ``selectinload`` fetches the posts in one extra query.
    """
    q = (
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.posts))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    user = result.scalar_one_or_none()
    if user is None:
        return None

    data = user_to_dict(user)
    published = [p for p in user.posts if p.is_published]
    published.sort(key=lambda p: (p.created_at, p.id), reverse=True)
    data["posts"] = [_post_summary_to_dict(p) for p in published]
    return data


async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> dict:
    """
    Apply the fields present in *data* to *user*.

    A taken username surfaces as ``IntegrityError`` at flush; the router
    turns it into 409.
    """
    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "username" and value is None:
            continue
        setattr(user, field, value)
    await db.flush()
    await db.refresh(user)
    return user_to_dict(user)
