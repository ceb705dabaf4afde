"""
Comment service — threaded comments on a Post.

Members comment as themselves; guests must give a display name.  Replies
point at a parent comment on the same post and are returned nested under
it.  Comments cannot be edited or deleted through the public API.  Writes
invalidate the parent post's cache entry so the detail view stays
consistent.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from blog_api.cache import cache
from blog_api.errors import BadRequest, Unprocessable
from blog_api.models import Comment, Post, User
from blog_api.schemas import CommentCreate


def _comment_to_dict(comment: Comment) -> dict:
    if comment.user is not None:
        author_name = comment.user.display_name or comment.user.username
    else:
        author_name = comment.guest_name or "Anonymous"
    return {
        "id": comment.id,
        "content": comment.content,
        "post_id": comment.post_id,
        "user_id": comment.user_id,
        "author_name": author_name,
        "parent_id": comment.parent_id,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
        "replies": [],
    }


def build_comment_tree(comments: list[Comment]) -> list[dict]:
    """
    Nest *comments* under their parents, preserving input order at each level.

    A reply whose parent is missing from *comments* (e.g. an unapproved
    parent) is promoted to the top level rather than dropped.
    """
    nodes = {c.id: _comment_to_dict(c) for c in comments}
    roots: list[dict] = []
    for comment in comments:
        node = nodes[comment.id]
        parent = nodes.get(comment.parent_id) if comment.parent_id is not None else None
        if parent is None:
            roots.append(node)
        else:
            parent["replies"].append(node)
    return roots


async def get_comments(db: AsyncSession, post_id: int) -> list[dict]:
    """Approved comments for *post_id*, oldest first, as a reply tree."""
    q = (
        select(Comment)
        .where(Comment.post_id == post_id, Comment.is_approved.is_(True))
        .options(selectinload(Comment.user))
        .order_by(Comment.created_at, Comment.id)
    )
    result = await db.execute(q)
    return build_comment_tree(list(result.scalars().all()))


async def add_comment(
    db: AsyncSession,
    post_id: int,
    data: CommentCreate,
    user: User | None = None,
) -> dict | None:
    """
    Add a comment to the post identified by *post_id*.

    Returns the serialised comment, or None when the post does not exist.
    Raises ``Unprocessable`` for a guest comment without ``guest_name`` and
    ``BadRequest`` when ``parent_id`` does not name a comment on the same
    post.
    """
    result = await db.execute(select(Post.id).where(Post.id == post_id))
    if result.scalar_one_or_none() is None:
        return None

    if user is None and not (data.guest_name and data.guest_name.strip()):
        raise Unprocessable("guest_name is required for anonymous comments")

    if data.parent_id is not None:
        parent = await db.execute(
            select(Comment.id).where(Comment.id == data.parent_id, Comment.post_id == post_id)
        )
        if parent.scalar_one_or_none() is None:
            raise BadRequest("Parent comment not found on this post")

    comment = Comment(
        content=data.content,
        post_id=post_id,
        user_id=user.id if user is not None else None,
        guest_name=None if user is not None else data.guest_name.strip(),
        parent_id=data.parent_id,
    )
    db.add(comment)
    await db.flush()
    await db.refresh(comment, ["created_at"])
    comment.user = user

    await cache.invalidate_post(post_id)
    return _comment_to_dict(comment)
