"""
Post service — business logic for the Post aggregate.

Design notes
------------
- The public feed and published post details go through the cache-aside
  pattern (Redis, then the database).  Drafts are never cached, so a
  cached entry can always be served to anonymous readers.
- ``view_count`` is bumped with a relative SQL UPDATE on every detail
  read, cache hits included, so concurrent readers never lose increments.
- Eager loading via ``joinedload`` (many-to-one: author) and
  ``selectinload`` (many-to-many: tags) keeps list reads at a fixed
  number of queries.
- Tags are upserted by slug on every write that names them.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import re
import time
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blog_api.cache import POSTS_LIST_KEY, cache, post_detail_key
from blog_api.config import settings
from blog_api.models import Post, Tag
from blog_api.schemas import PostCreate, PostUpdate
from blog_api.services import comment_service

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


async def _unique_slug(db: AsyncSession, title: str, exclude_id: int | None = None) -> str:
    """Slug for *title*, suffixed with a Unix timestamp if another post holds it."""
    slug = slugify(title) or "post"
    q = select(Post.id).where(Post.slug == slug)
    if exclude_id is not None:
        q = q.where(Post.id != exclude_id)
    if (await db.execute(q)).scalar_one_or_none() is not None:
        slug = f"{slug}-{int(time.time())}"
    return slug


def _post_query():
    return select(Post).options(joinedload(Post.author), selectinload(Post.tags))


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _serialize_author(author) -> dict | None:
    if author is None:
        return None
    return {
        "id": author.id,
        "username": author.username,
        "display_name": author.display_name,
        "avatar_url": author.avatar_url,
    }


def _post_to_dict(post: Post) -> dict:
    """Serialise a Post ORM instance to a plain dict (feed view)."""
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
        "author": _serialize_author(post.author),
        "tags": [{"id": t.id, "name": t.name, "slug": t.slug} for t in post.tags],
    }


# ---------------------------------------------------------------------------
# Tag upsert (used by create / update)
# ---------------------------------------------------------------------------

async def resolve_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """
    Return a Tag for each distinct slug in *tag_names*, creating missing
    ones inside the caller's transaction.  Blank names are ignored.
    """
    tags: list[Tag] = []
    seen: set[str] = set()
    for name in tag_names:
        name = name.strip()
        slug = slugify(name)
        if not slug or slug in seen:
            continue
        seen.add(slug)
        result = await db.execute(select(Tag).where(Tag.slug == slug))
        tag = result.scalar_one_or_none()
        if tag is None:
            tag = Tag(name=name, slug=slug)
            db.add(tag)
            await db.flush()
        tags.append(tag)
    return tags


async def list_tags(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(Tag).order_by(Tag.name))
    return [{"id": t.id, "name": t.name, "slug": t.slug} for t in result.scalars().all()]


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_posts(db: AsyncSession) -> list[dict]:
    """Return all published posts, newest first, with author and tags."""
    cached = await cache.get(POSTS_LIST_KEY)
    if cached is not None:
        return cached

    q = (
        _post_query()
        .where(Post.status == "published")
        .order_by(Post.created_at.desc(), Post.id.desc())
    )
    result = await db.execute(q)
    posts = [_post_to_dict(p) for p in result.unique().scalars().all()]

    await cache.set(POSTS_LIST_KEY, posts, ttl=settings.CACHE_TTL_LIST)
    return posts


async def _count_view(db: AsyncSession, post_id: int) -> int | None:
    await db.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(view_count=Post.view_count + 1)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(select(Post.view_count).where(Post.id == post_id))
    return result.scalar_one_or_none()


async def get_post(db: AsyncSession, post_id: int, include_drafts: bool = False) -> dict | None:
    """
    Return the detail dict for *post_id* (content plus comment tree) and
    count the view.

    Returns None when the post does not exist, or is a draft and
    *include_drafts* is false.
    """
    data = await cache.get(post_detail_key(post_id))
    if data is None:
        result = await db.execute(_post_query().where(Post.id == post_id))
        post = result.unique().scalar_one_or_none()
        if post is None or (not post.is_published and not include_drafts):
            return None

        data = _post_to_dict(post)
        data["content"] = post.content
        data["comments"] = await comment_service.get_comments(db, post_id)
        if post.is_published:
            await cache.set(post_detail_key(post_id), data, ttl=settings.CACHE_TTL_DETAIL)

    view_count = await _count_view(db, post_id)
    if view_count is None:
        # Deleted after its detail entry was cached.
        await cache.delete(post_detail_key(post_id))
        return None
    data["view_count"] = view_count
    return data


async def create_post(db: AsyncSession, author_id: int, data: PostCreate) -> dict:
    post = Post(
        title=data.title,
        slug=await _unique_slug(db, data.title),
        content=data.content,
        excerpt=data.excerpt,
        cover_image=data.cover_image,
        status=data.status,
        author_id=author_id,
    )
    if data.tags:
        post.tags.extend(await resolve_tags(db, data.tags))
    if data.status == "published":
        post.published_at = datetime.now(timezone.utc)

    db.add(post)
    await db.flush()

    await cache.invalidate_post()
    return await _reload(db, post.id)


async def _reload(db: AsyncSession, post_id: int) -> dict:
    result = await db.execute(
        _post_query().where(Post.id == post_id).execution_options(populate_existing=True)
    )
    post = result.unique().scalar_one()
    data = _post_to_dict(post)
    data["content"] = post.content
    data["comments"] = await comment_service.get_comments(db, post_id)
    return data


async def update_post(db: AsyncSession, post_id: int, data: PostUpdate) -> dict | None:
    """
    Partially update a post.  Only fields explicitly sent are modified.

    Returns None when the post does not exist.
    """
    result = await db.execute(_post_query().where(Post.id == post_id))
    post = result.unique().scalar_one_or_none()
    if post is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    tag_names: list[str] | None = update_data.pop("tags", None)
    old_title = post.title

    for field, value in update_data.items():
        setattr(post, field, value)

    # The slug follows title changes only; resending the same title keeps the URL.
    if "title" in update_data and update_data["title"] != old_title:
        post.slug = await _unique_slug(db, update_data["title"], exclude_id=post_id)

    # published_at records the first publication only.
    if post.status == "published" and post.published_at is None:
        post.published_at = datetime.now(timezone.utc)

    if tag_names is not None:
        post.tags.clear()
        post.tags.extend(await resolve_tags(db, tag_names))

    await db.flush()
    await cache.invalidate_post(post_id)
    return await _reload(db, post_id)


async def delete_post(db: AsyncSession, post_id: int) -> bool:
    """Returns True on success, False when the post does not exist."""
    result = await db.execute(select(Post).where(Post.id == post_id))
    post = result.scalar_one_or_none()
    if post is None:
        return False

    await db.delete(post)
    await db.flush()
    await cache.invalidate_post(post_id)
    return True
