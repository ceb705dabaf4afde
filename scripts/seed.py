"""Database seeder: admin account, readers, posts, threaded comments and voted suggestions."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta

from sqlalchemy import select

from blog_api.config import settings
from blog_api.database import engine, async_session, Base
from blog_api.models import Comment, Post, Suggestion, User
from blog_api.services import vote_service
from blog_api.services.auth_service import get_password_hash
from blog_api.services.post_service import resolve_tags, slugify

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "homelab",
        "linux", "networking", "self-hosting", "security", "testing", "devops"]

SUGGESTIONS = [
    ("Add dark mode", "The white background is rough at night."),
    ("RSS feed", "Let me follow new posts from a feed reader."),
    ("Series navigation", "Link multi-part posts together."),
    ("Code copy button", "One-click copy on code blocks."),
    ("Newsletter", "Monthly digest by email."),
]


async def seed(small: bool = False):
    num_readers = 10 if small else 50
    num_posts = 20 if small else 500
    max_comments = 3 if small else 8

    print(f"Seeding: admin + {num_readers} readers, {num_posts} posts, {len(SUGGESTIONS)} suggestions")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        admin = User(
            username=settings.ADMIN_USERNAME,
            email=settings.ADMIN_EMAIL,
            password_hash=get_password_hash(settings.ADMIN_PASSWORD),
            role="admin",
            display_name="Site Admin",
        )
        session.add(admin)

        # One hash for every sample reader; bcrypt is slow on purpose.
        reader_hash = get_password_hash("reader")
        readers = []
        for i in range(num_readers):
            user = User(
                username=f"reader_{i:04d}",
                email=f"reader_{i:04d}@example.com",
                password_hash=reader_hash,
                display_name=f"Reader {i}",
            )
            session.add(user)
            readers.append(user)
        await session.flush()
        print(f"  Created admin {admin.email!r} and {len(readers)} readers (password 'reader')")

        tags = await resolve_tags(session, TAGS)

        for i in range(num_posts):
            created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
            topic = random.choice(TAGS)
            title = f"Post {i}: notes on running {topic} at home"
            published = random.random() > 0.1
            post = Post(
                title=title,
                slug=f"{slugify(title)}-{i}",
                content=f"Full write-up number {i}. " * 20,
                excerpt=f"What I learned running {topic}.",
                status="published" if published else "draft",
                view_count=random.randint(0, 5000),
                published_at=created if published else None,
                created_at=created,
                author_id=admin.id,
            )
            post.tags.extend(random.sample(tags, k=random.randint(1, 4)))
            session.add(post)
        await session.flush()

        post_ids = (await session.execute(select(Post.id))).scalars().all()
        total_comments = 0
        for post_id in post_ids:
            thread: list[Comment] = []
            for _ in range(random.randint(0, max_comments)):
                author = random.choice(readers + [None])
                comment = Comment(
                    content="Thanks, this helped a lot.",
                    post_id=post_id,
                    user_id=author.id if author else None,
                    guest_name=None if author else "Passer-by",
                    parent_id=random.choice(thread).id if thread and random.random() < 0.4 else None,
                )
                session.add(comment)
                await session.flush()
                thread.append(comment)
                total_comments += 1
        print(f"  Created {total_comments} comments")

        suggestion_ids = []
        for title, description in SUGGESTIONS:
            suggestion = Suggestion(
                title=title, description=description, user_id=random.choice(readers).id
            )
            session.add(suggestion)
            await session.flush()
            suggestion_ids.append(suggestion.id)
        reader_ids = [r.id for r in readers]
        await session.commit()

    # Votes go through the coordinator so counters match the ledger.
    total_votes = 0
    async with async_session() as session:
        for suggestion_id in suggestion_ids:
            for user_id in random.sample(reader_ids, k=random.randint(0, len(reader_ids))):
                await vote_service.cast_vote(session, suggestion_id, user_id)
                total_votes += 1
        drifted = await vote_service.find_drifted(session)

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Posts: {num_posts}")
    print(f"  Comments: {total_comments}")
    print(f"  Votes: {total_votes} (drifted counters: {len(drifted)})")
    print(f"  Tags: {len(TAGS)}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
