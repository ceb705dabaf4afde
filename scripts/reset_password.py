"""Reset a user's password by username."""
import asyncio
import argparse
import getpass

from sqlalchemy import update

from blog_api.database import async_session
from blog_api.models import User
from blog_api.services.auth_service import get_password_hash


async def reset_password(username: str, password: str) -> bool:
    async with async_session() as session:
        result = await session.execute(
            update(User)
            .where(User.username == username)
            .values(password_hash=get_password_hash(password))
            .returning(User.email)
        )
        email = result.scalar_one_or_none()
        await session.commit()

    if email is None:
        print(f"User {username!r} not found")
        return False
    print(f"Password updated for {username!r} ({email})")
    return True


def main():
    parser = argparse.ArgumentParser(description="Reset a user's password")
    parser.add_argument("username")
    parser.add_argument("--password", help="New password (prompted when omitted)")
    args = parser.parse_args()

    password = args.password or getpass.getpass("New password: ")
    ok = asyncio.run(reset_password(args.username, password))
    raise SystemExit(0 if ok else 1)


if __name__ == "__main__":
    main()
