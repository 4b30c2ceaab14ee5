"""Grant admin rights to an account, creating it first if needed.

    python -m scripts.create_admin admin@example.com --name Admin --password 'Passw0rd!'
"""
import argparse
import asyncio
import sys

from sqlalchemy import func, select

from blog_api.database import async_session
from blog_api.models import User
from blog_api.security import hash_password


async def create_admin(email: str, name: str, password: str | None) -> int:
    async with async_session() as session:
        result = await session.execute(select(User).where(func.lower(User.email) == email.lower()))
        user = result.scalar_one_or_none()

        if user is None:
            if not password:
                print(f"ERROR: no account for {email}; pass --password to create one.")
                return 1
            user = User(name=name, email=email, password_hash=hash_password(password))
            session.add(user)
            print(f"Creating admin account {email}")
        elif user.is_admin:
            print(f"{email} is already an admin (id={user.id})")
            return 0
        else:
            print(f"Promoting {email} (id={user.id}) to admin")

        user.is_admin = True
        await session.commit()
    return 0


def main():
    parser = argparse.ArgumentParser(description="Create or promote an admin user")
    parser.add_argument("email")
    parser.add_argument("--name", default="Admin")
    parser.add_argument("--password", default=None)
    args = parser.parse_args()
    sys.exit(asyncio.run(create_admin(args.email, args.name, args.password)))


if __name__ == "__main__":
    main()
