"""Seed a development database with users, tags, posts and comments."""
import argparse
import asyncio
import random
import time
from datetime import datetime, timedelta, timezone

from blog_api.database import Base, async_session, engine
from blog_api.models import Comment, Post, Tag, User
from blog_api.security import hash_password

TAGS = ["python", "fastapi", "postgresql", "sqlalchemy", "docker", "testing",
        "security", "performance", "devops", "api-design"]

# Satisfies the registration password rules, so seeded accounts can log in.
DEMO_PASSWORD = "Passw0rd!"


async def seed(small: bool = False):
    num_users = 5 if small else 50
    num_posts = 20 if small else 2000
    max_comments_per_post = 3 if small else 8

    print(f"Seeding: {num_users} users (+1 admin), {num_posts} posts")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    password_hash = hash_password(DEMO_PASSWORD)

    async with async_session() as session:
        tags = [Tag(name=name) for name in TAGS]
        session.add_all(tags)

        users = [User(name="Admin", email="admin@example.com",
                      password_hash=password_hash, is_admin=True)]
        for i in range(num_users):
            users.append(User(
                name=f"User {i:04d}",
                email=f"user_{i:04d}@example.com",
                password_hash=password_hash,
            ))
        session.add_all(users)
        await session.flush()
        print(f"  Created {len(tags)} tags, {len(users)} users")

        total_comments = 0
        for i in range(num_posts):
            created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
            post = Post(
                title=f"Post {i}: notes on {random.choice(TAGS)}",
                body=f"Body of post {i}. " * 20,
                user_id=random.choice(users).id,
                created_at=created,
            )
            post.tags = random.sample(tags, k=random.randint(1, 3))
            session.add(post)
            await session.flush()

            comments = [
                Comment(
                    body=f"Comment {n} on post {i}.",
                    post_id=post.id,
                    user_id=random.choice(users).id,
                )
                for n in range(random.randint(0, max_comments_per_post))
            ]
            # Pin one comment on roughly half of the posts that have any.
            if comments and random.random() < 0.5:
                random.choice(comments).is_pinned = True
            session.add_all(comments)
            total_comments += len(comments)

            if i % 500 == 499:
                await session.flush()
                print(f"  {i + 1} posts created")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Posts: {num_posts}")
    print(f"  Comments: {total_comments}")
    print(f"  Login: admin@example.com / {DEMO_PASSWORD}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset (20 posts)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
