"""Database seeder: users, follows, articles, favorites and comments."""
import argparse
import asyncio
import random
import time

from sqlalchemy import insert

from conduit import models
from conduit.database import Base, async_session, engine
from conduit.schemas import UserCreate
from conduit.services import article_service, comment_service, user_service

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
        "react", "typescript", "aws", "devops", "testing", "performance"]

TOPICS = ["Scaling", "Debugging", "Testing", "Deploying", "Profiling", "Caching"]


async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_articles = 100 if small else 2000

    print(f"Seeding: {num_users} users, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        users = []
        for i in range(num_users):
            user = await user_service.create_user(
                session,
                UserCreate(
                    username=f"user_{i:04d}",
                    email=f"user_{i:04d}@example.com",
                    bio=f"I am test user number {i}. I write about technology.",
                ),
            )
            users.append(user)
        print(f"  Created {len(users)} users")

        follow_pairs = {
            (follower.id, followee.id)
            for follower in users
            for followee in random.sample(users, k=min(5, len(users)))
            if follower.id != followee.id
        }
        for follower_id, followee_id in follow_pairs:
            await session.execute(
                insert(models.follows).values(follower_id=follower_id, followee_id=followee_id)
            )
        print(f"  Created {len(follow_pairs)} follows")

        total_comments = 0
        for i in range(num_articles):
            author = random.choice(users)
            # Titles repeat on purpose so slug suffixing gets exercised.
            article = await article_service.create_article(
                session,
                author.id,
                title=f"{random.choice(TOPICS)} {random.choice(TAGS)} in production",
                description=f"Notes on {random.choice(TAGS)}.",
                body=f"This is the full content of article {i}. " * 20,
                tags=random.sample(TAGS, k=random.randint(1, 4)),
            )
            for reader in random.sample(users, k=random.randint(0, 3)):
                await article_service.favorite_article(session, reader.id, article.slug)
            for _ in range(random.randint(0, 3)):
                await comment_service.add_comment(
                    session,
                    random.choice(users).id,
                    article.slug,
                    "Great article! Very helpful for understanding the topic.",
                )
                total_comments += 1

            if (i + 1) % 500 == 0:
                print(f"  {i + 1} articles created")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users}")
    print(f"  Articles: {num_articles}")
    print(f"  Comments: {total_comments}")


def main():
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
