"""
Create the first Super-Admin account.

Run after migrations; later accounts are created through POST /auth/users.

Usage:
    python -m busline.seed_admin --email admin@example.com --password 'S3cret!pass'
"""
import argparse
import asyncio
import sys

from sqlalchemy import select as sa_select

from busline.db.session import async_session, engine
from busline.models.models import User, ROLE_SUPER_ADMIN
from busline.services.auth import hash_password


async def create_super_admin(email: str, password: str, full_name: str = None) -> bool:
    async with async_session() as db:
        async with db.begin():
            existing = (await db.execute(sa_select(User).where(User.email == email.lower()))).scalars().first()
            if existing:
                print(f"User {email} already exists, skipping")
                return False
            db.add(User(email=email.lower(), full_name=full_name, role=ROLE_SUPER_ADMIN, hashed_password=hash_password(password)))
    print(f"Created Super-Admin {email}")
    return True


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default=None)
    args = parser.parse_args(argv)

    async def _run():
        try:
            await create_super_admin(args.email, args.password, args.name)
        finally:
            await engine.dispose()

    asyncio.run(_run())
    return 0


if __name__ == "__main__":
    sys.exit(main())
