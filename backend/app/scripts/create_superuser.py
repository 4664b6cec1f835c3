import argparse
import asyncio
import getpass
import logging
import sys

from app.core.database import SessionLocal
from app.core.exceptions import AppError
from app.services.user_service import UserService

logger = logging.getLogger("secure-link.create-superuser")


async def create_superuser(email: str, username: str, password: str) -> str:
    """Create the superuser, or promote an existing account with that email."""
    async with SessionLocal() as db:
        user = await UserService(db).ensure_superuser(email, username, password)
        return user.id


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create or promote a superuser")
    parser.add_argument("--email", required=True)
    parser.add_argument("--username", default="admin")
    parser.add_argument("--password", help="prompted for when omitted")
    args = parser.parse_args(argv)

    password = args.password or getpass.getpass("Password: ")
    try:
        user_id = asyncio.run(create_superuser(args.email, args.username, password))
    except AppError as e:
        logger.error("Could not create superuser: %s", e.message)
        return 1
    logger.info("Superuser %s ready (id=%s)", args.username, user_id)
    return 0

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[create-superuser] %(message)s")
    sys.exit(main())
