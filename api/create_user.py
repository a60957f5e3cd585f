"""
Create (or reset) a login user.

    python create_user.py --email admin@example.com --name Admin --password secret

Uses the same DB settings as the API (DATABASE_URL or DB_*).
"""

from __future__ import annotations

import argparse
import asyncio
import getpass

from dotenv import load_dotenv

from auth import service
from core import db
from core.logging_config import configure_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or reset a portfolio API user.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Admin")
    parser.add_argument("--password", help="Prompted for when omitted.")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> None:
    password = args.password or getpass.getpass("Password: ")
    await db.init_pool()
    try:
        user = await service.create_user(name=args.name, email=args.email, password=password)
    finally:
        await db.close_pool()
    print(f"User saved: id={user.id} email={user.email}")


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    configure_logging()
    asyncio.run(run(parse_args(argv)))


if __name__ == "__main__":
    main()
