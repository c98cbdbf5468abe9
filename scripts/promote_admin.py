"""Grant or revoke the admin role for a visitor, identified by email.

The admin gate re-reads roles from the database, so the change applies to
the visitor's next request without issuing a new token.

    python -m scripts.promote_admin ann@example.com
    python -m scripts.promote_admin ann@example.com --demote
"""
import argparse
import asyncio
import sys

from guestbook.database import async_session, engine
from guestbook.exceptions import GuestbookError
from guestbook.models import ROLE_ADMIN, ROLE_VISITOR
from guestbook.services import visitor_service


async def change_role(email: str, role: str) -> dict:
    async with async_session() as session:
        visitor = await visitor_service.set_role(session, email, role)
        await session.commit()
    return visitor


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Grant or revoke guestbook admin access")
    parser.add_argument("email", help="Email of an existing visitor")
    parser.add_argument("--demote", action="store_true", help="Revoke admin instead of granting it")
    args = parser.parse_args(argv)

    role = ROLE_VISITOR if args.demote else ROLE_ADMIN

    async def run() -> dict:
        try:
            return await change_role(args.email, role)
        finally:
            await engine.dispose()

    try:
        visitor = asyncio.run(run())
    except GuestbookError as exc:
        print(f"[ERROR] {args.email}: {exc.message}", file=sys.stderr)
        return 1

    print(f"[OK] Visitor {visitor['id']} ({visitor['email']}) is now '{visitor['role']}'")
    return 0


if __name__ == "__main__":
    sys.exit(main())
