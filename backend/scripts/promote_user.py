"""Grant a role to an existing account by email.

Bootstraps the first admin, since role changes through the API require
an admin to already exist.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from blog_api.domain.models import Role  # noqa: E402
from blog_api.infra import postgres  # noqa: E402


def _parse_args() -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="Change the role of a blog account")
	parser.add_argument("email", help="Email address of the account")
	parser.add_argument("role", choices=[role.value for role in Role], help="Role to grant")
	return parser.parse_args()


async def promote_user(email: str, role: str) -> None:
	normalised_email = email.strip().lower()
	pool = await postgres.get_pool()
	try:
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				UPDATE users
				SET role = $2
				WHERE lower(email) = $1
				RETURNING id, role
				""",
				normalised_email,
				role,
			)
	finally:
		await postgres.close_pool()
	if not row:
		raise SystemExit(f"No user found for email {normalised_email}")
	print(f"User {row['id']} ({normalised_email}) is now {row['role']}.")


if __name__ == "__main__":
	args = _parse_args()
	asyncio.run(promote_user(args.email, args.role))
