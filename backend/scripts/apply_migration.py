"""Apply a SQL file from backend/migrations inside a single transaction."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from blog_api.infra import postgres  # noqa: E402

MIGRATIONS_DIR = BACKEND_ROOT / "migrations"


def _parse_args() -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="Apply a blog database migration")
	parser.add_argument("filename", help="Migration file name, e.g. 0001_blog_core.sql")
	return parser.parse_args()


async def apply_migration(filename: str) -> None:
	migration_path = MIGRATIONS_DIR / filename
	if not migration_path.exists():
		raise SystemExit(f"Migration file not found: {migration_path}")

	print(f"Applying migration: {filename}")
	sql = migration_path.read_text(encoding="utf-8")
	pool = await postgres.get_pool()
	try:
		async with pool.acquire() as conn:
			async with conn.transaction():
				await conn.execute(sql)
	finally:
		await postgres.close_pool()
	print("Migration applied successfully.")


if __name__ == "__main__":
	args = _parse_args()
	asyncio.run(apply_migration(args.filename))
