import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

os.environ.setdefault("ENV", "dev")
os.environ.setdefault("POSTGRES_ENABLED", "false")

from blog_api.domain import container
from blog_api.domain.models import Post, PostCategory, Role, User
from blog_api.infra import postgres
from blog_api.main import app
from blog_api.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from blog_api.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def fresh_container():
	container.reset_memory()
	yield
	container.reset_memory()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Ensure a consistent test environment.

	API tests authenticate via the X-User-Id header, which is only accepted
	in dev mode.
	"""
	original_env = settings.environment
	original_postgres = settings.postgres_enabled
	settings.environment = "dev"
	settings.postgres_enabled = False
	try:
		yield
	finally:
		settings.environment = original_env
		settings.postgres_enabled = original_postgres


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


@pytest.fixture
def seed():
	"""Factory storing users and posts in the in-memory repositories."""

	async def _user(user_id: str, role: Role = Role.USER, **kwargs) -> User:
		kwargs.setdefault("email", f"{user_id}@example.com")
		kwargs.setdefault("name", user_id.capitalize())
		return await container.get_user_repository().create(User(id=user_id, role=role, **kwargs))

	async def _post(post_id: str, owner_id: str, **kwargs) -> Post:
		kwargs.setdefault("title", f"Post {post_id}")
		kwargs.setdefault("category", PostCategory.TECH)
		return await container.get_post_repository().create(Post(id=post_id, owner_id=owner_id, **kwargs))

	class Seeder:
		user = staticmethod(_user)
		post = staticmethod(_post)

	return Seeder()
