"""
测试夹具：内存存储 + httpx ASGITransport 直连应用工厂
"""
from __future__ import annotations

import itertools

import httpx
import pytest
from httpx import ASGITransport

from educonnect.auth import hash_password, issue_token
from educonnect.config import Settings
from educonnect.domain import Identity, Role
from educonnect.main import create_app
from educonnect.repo_memory import MemoryRepository

TEST_SECRET = "test-secret"
PASSWORD = "secret123"

_seq = itertools.count(1)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(jwt_secret=TEST_SECRET, bcrypt_rounds=4)


@pytest.fixture
def repo() -> MemoryRepository:
    return MemoryRepository()


@pytest.fixture
def app(settings, repo):
    return create_app(settings, repo)


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def make_user(repo, settings):
    """创建用户并返回 (user, 认证头)"""

    async def _make(role: Role = Role.STUDENT, name: str | None = None, email: str | None = None):
        n = next(_seq)
        user = await repo.create_user(
            name or f"{role.value.capitalize()} {n}",
            email or f"{role.value}{n}@example.com",
            hash_password(PASSWORD, settings.bcrypt_rounds),
            role,
        )
        token = issue_token(Identity(id=user.id, role=user.role), settings)
        return user, {"authorization": token}

    return _make


@pytest.fixture
def make_lecture(repo):
    async def _make(owner_id: int, title: str = "Intro", video_url: str = "https://videos.example.com/intro"):
        return await repo.create_lecture(owner_id, title, "Math", "First lecture", video_url)

    return _make
