"""
测试用数据库工具：可达性检查与清库

PostgreSQL 集成测试需要一个可连接的实例。依次尝试 TEST_DATABASE_URL、
DATABASE_URL；都连不上时跳过测试，而不是失败。
"""
from __future__ import annotations

import os

import psycopg
import pytest

TABLES = "playlists, saved_lectures, lecture_comments, lecture_likes, lectures, users"


def require_db_or_skip() -> str:
    """返回第一个可连接的 DSN；没有则 skip"""
    candidates = [dsn for dsn in (os.getenv("TEST_DATABASE_URL"), os.getenv("DATABASE_URL")) if dsn]
    for dsn in candidates:
        try:
            with psycopg.connect(dsn, connect_timeout=1):
                return dsn
        except psycopg.Error:
            continue
    pytest.skip("Database not reachable; set TEST_DATABASE_URL or DATABASE_URL")


async def truncate_all(pool) -> None:
    async with pool.connection() as conn:
        await conn.execute(f"TRUNCATE {TABLES} RESTART IDENTITY CASCADE")
