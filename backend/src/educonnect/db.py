"""
数据库连接池与初始化

提供：
- create_pool(): 按配置创建连接池（psycopg3 async pool），由调用方负责 open/close
- init_db(): 执行schema.sql初始化表结构
"""
from __future__ import annotations

import logging
from pathlib import Path

import psycopg
from psycopg_pool import AsyncConnectionPool

logger = logging.getLogger(__name__)


SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def create_pool(database_url: str | None) -> AsyncConnectionPool:
    """创建连接池（未打开）"""
    if not database_url:
        raise RuntimeError("DATABASE_URL environment variable not set")
    return AsyncConnectionPool(
        conninfo=database_url,
        min_size=2,
        max_size=10,
        timeout=30.0,
        open=False,
    )


async def init_db(pool: AsyncConnectionPool) -> None:
    """
    执行schema.sql初始化数据库表结构（可重复执行）

    Raises:
        FileNotFoundError: schema.sql 文件不存在
        RuntimeError: 数据库初始化失败
    """
    if not SCHEMA_PATH.exists():
        raise FileNotFoundError(f"schema.sql not found at {SCHEMA_PATH}")

    sql = SCHEMA_PATH.read_text(encoding="utf-8")

    try:
        async with pool.connection() as conn:
            await conn.execute(sql)
            await conn.commit()
            logger.info("Database initialized successfully")
    except psycopg.Error as exc:
        logger.error(f"DB error during init_db: {exc}", exc_info=True)
        raise RuntimeError("Failed to initialize database") from exc
