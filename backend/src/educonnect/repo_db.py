"""
PostgreSQL 存储实现

点赞/收藏用成员关系表上的单条 DELETE-或-INSERT 语句完成，评论是单行插入，
并发请求之间不存在整文档读改写导致的丢失更新。同一用户并发切换时，
返回的 added 取语句执行后的实际成员关系，而不是本条语句是否插入了行。
外键冲突（记录在检查之后被并发删除）转为 NotFound。
"""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

from educonnect.db import create_pool
from educonnect.domain import Comment, Lecture, Playlist, Role, ToggleResult, User
from educonnect.errors import Conflict, NotFound, StoreFailure

logger = logging.getLogger(__name__)


_USER_COLUMNS = "id, name, email, password_hash, role"

_LECTURE_SELECT = """
    SELECT l.id, l.title, l.subject, l.description, l.video_url,
           l.owner_id, u.name, l.created_at
    FROM lectures l
    LEFT JOIN users u ON u.id = l.owner_id
"""

# 删除已有成员关系；若没有删掉任何行则插入。单条语句，原子执行
_TOGGLE_SQL = """
    WITH removed AS (
        DELETE FROM {table}
        WHERE {key} = %(key)s AND {member} = %(member)s
        RETURNING 1
    ), added AS (
        INSERT INTO {table} ({key}, {member})
        SELECT %(key)s, %(member)s
        WHERE NOT EXISTS (SELECT 1 FROM removed)
        ON CONFLICT DO NOTHING
        RETURNING 1
    )
    SELECT count(*) FROM added
"""

_MEMBERSHIP_SQL = """
    SELECT EXISTS (SELECT 1 FROM {table} WHERE {key} = %(key)s AND {member} = %(member)s),
           (SELECT count(*) FROM {table} WHERE {key} = %(key)s)
"""


def _user(row: tuple[Any, ...]) -> User:
    return User(id=row[0], name=row[1], email=row[2], password_hash=row[3], role=Role(row[4]))


def _playlist(row: tuple[Any, ...]) -> Playlist:
    return Playlist(id=row[0], title=row[1], owner_id=row[2], lecture_ids=list(row[3] or []), created_at=row[4])


class PostgresRepository:
    def __init__(self, database_url: str | None) -> None:
        self._pool: AsyncConnectionPool = create_pool(database_url)

    @property
    def pool(self) -> AsyncConnectionPool:
        return self._pool

    async def open(self) -> None:
        await self._pool.open()

    async def close(self) -> None:
        await self._pool.close()

    @asynccontextmanager
    async def _conn(self, op: str, missing: str = "Lecture not found") -> AsyncIterator[AsyncConnection]:
        """获取连接；外键缺失转为 NotFound(missing)，其余数据库错误记日志后统一转为 StoreFailure"""
        try:
            async with self._pool.connection() as conn:
                yield conn
        except psycopg.errors.UniqueViolation as exc:
            raise Conflict() from exc
        except psycopg.errors.ForeignKeyViolation as exc:
            logger.info(f"{op}: referenced row vanished: {exc.diag.constraint_name}")
            raise NotFound(missing) from exc
        except psycopg.Error as exc:
            logger.error(f"DB error during {op}: {exc}", exc_info=True)
            raise StoreFailure() from exc

    # ---- 用户 ----

    async def create_user(self, name: str, email: str, password_hash: str, role: Role) -> User:
        async with self._conn("create_user") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    f"""
                    INSERT INTO users (name, email, password_hash, role)
                    VALUES (%s, %s, %s, %s)
                    RETURNING {_USER_COLUMNS}
                    """,
                    (name, email, password_hash, role.value),
                )
                row = await cur.fetchone()
            await conn.commit()
        return _user(row)

    async def get_user(self, user_id: int) -> User | None:
        async with self._conn("get_user") as conn:
            async with conn.cursor() as cur:
                await cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
                row = await cur.fetchone()
        return _user(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._conn("get_user_by_email") as conn:
            async with conn.cursor() as cur:
                await cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s", (email,))
                row = await cur.fetchone()
        return _user(row) if row else None

    async def update_credentials(
        self, user_id: int, email: str | None = None, password_hash: str | None = None
    ) -> bool:
        async with self._conn("update_credentials") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE users
                    SET email = COALESCE(%s, email),
                        password_hash = COALESCE(%s, password_hash)
                    WHERE id = %s
                    """,
                    (email or None, password_hash or None, user_id),
                )
                updated = cur.rowcount > 0
            await conn.commit()
        return updated

    async def list_teachers(self) -> list[User]:
        async with self._conn("list_teachers") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    f"SELECT {_USER_COLUMNS} FROM users WHERE role = 'teacher' ORDER BY id"
                )
                rows = await cur.fetchall()
        return [_user(r) for r in rows]

    async def search_teachers(self, keyword: str) -> list[User]:
        # 关键字按字面匹配，转义 LIKE 通配符
        pattern = "%" + keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        async with self._conn("search_teachers") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    f"""
                    SELECT {_USER_COLUMNS} FROM users
                    WHERE role = 'teacher' AND (name ILIKE %s OR email ILIKE %s)
                    ORDER BY id
                    """,
                    (pattern, pattern),
                )
                rows = await cur.fetchall()
        return [_user(r) for r in rows]

    async def delete_teacher_cascade(self, user_id: int) -> int:
        """同一事务内删除教师的全部讲座和教师本人"""
        async with self._conn("delete_teacher_cascade") as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute("DELETE FROM lectures WHERE owner_id = %s", (user_id,))
                    removed = cur.rowcount
                    await cur.execute("DELETE FROM users WHERE id = %s", (user_id,))
        return removed

    async def _toggle(
        self, conn: AsyncConnection, table: str, key: str, member: str, key_id: int, member_id: int
    ) -> ToggleResult:
        """在给定连接上切换成员关系并提交，返回执行后的实际状态"""
        params = {"key": key_id, "member": member_id}
        async with conn.cursor() as cur:
            await cur.execute(_TOGGLE_SQL.format(table=table, key=key, member=member), params)
            await cur.execute(_MEMBERSHIP_SQL.format(table=table, key=key, member=member), params)
            present, count = await cur.fetchone()
        await conn.commit()
        return ToggleResult(added=present, count=count)

    async def toggle_saved(self, user_id: int, lecture_id: int) -> ToggleResult:
        async with self._conn("toggle_saved") as conn:
            return await self._toggle(conn, "saved_lectures", "user_id", "lecture_id", user_id, lecture_id)

    async def list_saved_lectures(self, user_id: int) -> list[Lecture]:
        async with self._conn("list_saved_lectures") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT lecture_id FROM saved_lectures WHERE user_id = %s ORDER BY created_at",
                    (user_id,),
                )
                ids = [r[0] for r in await cur.fetchall()]
        return await self.get_lectures(ids)

    # ---- 讲座 ----

    async def _hydrate(self, conn: AsyncConnection, rows: list[tuple[Any, ...]]) -> list[Lecture]:
        """批量补全点赞和评论（评论作者名已解析）"""
        lectures = [
            Lecture(
                id=r[0],
                title=r[1],
                subject=r[2],
                description=r[3],
                video_url=r[4],
                owner_id=r[5],
                owner_name=r[6],
                created_at=r[7],
            )
            for r in rows
        ]
        if not lectures:
            return lectures

        by_id = {lec.id: lec for lec in lectures}
        ids = list(by_id)
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT lecture_id, user_id FROM lecture_likes
                WHERE lecture_id = ANY(%s)
                ORDER BY created_at
                """,
                (ids,),
            )
            for lecture_id, user_id in await cur.fetchall():
                by_id[lecture_id].liker_ids.append(user_id)

            await cur.execute(
                """
                SELECT c.lecture_id, c.text, c.author_id, u.name, c.created_at
                FROM lecture_comments c
                LEFT JOIN users u ON u.id = c.author_id
                WHERE c.lecture_id = ANY(%s)
                ORDER BY c.id
                """,
                (ids,),
            )
            for lecture_id, text, author_id, author_name, created_at in await cur.fetchall():
                by_id[lecture_id].comments.append(
                    Comment(text=text, author_id=author_id, author_name=author_name, created_at=created_at)
                )
        return lectures

    async def create_lecture(
        self,
        owner_id: int,
        title: str,
        subject: str | None,
        description: str | None,
        video_url: str | None,
    ) -> Lecture:
        async with self._conn("create_lecture") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO lectures (title, subject, description, video_url, owner_id)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING id
                    """,
                    (title, subject, description, video_url, owner_id),
                )
                lecture_id = (await cur.fetchone())[0]
            await conn.commit()
        return await self.get_lecture(lecture_id)

    async def get_lecture(self, lecture_id: int) -> Lecture | None:
        async with self._conn("get_lecture") as conn:
            async with conn.cursor() as cur:
                await cur.execute(_LECTURE_SELECT + " WHERE l.id = %s", (lecture_id,))
                row = await cur.fetchone()
            if not row:
                return None
            return (await self._hydrate(conn, [row]))[0]

    async def list_lectures(self, owner_id: int | None = None) -> list[Lecture]:
        async with self._conn("list_lectures") as conn:
            async with conn.cursor() as cur:
                if owner_id is None:
                    await cur.execute(_LECTURE_SELECT + " ORDER BY l.id")
                else:
                    await cur.execute(_LECTURE_SELECT + " WHERE l.owner_id = %s ORDER BY l.id", (owner_id,))
                rows = await cur.fetchall()
            return await self._hydrate(conn, rows)

    async def get_lectures(self, lecture_ids: list[int]) -> list[Lecture]:
        if not lecture_ids:
            return []
        async with self._conn("get_lectures") as conn:
            async with conn.cursor() as cur:
                await cur.execute(_LECTURE_SELECT + " WHERE l.id = ANY(%s)", (list(set(lecture_ids)),))
                rows = await cur.fetchall()
            found = {lec.id: lec for lec in await self._hydrate(conn, rows)}
        # 保持传入顺序，跳过悬空引用
        return [found[lid] for lid in lecture_ids if lid in found]

    async def update_lecture(
        self,
        lecture_id: int,
        title: str,
        subject: str | None,
        description: str | None,
        video_url: str | None,
    ) -> Lecture | None:
        async with self._conn("update_lecture") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE lectures
                    SET title = %s, subject = %s, description = %s, video_url = %s,
                        updated_at = NOW()
                    WHERE id = %s
                    """,
                    (title, subject, description, video_url, lecture_id),
                )
                updated = cur.rowcount > 0
            await conn.commit()
        if not updated:
            return None
        return await self.get_lecture(lecture_id)

    async def delete_lecture(self, lecture_id: int) -> bool:
        async with self._conn("delete_lecture") as conn:
            async with conn.cursor() as cur:
                await cur.execute("DELETE FROM lectures WHERE id = %s", (lecture_id,))
                deleted = cur.rowcount > 0
            await conn.commit()
        return deleted

    async def _lecture_exists(self, conn: AsyncConnection, lecture_id: int) -> bool:
        async with conn.cursor() as cur:
            await cur.execute("SELECT 1 FROM lectures WHERE id = %s", (lecture_id,))
            return await cur.fetchone() is not None

    async def toggle_like(self, lecture_id: int, user_id: int) -> ToggleResult | None:
        async with self._conn("toggle_like") as conn:
            if not await self._lecture_exists(conn, lecture_id):
                return None
            return await self._toggle(conn, "lecture_likes", "lecture_id", "user_id", lecture_id, user_id)

    async def add_comment(self, lecture_id: int, author_id: int, text: str) -> list[Comment] | None:
        async with self._conn("add_comment") as conn:
            if not await self._lecture_exists(conn, lecture_id):
                return None
            async with conn.cursor() as cur:
                await cur.execute(
                    "INSERT INTO lecture_comments (lecture_id, author_id, text) VALUES (%s, %s, %s)",
                    (lecture_id, author_id, text),
                )
            await conn.commit()
        return await self.list_comments(lecture_id)

    async def list_comments(self, lecture_id: int) -> list[Comment] | None:
        lecture = await self.get_lecture(lecture_id)
        return lecture.comments if lecture else None

    # ---- 播放列表 ----

    async def create_playlist(self, owner_id: int, title: str, lecture_ids: list[int]) -> Playlist:
        async with self._conn("create_playlist") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO playlists (title, owner_id, lecture_ids)
                    VALUES (%s, %s, %s)
                    RETURNING id, title, owner_id, lecture_ids, created_at
                    """,
                    (title, owner_id, list(lecture_ids)),
                )
                row = await cur.fetchone()
            await conn.commit()
        return _playlist(row)

    async def list_playlists(self, owner_id: int) -> list[Playlist]:
        async with self._conn("list_playlists") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    SELECT id, title, owner_id, lecture_ids, created_at
                    FROM playlists WHERE owner_id = %s ORDER BY id
                    """,
                    (owner_id,),
                )
                rows = await cur.fetchall()
        return [_playlist(r) for r in rows]

    async def update_playlist(
        self, playlist_id: int, lecture_ids: list[int], owner_id: int | None
    ) -> Playlist | None:
        async with self._conn("update_playlist") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE playlists SET lecture_ids = %s
                    WHERE id = %s AND (%s::bigint IS NULL OR owner_id = %s)
                    RETURNING id, title, owner_id, lecture_ids, created_at
                    """,
                    (list(lecture_ids), playlist_id, owner_id, owner_id),
                )
                row = await cur.fetchone()
            await conn.commit()
        return _playlist(row) if row else None

    async def delete_playlist(self, playlist_id: int, owner_id: int | None) -> bool:
        async with self._conn("delete_playlist") as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "DELETE FROM playlists WHERE id = %s AND (%s::bigint IS NULL OR owner_id = %s)",
                    (playlist_id, owner_id, owner_id),
                )
                deleted = cur.rowcount > 0
            await conn.commit()
        return deleted
