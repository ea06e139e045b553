"""
存储层接口

PostgresRepository（repo_db.py）用于部署，MemoryRepository（repo_memory.py）
用于本地开发和测试。两者语义一致：
- 点赞/收藏是按 (记录, 用户) 的原子增删，不做整文档读改写
- 评论是单条追加，时间戳由存储层赋值
- 播放列表按 owner_id 限定查询范围，owner_id=None 表示不限定（管理员）
"""
from __future__ import annotations

from typing import Protocol

from educonnect.domain import Comment, Lecture, Playlist, Role, ToggleResult, User


class Repository(Protocol):
    async def open(self) -> None: ...

    async def close(self) -> None: ...

    # 用户
    async def create_user(self, name: str, email: str, password_hash: str, role: Role) -> User: ...

    async def get_user(self, user_id: int) -> User | None: ...

    async def get_user_by_email(self, email: str) -> User | None: ...

    async def update_credentials(
        self, user_id: int, email: str | None = None, password_hash: str | None = None
    ) -> bool: ...

    async def list_teachers(self) -> list[User]: ...

    async def search_teachers(self, keyword: str) -> list[User]: ...

    async def delete_teacher_cascade(self, user_id: int) -> int: ...

    async def toggle_saved(self, user_id: int, lecture_id: int) -> ToggleResult:
        """讲座不存在（含并发删除）时抛 NotFound"""
        ...

    async def list_saved_lectures(self, user_id: int) -> list[Lecture]: ...

    # 讲座
    async def create_lecture(
        self,
        owner_id: int,
        title: str,
        subject: str | None,
        description: str | None,
        video_url: str | None,
    ) -> Lecture: ...

    async def get_lecture(self, lecture_id: int) -> Lecture | None: ...

    async def list_lectures(self, owner_id: int | None = None) -> list[Lecture]: ...

    async def get_lectures(self, lecture_ids: list[int]) -> list[Lecture]: ...

    async def update_lecture(
        self,
        lecture_id: int,
        title: str,
        subject: str | None,
        description: str | None,
        video_url: str | None,
    ) -> Lecture | None: ...

    async def delete_lecture(self, lecture_id: int) -> bool: ...

    async def toggle_like(self, lecture_id: int, user_id: int) -> ToggleResult | None: ...

    async def add_comment(self, lecture_id: int, author_id: int, text: str) -> list[Comment] | None: ...

    async def list_comments(self, lecture_id: int) -> list[Comment] | None: ...

    # 播放列表
    async def create_playlist(self, owner_id: int, title: str, lecture_ids: list[int]) -> Playlist: ...

    async def list_playlists(self, owner_id: int) -> list[Playlist]: ...

    async def update_playlist(
        self, playlist_id: int, lecture_ids: list[int], owner_id: int | None
    ) -> Playlist | None: ...

    async def delete_playlist(self, playlist_id: int, owner_id: int | None) -> bool: ...
