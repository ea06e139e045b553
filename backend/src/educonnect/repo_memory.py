"""
内存存储（开发/测试用）

单进程内 asyncio 协作调度，各方法内部没有 await，因此每次调用天然原子。
"""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from educonnect.domain import Comment, Lecture, Playlist, Role, ToggleResult, User
from educonnect.errors import Conflict, NotFound


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _LectureRow:
    id: int
    title: str
    subject: str | None
    description: str | None
    video_url: str | None
    owner_id: int
    created_at: datetime
    liker_ids: list[int] = field(default_factory=list)
    # (text, author_id, created_at)；作者被删除后 author_id 置空
    comments: list[tuple[str, int | None, datetime]] = field(default_factory=list)


class MemoryRepository:
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._users: dict[int, User] = {}
        self._lectures: dict[int, _LectureRow] = {}
        self._saved: dict[int, list[int]] = {}
        self._playlists: dict[int, Playlist] = {}

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None

    # ---- 内部辅助 ----

    def _name(self, user_id: int | None) -> str | None:
        user = self._users.get(user_id) if user_id is not None else None
        return user.name if user else None

    def _comments(self, row: _LectureRow) -> list[Comment]:
        return [
            Comment(text=text, author_id=author_id, author_name=self._name(author_id), created_at=ts)
            for text, author_id, ts in row.comments
        ]

    def _lecture(self, row: _LectureRow) -> Lecture:
        return Lecture(
            id=row.id,
            title=row.title,
            subject=row.subject,
            description=row.description,
            video_url=row.video_url,
            owner_id=row.owner_id,
            owner_name=self._name(row.owner_id),
            liker_ids=list(row.liker_ids),
            comments=self._comments(row),
            created_at=row.created_at,
        )

    def _email_taken(self, email: str, exclude_id: int | None = None) -> bool:
        return any(u.email == email and u.id != exclude_id for u in self._users.values())

    # ---- 用户 ----

    async def create_user(self, name: str, email: str, password_hash: str, role: Role) -> User:
        if self._email_taken(email):
            raise Conflict()
        user = User(id=next(self._ids), name=name, email=email, password_hash=password_hash, role=role)
        self._users[user.id] = user
        return replace(user)

    async def get_user(self, user_id: int) -> User | None:
        user = self._users.get(user_id)
        return replace(user) if user else None

    async def get_user_by_email(self, email: str) -> User | None:
        for user in self._users.values():
            if user.email == email:
                return replace(user)
        return None

    async def update_credentials(
        self, user_id: int, email: str | None = None, password_hash: str | None = None
    ) -> bool:
        user = self._users.get(user_id)
        if user is None:
            return False
        if email and self._email_taken(email, exclude_id=user_id):
            raise Conflict()
        if email:
            user.email = email
        if password_hash:
            user.password_hash = password_hash
        return True

    async def list_teachers(self) -> list[User]:
        return [replace(u) for u in self._users.values() if u.role is Role.TEACHER]

    async def search_teachers(self, keyword: str) -> list[User]:
        needle = keyword.lower()
        return [
            replace(u)
            for u in self._users.values()
            if u.role is Role.TEACHER and (needle in u.name.lower() or needle in u.email.lower())
        ]

    async def delete_teacher_cascade(self, user_id: int) -> int:
        owned = [lid for lid, row in self._lectures.items() if row.owner_id == user_id]
        for lecture_id in owned:
            self._drop_lecture(lecture_id)
        self._users.pop(user_id, None)
        self._saved.pop(user_id, None)
        for row in self._lectures.values():
            if user_id in row.liker_ids:
                row.liker_ids.remove(user_id)
            row.comments = [(text, None if a == user_id else a, ts) for text, a, ts in row.comments]
        for pid in [p.id for p in self._playlists.values() if p.owner_id == user_id]:
            del self._playlists[pid]
        return len(owned)

    async def toggle_saved(self, user_id: int, lecture_id: int) -> ToggleResult:
        if lecture_id not in self._lectures:
            raise NotFound("Lecture not found")
        saved = self._saved.setdefault(user_id, [])
        if lecture_id in saved:
            saved.remove(lecture_id)
            return ToggleResult(added=False, count=len(saved))
        saved.append(lecture_id)
        return ToggleResult(added=True, count=len(saved))

    async def list_saved_lectures(self, user_id: int) -> list[Lecture]:
        return await self.get_lectures(self._saved.get(user_id, []))

    # ---- 讲座 ----

    async def create_lecture(
        self,
        owner_id: int,
        title: str,
        subject: str | None,
        description: str | None,
        video_url: str | None,
    ) -> Lecture:
        row = _LectureRow(
            id=next(self._ids),
            title=title,
            subject=subject,
            description=description,
            video_url=video_url,
            owner_id=owner_id,
            created_at=_now(),
        )
        self._lectures[row.id] = row
        return self._lecture(row)

    async def get_lecture(self, lecture_id: int) -> Lecture | None:
        row = self._lectures.get(lecture_id)
        return self._lecture(row) if row else None

    async def list_lectures(self, owner_id: int | None = None) -> list[Lecture]:
        return [
            self._lecture(row)
            for row in self._lectures.values()
            if owner_id is None or row.owner_id == owner_id
        ]

    async def get_lectures(self, lecture_ids: list[int]) -> list[Lecture]:
        # 保持传入顺序，跳过已不存在的讲座
        return [self._lecture(self._lectures[lid]) for lid in lecture_ids if lid in self._lectures]

    async def update_lecture(
        self,
        lecture_id: int,
        title: str,
        subject: str | None,
        description: str | None,
        video_url: str | None,
    ) -> Lecture | None:
        row = self._lectures.get(lecture_id)
        if row is None:
            return None
        row.title = title
        row.subject = subject
        row.description = description
        row.video_url = video_url
        return self._lecture(row)

    def _drop_lecture(self, lecture_id: int) -> bool:
        if self._lectures.pop(lecture_id, None) is None:
            return False
        for saved in self._saved.values():
            while lecture_id in saved:
                saved.remove(lecture_id)
        return True

    async def delete_lecture(self, lecture_id: int) -> bool:
        return self._drop_lecture(lecture_id)

    async def toggle_like(self, lecture_id: int, user_id: int) -> ToggleResult | None:
        row = self._lectures.get(lecture_id)
        if row is None:
            return None
        if user_id in row.liker_ids:
            row.liker_ids.remove(user_id)
            return ToggleResult(added=False, count=len(row.liker_ids))
        row.liker_ids.append(user_id)
        return ToggleResult(added=True, count=len(row.liker_ids))

    async def add_comment(self, lecture_id: int, author_id: int, text: str) -> list[Comment] | None:
        row = self._lectures.get(lecture_id)
        if row is None:
            return None
        row.comments.append((text, author_id, _now()))
        return self._comments(row)

    async def list_comments(self, lecture_id: int) -> list[Comment] | None:
        row = self._lectures.get(lecture_id)
        return self._comments(row) if row else None

    # ---- 播放列表 ----

    async def create_playlist(self, owner_id: int, title: str, lecture_ids: list[int]) -> Playlist:
        playlist = Playlist(
            id=next(self._ids),
            title=title,
            owner_id=owner_id,
            lecture_ids=list(lecture_ids),
            created_at=_now(),
        )
        self._playlists[playlist.id] = playlist
        return replace(playlist, lecture_ids=list(playlist.lecture_ids))

    async def list_playlists(self, owner_id: int) -> list[Playlist]:
        return [
            replace(p, lecture_ids=list(p.lecture_ids))
            for p in self._playlists.values()
            if p.owner_id == owner_id
        ]

    def _scoped_playlist(self, playlist_id: int, owner_id: int | None) -> Playlist | None:
        playlist = self._playlists.get(playlist_id)
        if playlist is None or (owner_id is not None and playlist.owner_id != owner_id):
            return None
        return playlist

    async def update_playlist(
        self, playlist_id: int, lecture_ids: list[int], owner_id: int | None
    ) -> Playlist | None:
        playlist = self._scoped_playlist(playlist_id, owner_id)
        if playlist is None:
            return None
        playlist.lecture_ids = list(lecture_ids)
        return replace(playlist, lecture_ids=list(playlist.lecture_ids))

    async def delete_playlist(self, playlist_id: int, owner_id: int | None) -> bool:
        if self._scoped_playlist(playlist_id, owner_id) is None:
            return False
        del self._playlists[playlist_id]
        return True
