"""
领域对象：角色、身份、用户、讲座、评论、播放列表
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


@dataclass(frozen=True)
class Identity:
    """从已验证Token中取出的调用者身份（不回查数据库）"""

    id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass
class User:
    id: int
    name: str
    email: str
    password_hash: str
    role: Role


@dataclass
class Comment:
    text: str
    author_id: int | None
    author_name: str | None
    created_at: datetime


@dataclass
class Lecture:
    id: int
    title: str
    subject: str | None
    description: str | None
    video_url: str | None
    owner_id: int
    owner_name: str | None = None
    liker_ids: list[int] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    created_at: datetime | None = None


@dataclass
class Playlist:
    id: int
    title: str
    owner_id: int
    # 允许重复和悬空引用，不做引用完整性检查
    lecture_ids: list[int] = field(default_factory=list)
    created_at: datetime | None = None


@dataclass
class ToggleResult:
    added: bool
    count: int = 0
