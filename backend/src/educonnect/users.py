"""
用户目录、收藏与管理员操作
"""
from __future__ import annotations

import logging

from educonnect.auth import create_account, hash_password
from educonnect.config import Settings
from educonnect.domain import Identity, Lecture, Role, ToggleResult, User
from educonnect.errors import NotFound
from educonnect.repo import Repository

logger = logging.getLogger(__name__)


async def create_teacher(repo: Repository, settings: Settings, name: str, email: str, password: str) -> User:
    """管理员开通教师账号"""
    teacher = await create_account(repo, settings, name, email, password, Role.TEACHER)
    logger.info(f"Teacher account {teacher.id} created")
    return teacher


async def list_teachers(repo: Repository) -> list[User]:
    return await repo.list_teachers()


async def search_teachers(repo: Repository, keyword: str) -> list[User]:
    """按姓名或邮箱模糊查找教师（不区分大小写，关键字按字面匹配）"""
    return await repo.search_teachers(keyword)


async def get_user(repo: Repository, user_id: int) -> User:
    user = await repo.get_user(user_id)
    if not user:
        raise NotFound("User not found")
    return user


async def _get_teacher(repo: Repository, teacher_id: int) -> User:
    teacher = await repo.get_user(teacher_id)
    if not teacher or teacher.role is not Role.TEACHER:
        raise NotFound("Teacher not found")
    return teacher


async def toggle_saved(repo: Repository, identity: Identity, lecture_id: int) -> ToggleResult:
    if not await repo.get_lecture(lecture_id):
        raise NotFound("Lecture not found")
    return await repo.toggle_saved(identity.id, lecture_id)


async def saved_lectures(repo: Repository, identity: Identity) -> list[Lecture]:
    return await repo.list_saved_lectures(identity.id)


async def teachers_with_lectures(repo: Repository) -> list[tuple[User, list[Lecture]]]:
    teachers = await repo.list_teachers()
    return [(t, await repo.list_lectures(t.id)) for t in teachers]


async def delete_teacher(repo: Repository, teacher_id: int) -> None:
    """删除教师及其全部讲座"""
    await _get_teacher(repo, teacher_id)
    removed = await repo.delete_teacher_cascade(teacher_id)
    logger.info(f"Teacher {teacher_id} deleted with {removed} lecture(s)")


async def update_teacher_credentials(
    repo: Repository,
    settings: Settings,
    teacher_id: int,
    email: str | None = None,
    password: str | None = None,
) -> None:
    await _get_teacher(repo, teacher_id)
    await _update_credentials(repo, settings, teacher_id, email, password)


async def update_own_credentials(
    repo: Repository,
    settings: Settings,
    identity: Identity,
    email: str | None = None,
    password: str | None = None,
) -> None:
    # Token 仍有效但账号可能已被删除
    await get_user(repo, identity.id)
    await _update_credentials(repo, settings, identity.id, email, password)


async def _update_credentials(
    repo: Repository, settings: Settings, user_id: int, email: str | None, password: str | None
) -> None:
    password_hash = hash_password(password, settings.bcrypt_rounds) if password else None
    if not await repo.update_credentials(user_id, email=email or None, password_hash=password_hash):
        raise NotFound("User not found")
