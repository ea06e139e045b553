"""
讲座管理业务逻辑
"""
from __future__ import annotations

import logging

from educonnect.auth import authorize_owner_mutation
from educonnect.domain import Comment, Identity, Lecture, Role, ToggleResult
from educonnect.errors import Forbidden, NotFound
from educonnect.repo import Repository

logger = logging.getLogger(__name__)


async def create_lecture(
    repo: Repository,
    identity: Identity,
    title: str,
    subject: str | None = None,
    description: str | None = None,
    video_url: str | None = None,
) -> Lecture:
    """
    创建讲座，创建者即当前身份

    Token 里的角色可能已过时（教师被删除），落库前回查一次创建者
    """
    owner = await repo.get_user(identity.id)
    if not owner or owner.role is not Role.TEACHER:
        raise Forbidden("Access denied. Teachers only.")

    lecture = await repo.create_lecture(identity.id, title, subject, description, video_url)
    logger.info(f"Lecture {lecture.id} created by user {identity.id}")
    return lecture


async def list_lectures(repo: Repository, owner_id: int | None = None) -> list[Lecture]:
    return await repo.list_lectures(owner_id)


async def get_lecture(repo: Repository, lecture_id: int) -> Lecture:
    lecture = await repo.get_lecture(lecture_id)
    if not lecture:
        raise NotFound("Lecture not found")
    return lecture


async def edit_lecture(
    repo: Repository,
    identity: Identity,
    lecture_id: int,
    title: str,
    subject: str | None = None,
    description: str | None = None,
    video_url: str | None = None,
) -> Lecture:
    """
    编辑讲座（整体替换四个字段）

    先查记录再比对所有者：不存在 -> 404，非创建者且非管理员 -> 403
    """
    lecture = await get_lecture(repo, lecture_id)
    authorize_owner_mutation(identity, lecture.owner_id)

    updated = await repo.update_lecture(lecture_id, title, subject, description, video_url)
    if not updated:
        raise NotFound("Lecture not found")
    return updated


async def delete_lecture(repo: Repository, identity: Identity, lecture_id: int) -> None:
    lecture = await get_lecture(repo, lecture_id)
    authorize_owner_mutation(identity, lecture.owner_id)

    if not await repo.delete_lecture(lecture_id):
        raise NotFound("Lecture not found")
    logger.info(f"Lecture {lecture_id} deleted by user {identity.id}")


async def toggle_like(repo: Repository, identity: Identity, lecture_id: int) -> ToggleResult:
    """点赞/取消点赞，返回切换后的状态和点赞数"""
    result = await repo.toggle_like(lecture_id, identity.id)
    if result is None:
        raise NotFound("Lecture not found")
    return result


async def add_comment(repo: Repository, identity: Identity, lecture_id: int, text: str) -> list[Comment]:
    """追加评论，返回按插入顺序排列的全部评论（新评论在最后）"""
    comments = await repo.add_comment(lecture_id, identity.id, text)
    if comments is None:
        raise NotFound("Lecture not found")
    return comments


async def list_comments(repo: Repository, lecture_id: int) -> list[Comment]:
    comments = await repo.list_comments(lecture_id)
    if comments is None:
        raise NotFound("Lecture not found")
    return comments
