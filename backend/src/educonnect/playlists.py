"""
播放列表业务逻辑

所有写操作按所有者限定查询：他人的播放列表与不存在的一样返回404，
不暴露记录是否存在。管理员不受限定。
"""
from __future__ import annotations

import logging

from educonnect.auth import owner_scope
from educonnect.domain import Identity, Lecture, Playlist
from educonnect.errors import NotFound
from educonnect.repo import Repository

logger = logging.getLogger(__name__)


async def create_playlist(repo: Repository, identity: Identity, title: str, lecture_ids: list[int]) -> Playlist:
    return await repo.create_playlist(identity.id, title, lecture_ids)


async def list_own_playlists(repo: Repository, identity: Identity) -> list[tuple[Playlist, list[Lecture]]]:
    """当前用户的播放列表，附带解析后的讲座（悬空引用跳过）"""
    playlists = await repo.list_playlists(identity.id)
    return [(p, await repo.get_lectures(p.lecture_ids)) for p in playlists]


async def update_playlist(repo: Repository, identity: Identity, playlist_id: int, lecture_ids: list[int]) -> Playlist:
    """整体替换讲座列表，不做引用完整性检查"""
    playlist = await repo.update_playlist(playlist_id, lecture_ids, owner_scope(identity))
    if not playlist:
        raise NotFound("Playlist not found")
    return playlist


async def delete_playlist(repo: Repository, identity: Identity, playlist_id: int) -> None:
    if not await repo.delete_playlist(playlist_id, owner_scope(identity)):
        raise NotFound("Playlist not found")
    logger.info(f"Playlist {playlist_id} deleted by user {identity.id}")
