"""
Pydantic模型定义

JSON 字段统一用 camelCase（videoUrl、lectureIds…），与现有前端保持一致；
请求体同时接受 snake_case。
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from educonnect.domain import Comment, Lecture, Playlist, User


class Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# 注册请求
class RegisterRequest(Schema):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)


# 登录请求
class LoginRequest(Schema):
    email: EmailStr
    password: str = Field(..., min_length=1)


# 管理员创建教师
class CreateTeacherRequest(RegisterRequest):
    pass


# 管理员修改凭据（两项都可选）
class CredentialsUpdateRequest(Schema):
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=6, max_length=72)


class MessageResponse(Schema):
    message: str


# 用户信息（不含密码散列）
class UserInfo(Schema):
    id: int
    name: str
    email: str
    role: str

    @classmethod
    def from_domain(cls, user: User) -> UserInfo:
        return cls(id=user.id, name=user.name, email=user.email, role=user.role.value)


class UserName(Schema):
    id: int
    name: str


class TokenResponse(Schema):
    token: str
    user: UserInfo


class RegisterResponse(MessageResponse):
    user: UserInfo


class TeacherResponse(MessageResponse):
    teacher: UserInfo


# 创建/编辑讲座
class LectureRequest(Schema):
    title: str = Field(..., min_length=1, max_length=255)
    subject: str | None = Field(None, max_length=255)
    description: str | None = None
    video_url: str | None = Field(None, max_length=2048)


class CommentRequest(Schema):
    text: str = ""


class CommentInfo(Schema):
    text: str
    author_id: int | None
    author_name: str | None
    created_at: datetime

    @classmethod
    def from_domain(cls, comment: Comment) -> CommentInfo:
        return cls(
            text=comment.text,
            author_id=comment.author_id,
            author_name=comment.author_name,
            created_at=comment.created_at,
        )


# 讲座信息
class LectureInfo(Schema):
    id: int
    title: str
    subject: str | None
    description: str | None
    video_url: str | None
    owner_id: int
    owner_name: str | None
    liker_ids: list[int]
    likes: int
    comments: list[CommentInfo]
    created_at: datetime | None

    @classmethod
    def from_domain(cls, lecture: Lecture) -> LectureInfo:
        return cls(
            id=lecture.id,
            title=lecture.title,
            subject=lecture.subject,
            description=lecture.description,
            video_url=lecture.video_url,
            owner_id=lecture.owner_id,
            owner_name=lecture.owner_name,
            liker_ids=list(lecture.liker_ids),
            likes=len(lecture.liker_ids),
            comments=[CommentInfo.from_domain(c) for c in lecture.comments],
            created_at=lecture.created_at,
        )


class LectureResponse(MessageResponse):
    lecture: LectureInfo


class LikeResponse(MessageResponse):
    liked: bool
    likes: int


class SaveResponse(MessageResponse):
    saved: bool


class CommentsResponse(MessageResponse):
    comments: list[CommentInfo]


class TeacherDetails(UserInfo):
    lectures: list[LectureInfo]


# 播放列表
class PlaylistCreateRequest(Schema):
    title: str = Field(..., min_length=1, max_length=255)
    lecture_ids: list[int] = Field(default_factory=list)


class PlaylistUpdateRequest(Schema):
    lecture_ids: list[int]


class PlaylistInfo(Schema):
    id: int
    title: str
    owner_id: int
    lecture_ids: list[int]
    lectures: list[LectureInfo] = Field(default_factory=list)
    created_at: datetime | None

    @classmethod
    def from_domain(cls, playlist: Playlist, lectures: list[Lecture] | None = None) -> PlaylistInfo:
        return cls(
            id=playlist.id,
            title=playlist.title,
            owner_id=playlist.owner_id,
            lecture_ids=list(playlist.lecture_ids),
            lectures=[LectureInfo.from_domain(lec) for lec in lectures or []],
            created_at=playlist.created_at,
        )


class PlaylistResponse(MessageResponse):
    playlist: PlaylistInfo
