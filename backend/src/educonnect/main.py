from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from educonnect import lectures, playlists, users
from educonnect.auth import login, register
from educonnect.config import Settings, configure_logging
from educonnect.domain import Identity, Role
from educonnect.errors import AppError, StoreFailure, ValidationFailure
from educonnect.middleware import AuthMiddleware, current_identity, error_response, role_required
from educonnect.models import (
    CommentRequest,
    CommentsResponse,
    CommentInfo,
    CreateTeacherRequest,
    CredentialsUpdateRequest,
    LectureInfo,
    LectureRequest,
    LectureResponse,
    LikeResponse,
    LoginRequest,
    MessageResponse,
    PlaylistCreateRequest,
    PlaylistInfo,
    PlaylistResponse,
    PlaylistUpdateRequest,
    RegisterRequest,
    RegisterResponse,
    SaveResponse,
    TeacherDetails,
    TeacherResponse,
    TokenResponse,
    UserInfo,
    UserName,
)
from educonnect.repo import Repository

logger = logging.getLogger(__name__)

router = APIRouter()


def get_repo(request: Request) -> Repository:
    return request.app.state.repo


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


@router.get("/")
async def root() -> dict[str, str]:
    return {"message": "EduConnect API is running!"}


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


# 认证

@router.post("/api/auth/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def api_register(
    req: RegisterRequest,
    repo: Repository = Depends(get_repo),
    settings: Settings = Depends(get_settings),
) -> RegisterResponse:
    """学生自助注册"""
    user = await register(repo, settings, req.name, req.email, req.password)
    return RegisterResponse(message="User registered successfully", user=UserInfo.from_domain(user))


@router.post("/api/auth/login", response_model=TokenResponse)
async def api_login(
    req: LoginRequest,
    repo: Repository = Depends(get_repo),
    settings: Settings = Depends(get_settings),
) -> TokenResponse:
    """邮箱密码登录，返回JWT"""
    user, token = await login(repo, settings, req.email, req.password)
    return TokenResponse(token=token, user=UserInfo.from_domain(user))


# 管理员

@router.post("/api/admin/create-teacher", response_model=TeacherResponse, status_code=status.HTTP_201_CREATED)
async def api_create_teacher(
    req: CreateTeacherRequest,
    _: Identity = Depends(role_required(Role.ADMIN)),
    repo: Repository = Depends(get_repo),
    settings: Settings = Depends(get_settings),
) -> TeacherResponse:
    teacher = await users.create_teacher(repo, settings, req.name, req.email, req.password)
    return TeacherResponse(message="Teacher created successfully", teacher=UserInfo.from_domain(teacher))


# 讲座

@router.post("/api/lectures/", response_model=LectureResponse, status_code=status.HTTP_201_CREATED)
async def api_create_lecture(
    req: LectureRequest,
    identity: Identity = Depends(role_required(Role.TEACHER)),
    repo: Repository = Depends(get_repo),
) -> LectureResponse:
    lecture = await lectures.create_lecture(
        repo, identity, req.title, req.subject, req.description, req.video_url
    )
    return LectureResponse(message="Lecture created", lecture=LectureInfo.from_domain(lecture))


@router.get("/api/lectures/", response_model=list[LectureInfo])
async def api_list_lectures(repo: Repository = Depends(get_repo)) -> list[LectureInfo]:
    """全部讲座（公开），附带教师名和评论者名"""
    return [LectureInfo.from_domain(lec) for lec in await lectures.list_lectures(repo)]


@router.get("/api/lectures/teacher/{teacher_id}", response_model=list[LectureInfo])
async def api_list_teacher_lectures(
    teacher_id: int,
    _: Identity = Depends(current_identity),
    repo: Repository = Depends(get_repo),
) -> list[LectureInfo]:
    return [LectureInfo.from_domain(lec) for lec in await lectures.list_lectures(repo, teacher_id)]


@router.put("/api/lectures/like/{lecture_id}", response_model=LikeResponse)
async def api_toggle_like(
    lecture_id: int,
    identity: Identity = Depends(current_identity),
    repo: Repository = Depends(get_repo),
) -> LikeResponse:
    result = await lectures.toggle_like(repo, identity, lecture_id)
    return LikeResponse(message="Liked" if result.added else "Unliked", liked=result.added, likes=result.count)


@router.post(
    "/api/lectures/comment/{lecture_id}",
    response_model=CommentsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def api_add_comment(
    lecture_id: int,
    req: CommentRequest,
    identity: Identity = Depends(current_identity),
    repo: Repository = Depends(get_repo),
) -> CommentsResponse:
    comments = await lectures.add_comment(repo, identity, lecture_id, req.text)
    return CommentsResponse(message="Comment added", comments=[CommentInfo.from_domain(c) for c in comments])


@router.get("/api/lectures/comments/{lecture_id}", response_model=list[CommentInfo])
async def api_list_comments(
    lecture_id: int,
    _: Identity = Depends(current_identity),
    repo: Repository = Depends(get_repo),
) -> list[CommentInfo]:
    return [CommentInfo.from_domain(c) for c in await lectures.list_comments(repo, lecture_id)]


@router.put("/api/lectures/{lecture_id}", response_model=LectureResponse)
async def api_edit_lecture(
    lecture_id: int,
    req: LectureRequest,
    identity: Identity = Depends(role_required(Role.TEACHER, Role.ADMIN)),
    repo: Repository = Depends(get_repo),
) -> LectureResponse:
    """编辑讲座（仅创建者或管理员）"""
    lecture = await lectures.edit_lecture(
        repo, identity, lecture_id, req.title, req.subject, req.description, req.video_url
    )
    return LectureResponse(message="Lecture updated", lecture=LectureInfo.from_domain(lecture))


@router.delete("/api/lectures/{lecture_id}", response_model=MessageResponse)
async def api_delete_lecture(
    lecture_id: int,
    identity: Identity = Depends(role_required(Role.TEACHER, Role.ADMIN)),
    repo: Repository = Depends(get_repo),
) -> MessageResponse:
    """删除讲座（仅创建者或管理员）"""
    await lectures.delete_lecture(repo, identity, lecture_id)
    return MessageResponse(message="Lecture deleted")


# 播放列表

@router.post("/api/playlists/create", response_model=PlaylistResponse, status_code=status.HTTP_201_CREATED)
async def api_create_playlist(
    req: PlaylistCreateRequest,
    identity: Identity = Depends(current_identity),
    repo: Repository = Depends(get_repo),
) -> PlaylistResponse:
    playlist = await playlists.create_playlist(repo, identity, req.title, req.lecture_ids)
    return PlaylistResponse(message="Playlist created", playlist=PlaylistInfo.from_domain(playlist))


@router.get("/api/playlists/my", response_model=list[PlaylistInfo])
@router.get("/api/playlists/all", response_model=list[PlaylistInfo])
async def api_my_playlists(
    identity: Identity = Depends(current_identity),
    repo: Repository = Depends(get_repo),
) -> list[PlaylistInfo]:
    """当前用户自己的播放列表（/all 为旧客户端保留的别名）"""
    return [
        PlaylistInfo.from_domain(p, lecs)
        for p, lecs in await playlists.list_own_playlists(repo, identity)
    ]


@router.put("/api/playlists/update/{playlist_id}", response_model=PlaylistResponse)
async def api_update_playlist(
    playlist_id: int,
    req: PlaylistUpdateRequest,
    identity: Identity = Depends(current_identity),
    repo: Repository = Depends(get_repo),
) -> PlaylistResponse:
    playlist = await playlists.update_playlist(repo, identity, playlist_id, req.lecture_ids)
    return PlaylistResponse(message="Playlist updated", playlist=PlaylistInfo.from_domain(playlist))


@router.delete("/api/playlists/{playlist_id}", response_model=MessageResponse)
async def api_delete_playlist(
    playlist_id: int,
    identity: Identity = Depends(current_identity),
    repo: Repository = Depends(get_repo),
) -> MessageResponse:
    await playlists.delete_playlist(repo, identity, playlist_id)
    return MessageResponse(message="Playlist deleted")


# 用户

@router.get("/api/users/search", response_model=list[UserInfo])
async def api_search_teachers(
    keyword: str = "",
    _: Identity = Depends(current_identity),
    repo: Repository = Depends(get_repo),
) -> list[UserInfo]:
    return [UserInfo.from_domain(u) for u in await users.search_teachers(repo, keyword)]


@router.get("/api/users/teachers", response_model=list[UserInfo])
async def api_list_teachers(repo: Repository = Depends(get_repo)) -> list[UserInfo]:
    return [UserInfo.from_domain(u) for u in await users.list_teachers(repo)]


@router.post("/api/users/save/{lecture_id}", response_model=SaveResponse)
async def api_toggle_saved(
    lecture_id: int,
    identity: Identity = Depends(current_identity),
    repo: Repository = Depends(get_repo),
) -> SaveResponse:
    result = await users.toggle_saved(repo, identity, lecture_id)
    return SaveResponse(message="Lecture saved" if result.added else "Lecture unsaved", saved=result.added)


@router.get("/api/users/saved/lectures", response_model=list[LectureInfo])
async def api_saved_lectures(
    identity: Identity = Depends(current_identity),
    repo: Repository = Depends(get_repo),
) -> list[LectureInfo]:
    return [LectureInfo.from_domain(lec) for lec in await users.saved_lectures(repo, identity)]


@router.get("/api/users/admin/teachers/details", response_model=list[TeacherDetails])
async def api_teacher_details(
    _: Identity = Depends(role_required(Role.ADMIN)),
    repo: Repository = Depends(get_repo),
) -> list[TeacherDetails]:
    return [
        TeacherDetails(
            **UserInfo.from_domain(t).model_dump(),
            lectures=[LectureInfo.from_domain(lec) for lec in lecs],
        )
        for t, lecs in await users.teachers_with_lectures(repo)
    ]


@router.delete("/api/users/admin/delete/{teacher_id}", response_model=MessageResponse)
async def api_delete_teacher(
    teacher_id: int,
    _: Identity = Depends(role_required(Role.ADMIN)),
    repo: Repository = Depends(get_repo),
) -> MessageResponse:
    """删除教师并级联删除其讲座"""
    await users.delete_teacher(repo, teacher_id)
    return MessageResponse(message="Teacher deleted successfully")


@router.put("/api/users/admin/update-teacher/{teacher_id}", response_model=MessageResponse)
async def api_update_teacher(
    teacher_id: int,
    req: CredentialsUpdateRequest,
    _: Identity = Depends(role_required(Role.ADMIN)),
    repo: Repository = Depends(get_repo),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    await users.update_teacher_credentials(repo, settings, teacher_id, req.email, req.password)
    return MessageResponse(message="Teacher updated successfully")


@router.put("/api/users/admin/update-self", response_model=MessageResponse)
async def api_update_self(
    req: CredentialsUpdateRequest,
    identity: Identity = Depends(role_required(Role.ADMIN)),
    repo: Repository = Depends(get_repo),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    await users.update_own_credentials(repo, settings, identity, req.email, req.password)
    return MessageResponse(message="Admin updated successfully")


@router.get("/api/users/{user_id}", response_model=UserName)
async def api_get_user_name(
    user_id: int,
    _: Identity = Depends(current_identity),
    repo: Repository = Depends(get_repo),
) -> UserName:
    user = await users.get_user(repo, user_id)
    return UserName(id=user.id, name=user.name)


async def _app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return error_response(exc)


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg", "")} for e in exc.errors()]
    return JSONResponse(
        status_code=ValidationFailure.status_code,
        content={"error": ValidationFailure.kind, "message": ValidationFailure.default_message, "errors": errors},
    )


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "http_error", "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    """兜底：未预期的异常记录堆栈，对外只返回通用错误"""
    logger.error(f"{request.method} {request.url.path} crashed: {exc!r}", exc_info=exc)
    return error_response(StoreFailure())


def create_app(settings: Settings | None = None, repo: Repository | None = None) -> FastAPI:
    """
    应用工厂

    settings 缺省时从环境变量读取；repo 缺省时使用 PostgreSQL（DATABASE_URL）
    运行：uvicorn educonnect.main:create_app --factory
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    if repo is None:
        from educonnect.repo_db import PostgresRepository

        repo = PostgresRepository(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """启动时打开连接池，关闭时释放"""
        await repo.open()
        logger.info("Store opened")
        try:
            yield
        finally:
            await repo.close()
            logger.info("Store closed")

    app = FastAPI(title="EduConnect Backend", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.repo = repo

    app.add_exception_handler(AppError, _app_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(Exception, _unhandled_error)

    # 鉴权在内层，CORS 在外层处理预检请求
    app.add_middleware(AuthMiddleware, settings=settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app
