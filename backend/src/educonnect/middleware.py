"""
FastAPI中间件：JWT鉴权

AuthMiddleware 对非公开路由校验 authorization 头，把身份注入 request.state.identity；
角色检查由路由上的 role_required() 依赖完成，总是在中间件之后执行。
"""
from __future__ import annotations

from typing import Callable

from fastapi import Depends, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from educonnect.auth import authenticate, require_role
from educonnect.config import Settings
from educonnect.domain import Identity, Role
from educonnect.errors import AppError, MissingCredential


# 任意方法都放行的路径（精确匹配，避免前缀误放行）
EXCLUDE_PATHS = {
    "/",
    "/health",
    "/docs",
    "/docs/oauth2-redirect",
    "/openapi.json",
    "/redoc",
}

# 按 (方法, 路径) 放行的公开接口
PUBLIC_ROUTES = {
    ("POST", "/api/auth/register"),
    ("POST", "/api/auth/login"),
    ("GET", "/api/lectures"),
    ("GET", "/api/users/teachers"),
}


def error_response(exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "message": exc.message},
    )


def is_public(method: str, path: str) -> bool:
    path = path.rstrip("/") or "/"
    return path in EXCLUDE_PATHS or (method.upper(), path) in PUBLIC_ROUTES


class AuthMiddleware(BaseHTTPMiddleware):
    """JWT鉴权中间件"""

    def __init__(self, app: ASGIApp, settings: Settings) -> None:
        super().__init__(app)
        self.settings = settings

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if is_public(request.method, request.url.path):
            return await call_next(request)

        try:
            identity = authenticate(request.headers.get("authorization"), self.settings)
        except AppError as exc:
            return error_response(exc)

        # 注入身份到request.state
        request.state.identity = identity

        return await call_next(request)


def current_identity(request: Request) -> Identity:
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise MissingCredential()
    return identity


def role_required(*roles: Role) -> Callable[..., Identity]:
    """路由依赖：要求调用者属于给定角色之一"""

    def dependency(identity: Identity = Depends(current_identity)) -> Identity:
        return require_role(identity, *roles)

    return dependency
