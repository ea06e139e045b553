"""
错误类型

每种错误自带HTTP状态码，由 main.py 中的异常处理器统一渲染为
{"error": kind, "message": text}
"""
from __future__ import annotations


class AppError(Exception):
    """业务错误基类"""

    status_code = 500
    kind = "error"
    default_message = "Server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingCredential(AppError):
    status_code = 401
    kind = "missing_credential"
    default_message = "Access denied. No token provided."


class InvalidCredential(AppError):
    # 签名错误、载荷篡改、过期统一归为一种
    status_code = 400
    kind = "invalid_credential"
    default_message = "Invalid token"


class InvalidLogin(AppError):
    status_code = 401
    kind = "invalid_login"
    default_message = "Invalid email or password"


class Forbidden(AppError):
    status_code = 403
    kind = "forbidden"
    default_message = "Access denied"


class NotOwner(Forbidden):
    kind = "not_owner"
    default_message = "Not authorized"


class NotFound(AppError):
    status_code = 404
    kind = "not_found"
    default_message = "Not found"


class ValidationFailure(AppError):
    status_code = 400
    kind = "validation_failure"
    default_message = "Invalid request"


class Conflict(ValidationFailure):
    kind = "conflict"
    default_message = "Email already in use"


class StoreFailure(AppError):
    # 底层数据库错误只记日志，不把细节暴露给客户端
    status_code = 500
    kind = "store_failure"
    default_message = "Server error"
