"""
认证与鉴权模块

提供：
- hash_password() / check_password(): bcrypt 口令散列
- issue_token() / authenticate(): 签发、校验 JWT，返回调用者身份
- require_role() / authorize_owner_mutation(): 角色与所有权检查
- register() / login(): 学生自助注册、邮箱密码登录

身份和角色直接取自已签名的 Token，请求期间不回查数据库；
角色变更或删号要等 Token 过期（JWT_EXPIRE_MINUTES）后才生效；
例外是创建讲座，落库前会回查创建者仍是教师（见 lectures.create_lecture）。
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

import bcrypt
from jose import JWTError, jwt

from educonnect.config import Settings
from educonnect.domain import Identity, Role, User
from educonnect.errors import (
    Conflict,
    Forbidden,
    InvalidCredential,
    InvalidLogin,
    MissingCredential,
    NotOwner,
    ValidationFailure,
)
from educonnect.repo import Repository

logger = logging.getLogger(__name__)


def hash_password(password: str, rounds: int = 12) -> str:
    encoded = password.encode()
    # bcrypt 只取前72字节，超长直接拒绝
    if len(encoded) > 72:
        raise ValidationFailure("Password too long")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode()


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # 库里存了非法散列
        logger.warning("Malformed password hash encountered")
        return False


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> str:
    """邮箱不存在时也跑一次bcrypt，防时序侧信道枚举邮箱"""
    return hash_password("educonnect-dummy", rounds)


def issue_token(identity: Identity, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(identity.id),
        "role": identity.role.value,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _extract_token(credential: str) -> str:
    # 兼容旧客户端直接传裸Token，也接受 "Bearer <token>"
    parts = credential.strip().split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip()
    return credential.strip()


def authenticate(credential: str | None, settings: Settings) -> Identity:
    """
    校验凭据，返回身份

    Raises:
        MissingCredential: 未提供凭据
        InvalidCredential: 签名错误、载荷被篡改或已过期
    """
    if not credential or not credential.strip():
        raise MissingCredential()

    token = _extract_token(credential)
    try:
        payload: dict[str, Any] = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return Identity(id=int(payload["sub"]), role=Role(payload["role"]))
    except (JWTError, KeyError, ValueError, TypeError) as exc:
        logger.debug(f"Token rejected: {exc}")
        raise InvalidCredential() from exc


def require_role(identity: Identity, *roles: Role) -> Identity:
    """调用方必须先通过 authenticate()"""
    if identity.role not in roles:
        allowed = " or ".join(r.value.capitalize() + "s" for r in roles)
        raise Forbidden(f"Access denied. {allowed} only.")
    return identity


def authorize_owner_mutation(identity: Identity, owner_id: int) -> None:
    """记录创建者或管理员才能修改；调用前记录必须已查到"""
    if identity.id != owner_id and not identity.is_admin:
        raise NotOwner()


def owner_scope(identity: Identity) -> int | None:
    """按所有者限定查询范围，管理员不限定"""
    return None if identity.is_admin else identity.id


async def create_account(repo: Repository, settings: Settings, name: str, email: str, password: str, role: Role) -> User:
    if await repo.get_user_by_email(email):
        raise Conflict()
    return await repo.create_user(name, email, hash_password(password, settings.bcrypt_rounds), role)


async def register(repo: Repository, settings: Settings, name: str, email: str, password: str) -> User:
    """自助注册，角色固定为学生"""
    user = await create_account(repo, settings, name, email, password, Role.STUDENT)
    logger.info(f"Student registered: id={user.id}")
    return user


async def login(repo: Repository, settings: Settings, email: str, password: str) -> tuple[User, str]:
    """
    邮箱密码登录

    返回 (用户, token)

    Raises:
        InvalidLogin: 邮箱不存在或密码错误
    """
    user = await repo.get_user_by_email(email)

    # 始终执行bcrypt校验，防时序攻击
    password_hash = user.password_hash if user else _dummy_hash(settings.bcrypt_rounds)
    if not check_password(password, password_hash) or user is None:
        raise InvalidLogin()

    token = issue_token(Identity(id=user.id, role=user.role), settings)
    return user, token
