"""
运行配置

所有配置从环境变量读取，启动时构造一次 Settings，显式传给 create_app()。
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    jwt_secret: str
    database_url: str | None = None
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60
    bcrypt_rounds: int = 12
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls) -> Settings:
        """从环境变量加载配置，JWT_SECRET 缺失时直接失败"""
        secret = os.environ.get("JWT_SECRET")
        if not secret:
            raise RuntimeError("JWT_SECRET environment variable not set")

        origins = os.environ.get("CORS_ORIGINS", "*")
        return cls(
            jwt_secret=secret,
            database_url=os.environ.get("DATABASE_URL") or None,
            jwt_algorithm=os.environ.get("JWT_ALGORITHM", "HS256"),
            jwt_expire_minutes=int(os.environ.get("JWT_EXPIRE_MINUTES", "60")),
            bcrypt_rounds=int(os.environ.get("BCRYPT_ROUNDS", "12")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )


def configure_logging(level: str = "INFO") -> None:
    """初始化根日志（重复调用无副作用）"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
