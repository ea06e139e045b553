"""
CLI工具：数据库初始化、创建管理员等管理命令
"""
from __future__ import annotations

import asyncio
import sys

from educonnect.auth import create_account
from educonnect.config import Settings, configure_logging
from educonnect.db import init_db
from educonnect.domain import Role
from educonnect.errors import AppError
from educonnect.repo_db import PostgresRepository

USAGE = """Usage: python -m educonnect.cli <command>
Commands:
  init-db                               Initialize database schema
  create-admin <name> <email> <password>  Create an admin account"""


async def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(USAGE)
        return 1

    command, args = argv[0], argv[1:]
    if command not in ("init-db", "create-admin"):
        print(f"Unknown command: {command}")
        return 1
    if command == "create-admin" and len(args) != 3:
        print(USAGE)
        return 1

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    repo = PostgresRepository(settings.database_url)
    await repo.open()
    try:
        if command == "init-db":
            print("Initializing database schema...")
            await init_db(repo.pool)
            print("Database schema initialized successfully.")
        else:
            name, email, password = args
            admin = await create_account(repo, settings, name, email, password, Role.ADMIN)
            print(f"Admin account created: id={admin.id} email={admin.email}")
        return 0
    except (AppError, RuntimeError, FileNotFoundError) as e:
        print(f"Command {command} failed: {e}")
        return 1
    finally:
        await repo.close()


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
