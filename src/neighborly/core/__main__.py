"""CLI 入口模块 -- python -m neighborly.core <command>

支持的命令：
  init-db            创建数据库与全部表
  recompute-ratings  按 ratings 表重新计算所有用户的评分均值
"""

import asyncio
import sys

from .config import get_db_path

_COMMANDS = {
    "init-db": "创建数据库与全部表",
    "recompute-ratings": "按 ratings 表重新计算所有用户的评分均值",
}


def _print_usage() -> None:
    print("用法: python -m neighborly.core <command>")
    print("命令:")
    for name, help_text in _COMMANDS.items():
        print(f"  {name:<18} {help_text}")


def main(argv: list[str] | None = None) -> None:
    """CLI 主入口"""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        _print_usage()
        sys.exit(1)

    command = args[0]

    if command == "init-db":
        asyncio.run(init_database())
    elif command == "recompute-ratings":
        asyncio.run(recompute_ratings())
    else:
        print(f"未知命令: {command}")
        print(f"可用命令: {', '.join(_COMMANDS)}")
        sys.exit(1)


async def init_database() -> None:
    """创建数据库（幂等）"""
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    await store_group.conn.close()
    print("初始化完成")


async def recompute_ratings() -> int:
    """重新计算评分均值

    Returns:
        处理的用户数
    """
    from .store import create_store_group, recompute_user_rating

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    print("开始重新计算评分...")

    store_group = await create_store_group(db_path)

    try:
        user_ids = await store_group.rating_store.list_rated_user_ids()
        async with store_group.atomic():
            for user_id in user_ids:
                await recompute_user_rating(
                    store_group.rating_store,
                    store_group.user_store,
                    user_id,
                )
        print(f"重新计算完成，处理 {len(user_ids)} 个用户")
        return len(user_ids)
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
