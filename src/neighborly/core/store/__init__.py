"""Neighborly Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from .atomic import (
    append_task_event,
    atomic,
    average_rating,
    delete_community_cascade,
    insert_rating_and_recompute,
    recompute_user_rating,
)
from .community_store import SqliteCommunityStore
from .conversation_store import SqliteConversationStore
from .event_store import SqliteEventStore
from .message_store import SqliteMessageStore
from .rating_store import SqliteRatingStore
from .sqlite_init import init_db
from .task_store import SqliteTaskStore
from .transaction_store import SqliteTransactionStore
from .user_store import SqliteUserStore


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接与同一把锁

    所有请求共用一个 aiosqlite 连接，连接上未提交的写入对同连接的读取可见。
    因此读取也要经过锁：写入走 atomic()，请求级读取走 read()，
    读取只会看到已提交的数据。两者都不可重入，不能在对方块内嵌套使用。
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.write_lock = asyncio.Lock()
        self.user_store = SqliteUserStore(conn)
        self.community_store = SqliteCommunityStore(conn)
        self.task_store = SqliteTaskStore(conn)
        self.conversation_store = SqliteConversationStore(conn)
        self.message_store = SqliteMessageStore(conn)
        self.transaction_store = SqliteTransactionStore(conn)
        self.rating_store = SqliteRatingStore(conn)
        self.event_store = SqliteEventStore(conn)

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        """在写锁保护下执行一个数据库事务"""
        async with atomic(self.conn, self.write_lock):
            yield

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        """等待进行中的写事务提交或回滚后再读取"""
        async with self.write_lock:
            yield


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径（":memory:" 用于测试）

    Returns:
        StoreGroup 实例
    """
    if db_path != ":memory:":
        # 确保数据库目录存在
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteUserStore",
    "SqliteCommunityStore",
    "SqliteTaskStore",
    "SqliteConversationStore",
    "SqliteMessageStore",
    "SqliteTransactionStore",
    "SqliteRatingStore",
    "SqliteEventStore",
    "init_db",
    "atomic",
    "append_task_event",
    "average_rating",
    "recompute_user_rating",
    "insert_rating_and_recompute",
    "delete_community_cascade",
]
