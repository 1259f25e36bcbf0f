"""原子事务封装

所有多语句写入都在 atomic() 内执行：同一连接上的写入者由 asyncio.Lock 串行化，
块正常结束时提交，任何异常都回滚并继续抛出。
本模块中的其他函数都不自行提交，必须在 atomic() 块内调用。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

import aiosqlite
from ulid import ULID

from ..config import MONEY_SCALE
from ..models.base import ApiModel
from ..models.enums import EventType
from ..models.event import Event
from ..models.rating import Rating
from .event_store import SqliteEventStore
from .rating_store import SqliteRatingStore
from .user_store import SqliteUserStore


@asynccontextmanager
async def atomic(conn: aiosqlite.Connection, lock: asyncio.Lock) -> AsyncIterator[None]:
    """串行化写入并在同一 SQLite 事务内提交

    Raises:
        Exception: 块内任何异常，回滚后原样抛出
    """
    async with lock:
        try:
            yield
            await conn.commit()
        except BaseException:
            await conn.rollback()
            raise


async def append_task_event(
    event_store: SqliteEventStore,
    task_id: str,
    event_type: EventType,
    actor_id: str,
    payload: ApiModel,
    ts: datetime,
) -> Event:
    """分配下一个 task_seq 并追加时间线事件"""
    event = Event(
        event_id=str(ULID()),
        task_id=task_id,
        task_seq=await event_store.get_next_task_seq(task_id),
        ts=ts,
        type=event_type,
        actor_id=actor_id,
        payload=payload.model_dump(mode="json", by_alias=True),
    )
    await event_store.append_event(event)
    return event


def average_rating(scores: list[int]) -> Decimal:
    """评分均值，两位小数，四舍五入；没有评分时为 0.00"""
    if not scores:
        return Decimal(0).quantize(Decimal(MONEY_SCALE))
    mean = Decimal(sum(scores)) / Decimal(len(scores))
    return mean.quantize(Decimal(MONEY_SCALE), rounding=ROUND_HALF_UP)


async def recompute_user_rating(
    rating_store: SqliteRatingStore,
    user_store: SqliteUserStore,
    user_id: str,
) -> Decimal:
    """按 ratings 表重新计算用户评分均值并写回"""
    value = average_rating(await rating_store.get_scores(user_id))
    await user_store.set_rating(user_id, value)
    return value


async def insert_rating_and_recompute(
    rating_store: SqliteRatingStore,
    user_store: SqliteUserStore,
    rating: Rating,
) -> Decimal:
    """写入评分并重新计算被评分人的均值（同一事务）

    Returns:
        被评分人的新均值
    """
    await rating_store.insert_rating(rating)
    return await recompute_user_rating(rating_store, user_store, rating.rated_id)


async def delete_community_cascade(conn: aiosqlite.Connection, community_id: str) -> int:
    """删除社区及其全部从属数据

    顺序：成员关系 -> 每个任务的会话消息、任务消息、会话、交易、评分、事件 -> 任务 -> 社区。

    Returns:
        删除的任务数
    """
    await conn.execute(
        "DELETE FROM community_members WHERE community_id = ?",
        (community_id,),
    )

    cursor = await conn.execute(
        "SELECT id FROM tasks WHERE community_id = ?",
        (community_id,),
    )
    task_ids = [row[0] for row in await cursor.fetchall()]

    for task_id in task_ids:
        await conn.execute(
            """
            DELETE FROM messages
            WHERE conversation_id IN (SELECT id FROM conversations WHERE task_id = ?)
            """,
            (task_id,),
        )
        await conn.execute("DELETE FROM messages WHERE task_id = ?", (task_id,))
        await conn.execute("DELETE FROM conversations WHERE task_id = ?", (task_id,))
        await conn.execute("DELETE FROM transactions WHERE task_id = ?", (task_id,))
        await conn.execute("DELETE FROM ratings WHERE task_id = ?", (task_id,))
        await conn.execute("DELETE FROM events WHERE task_id = ?", (task_id,))

    await conn.execute("DELETE FROM tasks WHERE community_id = ?", (community_id,))
    await conn.execute("DELETE FROM communities WHERE id = ?", (community_id,))
    return len(task_ids)
