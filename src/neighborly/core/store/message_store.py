"""MessageStore SQLite 实现

消息 append-only。读取按 created_at 升序，时间戳相同时按插入顺序（rowid）。
"""

from datetime import datetime
from decimal import Decimal

import aiosqlite

from ..models.enums import MessageType
from ..models.message import (
    ConversationScope,
    Message,
    MessageScope,
    MessageWithSender,
    TaskScope,
)
from ..models.user import UserProfile

_SELECT_WITH_SENDER = """
SELECT m.*,
       u.first_name AS sender_first_name,
       u.last_name AS sender_last_name,
       u.profile_image_url AS sender_profile_image_url,
       u.rating AS sender_rating,
       u.completed_tasks AS sender_completed_tasks,
       u.help_given AS sender_help_given,
       u.help_received AS sender_help_received
FROM messages m
JOIN users u ON u.id = m.sender_id
"""


def _scope_filter(scope: MessageScope) -> tuple[str, str]:
    """作用域 -> (列名, 值)"""
    if isinstance(scope, TaskScope):
        return "task_id", scope.task_id
    return "conversation_id", scope.conversation_id


class SqliteMessageStore:
    """MessageStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append_message(self, message: Message) -> None:
        """写入消息

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            """
            INSERT INTO messages (id, content, sender_id, task_id, conversation_id,
                                  message_type, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.content,
                message.sender_id,
                message.task_id,
                message.conversation_id,
                message.message_type.value,
                message.created_at.isoformat(),
            ),
        )

    async def list_messages(self, scope: MessageScope) -> list[MessageWithSender]:
        """查询作用域内全部消息，附带发送者公开资料"""
        column, value = _scope_filter(scope)
        cursor = await self._conn.execute(
            f"{_SELECT_WITH_SENDER} WHERE m.{column} = ? ORDER BY m.created_at ASC, m.rowid ASC",
            (value,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_message_with_sender(row) for row in rows]

    async def get_last_message(self, scope: MessageScope) -> Message | None:
        """作用域内最新一条消息"""
        column, value = _scope_filter(scope)
        cursor = await self._conn.execute(
            f"""
            SELECT * FROM messages WHERE {column} = ?
            ORDER BY created_at DESC, rowid DESC LIMIT 1
            """,
            (value,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_message(row)

    @staticmethod
    def _row_to_message(row: aiosqlite.Row) -> Message:
        """将数据库行转换为 Message 模型"""
        scope: MessageScope
        if row["task_id"] is not None:
            scope = TaskScope(task_id=row["task_id"])
        else:
            scope = ConversationScope(conversation_id=row["conversation_id"])
        return Message(
            id=row["id"],
            content=row["content"],
            sender_id=row["sender_id"],
            message_type=MessageType(row["message_type"]),
            scope=scope,
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @classmethod
    def _row_to_message_with_sender(cls, row: aiosqlite.Row) -> MessageWithSender:
        """JOIN 行 -> MessageWithSender"""
        message = cls._row_to_message(row)
        sender = UserProfile(
            id=row["sender_id"],
            first_name=row["sender_first_name"],
            last_name=row["sender_last_name"],
            profile_image_url=row["sender_profile_image_url"],
            rating=Decimal(row["sender_rating"]),
            completed_tasks=row["sender_completed_tasks"],
            help_given=row["sender_help_given"],
            help_received=row["sender_help_received"],
        )
        return MessageWithSender(
            id=message.id,
            content=message.content,
            sender_id=message.sender_id,
            message_type=message.message_type,
            scope=message.scope,
            created_at=message.created_at,
            sender=sender,
        )
