"""ConversationStore SQLite 实现

get_or_create 依赖 (task_id, author_id, participant_id) 唯一索引：
INSERT ... ON CONFLICT DO NOTHING 之后再按三元组查询，
并发的两个请求只会得到同一个会话。
"""

from datetime import datetime

import aiosqlite

from ..models.conversation import Conversation


class SqliteConversationStore:
    """ConversationStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def get_or_create(self, conversation: Conversation) -> tuple[Conversation, bool]:
        """按三元组查找会话，不存在则插入

        注意：此方法不自动提交事务，需由调用方管理事务。

        Returns:
            (会话, 是否新建)
        """
        cursor = await self._conn.execute(
            """
            INSERT INTO conversations (id, task_id, author_id, participant_id,
                                       last_message_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(task_id, author_id, participant_id) DO NOTHING
            """,
            (
                conversation.id,
                conversation.task_id,
                conversation.author_id,
                conversation.participant_id,
                None,
                conversation.created_at.isoformat(),
            ),
        )
        created = cursor.rowcount > 0
        cursor = await self._conn.execute(
            """
            SELECT * FROM conversations
            WHERE task_id = ? AND author_id = ? AND participant_id = ?
            """,
            (conversation.task_id, conversation.author_id, conversation.participant_id),
        )
        row = await cursor.fetchone()
        return self._row_to_conversation(row), created

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """根据 id 查询会话"""
        cursor = await self._conn.execute(
            "SELECT * FROM conversations WHERE id = ?",
            (conversation_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_conversation(row)

    async def list_for_user(self, user_id: str) -> list[Conversation]:
        """用户作为作者或参与者的全部会话，最近活跃的在前"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM conversations
            WHERE author_id = ? OR participant_id = ?
            ORDER BY COALESCE(last_message_at, created_at) DESC, id DESC
            """,
            (user_id, user_id),
        )
        rows = await cursor.fetchall()
        return [self._row_to_conversation(row) for row in rows]

    async def touch_last_message(self, conversation_id: str, ts: datetime) -> None:
        """更新最近消息时间缓存"""
        await self._conn.execute(
            "UPDATE conversations SET last_message_at = ? WHERE id = ?",
            (ts.isoformat(), conversation_id),
        )

    @staticmethod
    def _row_to_conversation(row: aiosqlite.Row) -> Conversation:
        """将数据库行转换为 Conversation 模型"""
        last_message_at = row["last_message_at"]
        return Conversation(
            id=row["id"],
            task_id=row["task_id"],
            author_id=row["author_id"],
            participant_id=row["participant_id"],
            last_message_at=datetime.fromisoformat(last_message_at) if last_message_at else None,
            created_at=datetime.fromisoformat(row["created_at"]),
        )
