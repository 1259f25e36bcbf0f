"""TaskStore SQLite 实现

状态与 helper 的写入都是带条件的 UPDATE（WHERE status = 期望值），
返回是否命中一行，由服务层把未命中翻译为 Conflict / InvalidState。
此处不自动提交事务。
"""

from datetime import datetime
from decimal import Decimal

import aiosqlite

from ..models.enums import TaskStatus
from ..models.task import Task

# 可通过 PATCH 编辑的任务字段
DETAIL_FIELDS = (
    "title",
    "description",
    "category",
    "reward",
    "time_estimate",
    "location",
)


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        await self._conn.execute(
            """
            INSERT INTO tasks (id, title, description, category, reward, time_estimate,
                               location, status, author_id, helper_id, community_id,
                               created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.id,
                task.title,
                task.description,
                task.category,
                str(task.reward),
                task.time_estimate,
                task.location,
                task.status.value,
                task.author_id,
                task.helper_id,
                task.community_id,
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
            ),
        )

    async def get_task(self, task_id: str) -> Task | None:
        """根据 id 查询任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_active_tasks(self, community_id: str) -> list[Task]:
        """社区内未结束的任务（排除 completed / cancelled），按 created_at 倒序"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM tasks
            WHERE community_id = ? AND status NOT IN (?, ?)
            ORDER BY created_at DESC, id DESC
            """,
            (community_id, TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_tasks_with_task_messages(self, user_id: str) -> list[Task]:
        """用户作为作者或帮助者、且存在旧版任务聊天消息的任务，按 updated_at 倒序"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM tasks t
            WHERE (t.author_id = ? OR t.helper_id = ?)
              AND EXISTS (SELECT 1 FROM messages m WHERE m.task_id = t.id)
            ORDER BY t.updated_at DESC, t.id DESC
            """,
            (user_id, user_id),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def update_details(
        self,
        task_id: str,
        fields: dict[str, object],
        updated_at: datetime,
    ) -> None:
        """更新详情字段（仅 DETAIL_FIELDS 中的键生效）"""
        updates = {k: v for k, v in fields.items() if k in DETAIL_FIELDS}
        if not updates:
            return
        values = [str(v) if isinstance(v, Decimal) else v for v in updates.values()]
        assignments = ", ".join(f"{column} = ?" for column in updates)
        await self._conn.execute(
            f"UPDATE tasks SET {assignments}, updated_at = ? WHERE id = ?",
            (*values, updated_at.isoformat(), task_id),
        )

    async def assign_helper(
        self,
        task_id: str,
        helper_id: str,
        updated_at: datetime,
    ) -> bool:
        """open 且无 helper 时设置 helper 并进入 accepted

        Returns:
            True 如果命中；False 表示已被他人抢先或状态已变化
        """
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET helper_id = ?, status = ?, updated_at = ?
            WHERE id = ? AND status = ? AND helper_id IS NULL
            """,
            (
                helper_id,
                TaskStatus.ACCEPTED.value,
                updated_at.isoformat(),
                task_id,
                TaskStatus.OPEN.value,
            ),
        )
        return cursor.rowcount == 1

    async def update_status(
        self,
        task_id: str,
        expected: TaskStatus,
        status: TaskStatus,
        updated_at: datetime,
    ) -> bool:
        """当前状态等于 expected 时写入新状态

        Returns:
            True 如果命中
        """
        cursor = await self._conn.execute(
            "UPDATE tasks SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
            (status.value, updated_at.isoformat(), task_id, expected.value),
        )
        return cursor.rowcount == 1

    async def touch(self, task_id: str, updated_at: datetime) -> None:
        """只刷新 updated_at（旧版任务聊天有新消息时）"""
        await self._conn.execute(
            "UPDATE tasks SET updated_at = ? WHERE id = ?",
            (updated_at.isoformat(), task_id),
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            category=row["category"],
            reward=Decimal(row["reward"]),
            time_estimate=row["time_estimate"],
            location=row["location"],
            status=TaskStatus(row["status"]),
            author_id=row["author_id"],
            helper_id=row["helper_id"],
            community_id=row["community_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
