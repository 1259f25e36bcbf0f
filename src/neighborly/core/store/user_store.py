"""UserStore SQLite 实现

users 行在身份首次出现时自动创建（ensure_user），
rating 列是 ratings 表的派生值，只由 atomic.insert_rating_and_recompute 写入。
"""

from datetime import datetime
from decimal import Decimal

import aiosqlite

from ..models.user import User, UserProfile

# 允许通过 PUT /api/auth/user 修改的资料字段
PROFILE_FIELDS = (
    "email",
    "first_name",
    "last_name",
    "profile_image_url",
    "phone",
    "address",
)


class SqliteUserStore:
    """UserStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def ensure_user(self, user_id: str, now: datetime) -> bool:
        """不存在则插入一条空资料的用户行

        Returns:
            True 如果本次新建了用户
        """
        cursor = await self._conn.execute(
            """
            INSERT INTO users (id, created_at, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(id) DO NOTHING
            """,
            (user_id, now.isoformat(), now.isoformat()),
        )
        return cursor.rowcount > 0

    async def get_user(self, user_id: str) -> User | None:
        """根据 id 查询完整资料"""
        cursor = await self._conn.execute(
            "SELECT * FROM users WHERE id = ?",
            (user_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    async def get_profiles(self, user_ids: list[str]) -> dict[str, UserProfile]:
        """批量查询公开资料，返回 id -> UserProfile"""
        ids = sorted({uid for uid in user_ids if uid})
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        cursor = await self._conn.execute(
            f"SELECT * FROM users WHERE id IN ({placeholders})",
            ids,
        )
        rows = await cursor.fetchall()
        return {row["id"]: self._row_to_user(row).to_profile() for row in rows}

    async def update_profile(
        self,
        user_id: str,
        fields: dict[str, str | None],
        updated_at: datetime,
    ) -> None:
        """更新资料字段（仅 PROFILE_FIELDS 中的键生效）"""
        updates = {k: v for k, v in fields.items() if k in PROFILE_FIELDS}
        if not updates:
            return
        assignments = ", ".join(f"{column} = ?" for column in updates)
        await self._conn.execute(
            f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?",
            (*updates.values(), updated_at.isoformat(), user_id),
        )

    async def set_rating(self, user_id: str, rating: Decimal) -> None:
        """写入重新计算后的评分均值"""
        await self._conn.execute(
            "UPDATE users SET rating = ? WHERE id = ?",
            (str(rating), user_id),
        )

    async def increment_counters(
        self,
        user_id: str,
        completed_tasks: int = 0,
        help_given: int = 0,
        help_received: int = 0,
    ) -> None:
        """累加任务完成相关计数"""
        await self._conn.execute(
            """
            UPDATE users
            SET completed_tasks = completed_tasks + ?,
                help_given = help_given + ?,
                help_received = help_received + ?
            WHERE id = ?
            """,
            (completed_tasks, help_given, help_received, user_id),
        )

    @staticmethod
    def _row_to_user(row: aiosqlite.Row) -> User:
        """将数据库行转换为 User 模型"""
        return User(
            id=row["id"],
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            profile_image_url=row["profile_image_url"],
            phone=row["phone"],
            address=row["address"],
            rating=Decimal(row["rating"]),
            completed_tasks=row["completed_tasks"],
            help_given=row["help_given"],
            help_received=row["help_received"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
