"""RatingStore SQLite 实现 -- 每个 (task_id, rater_id) 至多一条"""

from datetime import datetime

import aiosqlite

from ..models.rating import Rating


class SqliteRatingStore:
    """RatingStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def insert_rating(self, rating: Rating) -> None:
        """写入评分

        Raises:
            aiosqlite.IntegrityError: 同一评分人对同一任务重复评分
        """
        await self._conn.execute(
            """
            INSERT INTO ratings (id, task_id, rater_id, rated_id, rating, comment, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                rating.id,
                rating.task_id,
                rating.rater_id,
                rating.rated_id,
                rating.rating,
                rating.comment,
                rating.created_at.isoformat(),
            ),
        )

    async def get_for_task_and_rater(self, task_id: str, rater_id: str) -> Rating | None:
        """查询某人对某任务的评分"""
        cursor = await self._conn.execute(
            "SELECT * FROM ratings WHERE task_id = ? AND rater_id = ?",
            (task_id, rater_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_rating(row)

    async def list_for_rated(self, rated_id: str) -> list[Rating]:
        """用户收到的全部评分，最新的在前"""
        cursor = await self._conn.execute(
            "SELECT * FROM ratings WHERE rated_id = ? ORDER BY created_at DESC, id DESC",
            (rated_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_rating(row) for row in rows]

    async def get_scores(self, rated_id: str) -> list[int]:
        """用户收到的全部分值（用于均值计算）"""
        cursor = await self._conn.execute(
            "SELECT rating FROM ratings WHERE rated_id = ?",
            (rated_id,),
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def list_rated_user_ids(self) -> list[str]:
        """收到过评分的全部用户 id"""
        cursor = await self._conn.execute(
            "SELECT DISTINCT rated_id FROM ratings ORDER BY rated_id"
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    @staticmethod
    def _row_to_rating(row: aiosqlite.Row) -> Rating:
        """将数据库行转换为 Rating 模型"""
        return Rating(
            id=row["id"],
            task_id=row["task_id"],
            rater_id=row["rater_id"],
            rated_id=row["rated_id"],
            rating=row["rating"],
            comment=row["comment"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
