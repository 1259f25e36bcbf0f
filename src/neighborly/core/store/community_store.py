"""CommunityStore SQLite 实现 -- communities + community_members 两张表

member_count 是缓存值，每次加入后按 community_members 重新统计。
"""

from datetime import datetime

import aiosqlite

from ..models.community import Community, CommunityMember


class SqliteCommunityStore:
    """CommunityStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_community(self, community: Community) -> None:
        """创建社区记录"""
        await self._conn.execute(
            """
            INSERT INTO communities (id, name, description, verification_method,
                                     verification_data, show_real_names, show_addresses,
                                     member_count, creator_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                community.id,
                community.name,
                community.description,
                community.verification_method.value,
                community.verification_data,
                int(community.show_real_names),
                int(community.show_addresses),
                community.member_count,
                community.creator_id,
                community.created_at.isoformat(),
            ),
        )

    async def get_community(self, community_id: str) -> Community | None:
        """根据 id 查询社区"""
        cursor = await self._conn.execute(
            "SELECT * FROM communities WHERE id = ?",
            (community_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_community(row)

    async def list_communities(self) -> list[Community]:
        """查询全部社区，按 created_at 倒序"""
        cursor = await self._conn.execute(
            "SELECT * FROM communities ORDER BY created_at DESC, id DESC"
        )
        rows = await cursor.fetchall()
        return [self._row_to_community(row) for row in rows]

    async def list_user_communities(self, user_id: str) -> list[Community]:
        """查询用户加入的社区，按加入时间倒序"""
        cursor = await self._conn.execute(
            """
            SELECT c.* FROM communities c
            JOIN community_members m ON m.community_id = c.id
            WHERE m.user_id = ?
            ORDER BY m.joined_at DESC, c.id DESC
            """,
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_community(row) for row in rows]

    async def add_member(self, member: CommunityMember) -> bool:
        """加入社区（幂等）

        Returns:
            True 如果本次新增了成员关系
        """
        cursor = await self._conn.execute(
            """
            INSERT INTO community_members (id, user_id, community_id, joined_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, community_id) DO NOTHING
            """,
            (
                member.id,
                member.user_id,
                member.community_id,
                member.joined_at.isoformat(),
            ),
        )
        return cursor.rowcount > 0

    async def is_member(self, user_id: str, community_id: str) -> bool:
        """检查成员关系"""
        cursor = await self._conn.execute(
            "SELECT 1 FROM community_members WHERE user_id = ? AND community_id = ?",
            (user_id, community_id),
        )
        return await cursor.fetchone() is not None

    async def refresh_member_count(self, community_id: str) -> int:
        """按成员表重新统计 member_count 并写回"""
        await self._conn.execute(
            """
            UPDATE communities
            SET member_count = (
                SELECT COUNT(*) FROM community_members WHERE community_id = ?
            )
            WHERE id = ?
            """,
            (community_id, community_id),
        )
        cursor = await self._conn.execute(
            "SELECT member_count FROM communities WHERE id = ?",
            (community_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    @staticmethod
    def _row_to_community(row: aiosqlite.Row) -> Community:
        """将数据库行转换为 Community 模型"""
        return Community(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            verification_method=row["verification_method"],
            verification_data=row["verification_data"],
            show_real_names=bool(row["show_real_names"]),
            show_addresses=bool(row["show_addresses"]),
            member_count=row["member_count"],
            creator_id=row["creator_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
