"""CommunityService -- 社区创建/加入/删除

创建者在同一事务内自动加入；加入幂等，member_count 每次按成员表重算。
删除只允许创建者，按依赖顺序级联删除全部从属数据。
"""

from datetime import UTC, datetime

import structlog
from neighborly.core.exceptions import ForbiddenError, ValidationFailedError
from neighborly.core.models import Community, CommunityMember, VerificationMethod
from neighborly.core.store import StoreGroup, delete_community_cascade
from ulid import ULID

from .access import get_community_or_404

log = structlog.get_logger()


class CommunityService:
    """社区业务服务"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def list_communities(self) -> list[Community]:
        async with self._stores.read():
            return await self._stores.community_store.list_communities()

    async def list_user_communities(self, user_id: str) -> list[Community]:
        async with self._stores.read():
            return await self._stores.community_store.list_user_communities(user_id)

    async def create_community(
        self,
        creator_id: str,
        name: str,
        verification_method: VerificationMethod,
        description: str | None = None,
        verification_data: str | None = None,
        show_real_names: bool = False,
        show_addresses: bool = False,
    ) -> Community:
        """创建社区，创建者自动成为成员"""
        if not name or not name.strip():
            raise ValidationFailedError("name is required")

        now = datetime.now(UTC)
        community = Community(
            id=str(ULID()),
            name=name.strip(),
            description=description,
            verification_method=verification_method,
            verification_data=verification_data,
            show_real_names=show_real_names,
            show_addresses=show_addresses,
            member_count=0,
            creator_id=creator_id,
            created_at=now,
        )

        async with self._stores.atomic():
            await self._stores.community_store.create_community(community)
            await self._stores.community_store.add_member(
                CommunityMember(
                    id=str(ULID()),
                    user_id=creator_id,
                    community_id=community.id,
                    joined_at=now,
                )
            )
            member_count = await self._stores.community_store.refresh_member_count(community.id)

        log.info("community_created", community_id=community.id, creator_id=creator_id)
        return community.model_copy(update={"member_count": member_count})

    async def join(self, user_id: str, community_id: str) -> tuple[Community, bool]:
        """加入社区（幂等）

        Returns:
            (社区, 是否新加入)
        """
        async with self._stores.atomic():
            await get_community_or_404(self._stores, community_id)
            joined = await self._stores.community_store.add_member(
                CommunityMember(
                    id=str(ULID()),
                    user_id=user_id,
                    community_id=community_id,
                    joined_at=datetime.now(UTC),
                )
            )
            await self._stores.community_store.refresh_member_count(community_id)
            community = await get_community_or_404(self._stores, community_id)

        if joined:
            log.info("community_joined", community_id=community_id, user_id=user_id)
        return community, joined

    async def delete(self, user_id: str, community_id: str) -> int:
        """创建者删除社区（级联）

        Returns:
            删除的任务数
        """
        async with self._stores.atomic():
            community = await get_community_or_404(self._stores, community_id)
            if community.creator_id != user_id:
                raise ForbiddenError("Only the community creator can delete it")
            deleted_tasks = await delete_community_cascade(self._stores.conn, community_id)

        log.info(
            "community_deleted",
            community_id=community_id,
            deleted_tasks=deleted_tasks,
        )
        return deleted_tasks
