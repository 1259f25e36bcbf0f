"""全局 pytest 配置 -- 临时 SQLite 数据库 + 测试 app + 种子数据辅助"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient, Response
from neighborly.core.models import (
    Community,
    CommunityMember,
    Task,
    TaskStatus,
    VerificationMethod,
    quantize_money,
)
from neighborly.core.store import StoreGroup, create_store_group
from ulid import ULID


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "sqlite" / "test.db"


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """提供已初始化的 StoreGroup"""
    group = await create_store_group(str(tmp_db_path))
    yield group
    await group.conn.close()


class Seeder:
    """直接通过 Store 写入测试数据（绕过服务层校验）"""

    def __init__(self, store_group: StoreGroup) -> None:
        self.stores = store_group

    async def user(self, user_id: str) -> str:
        async with self.stores.atomic():
            await self.stores.user_store.ensure_user(user_id, datetime.now(UTC))
        return user_id

    async def community(self, creator_id: str, *members: str, name: str = "Maple Street") -> Community:
        for user_id in (creator_id, *members):
            await self.user(user_id)

        now = datetime.now(UTC)
        community = Community(
            id=str(ULID()),
            name=name,
            verification_method=VerificationMethod.PASSWORD,
            verification_data="secret",
            creator_id=creator_id,
            created_at=now,
        )
        async with self.stores.atomic():
            await self.stores.community_store.create_community(community)
            for user_id in (creator_id, *members):
                await self.stores.community_store.add_member(
                    CommunityMember(
                        id=str(ULID()),
                        user_id=user_id,
                        community_id=community.id,
                        joined_at=now,
                    )
                )
            count = await self.stores.community_store.refresh_member_count(community.id)
        return community.model_copy(update={"member_count": count})

    async def task(
        self,
        author_id: str,
        community_id: str,
        *,
        status: TaskStatus = TaskStatus.OPEN,
        helper_id: str | None = None,
        reward: str = "15000",
        created_at: datetime | None = None,
    ) -> Task:
        now = created_at or datetime.now(UTC)
        task = Task(
            id=str(ULID()),
            title="Walk the dog",
            description="Twice around the block",
            category="pets",
            reward=quantize_money(reward),
            status=status,
            author_id=author_id,
            helper_id=helper_id,
            community_id=community_id,
            created_at=now,
            updated_at=now,
        )
        async with self.stores.atomic():
            await self.stores.task_store.create_task(task)
        return task


@pytest.fixture
def seed(store_group: StoreGroup) -> Seeder:
    return Seeder(store_group)


@pytest_asyncio.fixture
async def test_app(tmp_db_path: Path, store_group: StoreGroup, monkeypatch: pytest.MonkeyPatch):
    """创建测试用 FastAPI app 实例"""
    monkeypatch.setenv("NEIGHBORLY_DB_PATH", str(tmp_db_path))
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from neighborly.gateway.main import create_app
    from neighborly.gateway.services.event_hub import EventHub

    app = create_app()

    # 手动初始化（绕过 lifespan）
    app.state.store_group = store_group
    app.state.event_hub = EventHub()

    yield app


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac


class Api:
    """以指定用户身份调用 HTTP API"""

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    @staticmethod
    def headers(user_id: str) -> dict[str, str]:
        return {"X-User-Id": user_id}

    async def get(self, user_id: str, path: str) -> Response:
        return await self.client.get(path, headers=self.headers(user_id))

    async def post(self, user_id: str, path: str, json: dict | None = None) -> Response:
        return await self.client.post(path, json=json, headers=self.headers(user_id))

    async def put(self, user_id: str, path: str, json: dict) -> Response:
        return await self.client.put(path, json=json, headers=self.headers(user_id))

    async def patch(self, user_id: str, path: str, json: dict | None = None) -> Response:
        return await self.client.patch(path, json=json, headers=self.headers(user_id))

    async def delete(self, user_id: str, path: str) -> Response:
        return await self.client.delete(path, headers=self.headers(user_id))

    async def community(self, creator: str, *members: str, name: str = "Maple Street") -> str:
        """创建社区并让 members 加入，返回社区 ID"""
        resp = await self.post(
            creator,
            "/api/communities",
            json={"name": name, "verificationMethod": "password", "verificationData": "secret"},
        )
        assert resp.status_code == 201, resp.text
        community_id = resp.json()["id"]
        for member in members:
            resp = await self.post(member, f"/api/communities/{community_id}/join")
            assert resp.status_code == 201, resp.text
        return community_id

    async def task(self, author: str, community_id: str, **fields) -> str:
        """发布任务，返回任务 ID"""
        body = {
            "communityId": community_id,
            "title": "Walk the dog",
            "description": "Twice around the block",
            "category": "pets",
            "reward": "15000",
            **fields,
        }
        resp = await self.post(author, "/api/tasks", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()["id"]

    async def accepted_task(self, author: str = "alice", helper: str = "bob", **fields) -> tuple[str, str]:
        """社区 + 已被 helper 接受的任务，返回 (社区 ID, 任务 ID)"""
        community_id = await self.community(author, helper)
        task_id = await self.task(author, community_id, **fields)
        resp = await self.patch(
            helper, f"/api/tasks/{task_id}", json={"helperId": helper, "status": "accepted"}
        )
        assert resp.status_code == 200, resp.text
        return community_id, task_id

    async def transaction(self, user_id: str, task_id: str) -> dict:
        """为任务创建（或取回）交易"""
        resp = await self.post(user_id, f"/api/tasks/{task_id}/transaction")
        assert resp.status_code in (200, 201), resp.text
        return resp.json()


@pytest.fixture
def api(client: AsyncClient) -> Api:
    return Api(client)
