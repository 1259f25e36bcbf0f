"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store / EventHub / 当前用户

Store 实例通过 app.state 管理，在 lifespan 中初始化/清理。
身份由上游认证代理通过请求头提供（默认 X-User-Id）。
"""

from datetime import UTC, datetime

import structlog
from fastapi import Depends, Request
from neighborly.core.exceptions import UnauthorizedError
from neighborly.core.store import StoreGroup

from .config import GatewayConfig
from .services.event_hub import EventHub

log = structlog.get_logger()


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_event_hub(request: Request) -> EventHub:
    """从 app.state 获取 EventHub 实例"""
    return request.app.state.event_hub


def get_gateway_config(request: Request) -> GatewayConfig:
    """从 app.state 获取 GatewayConfig"""
    return request.app.state.gateway_config


async def provision_user(store_group: StoreGroup, user_id: str) -> None:
    """首次出现的 user id 自动建档"""
    async with store_group.read():
        existing = await store_group.user_store.get_user(user_id)
    if existing is not None:
        return
    async with store_group.atomic():
        created = await store_group.user_store.ensure_user(user_id, datetime.now(UTC))
    if created:
        log.info("user_provisioned", user_id=user_id)


async def get_current_user_id(
    request: Request,
    store_group: StoreGroup = Depends(get_store_group),
    config: GatewayConfig = Depends(get_gateway_config),
) -> str:
    """读取已认证的 user id，缺失时 401

    Raises:
        UnauthorizedError: 请求未携带身份头
    """
    user_id = (request.headers.get(config.auth_header) or "").strip()
    if not user_id:
        raise UnauthorizedError()

    await provision_user(store_group, user_id)
    structlog.contextvars.bind_contextvars(user_id=user_id)
    return user_id
