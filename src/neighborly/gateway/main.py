"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + EventHub + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from neighborly.core.config import get_db_path
from neighborly.core.store import create_store_group

from .config import load_gateway_config
from .errors import register_exception_handlers
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import (
    communities,
    conversations,
    health,
    ratings,
    stream,
    tasks,
    transactions,
    users,
)
from .services.event_hub import EventHub

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 和 EventHub，关闭时清理连接"""
    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    app.state.store_group = store_group
    app.state.event_hub = EventHub()
    log.info("gateway_started", db_path=db_path)

    yield

    if getattr(app.state, "store_group", None):
        await app.state.store_group.conn.close()
    log.info("gateway_stopped")


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Neighborly Gateway",
        version="0.1.0",
        description="社区互助任务市场 API",
        lifespan=lifespan,
    )
    app.state.gateway_config = load_gateway_config()

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    setup_logging()
    setup_logfire(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(users.router, tags=["users"])
    app.include_router(communities.router, tags=["communities"])
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(conversations.router, tags=["conversations"])
    app.include_router(transactions.router, tags=["transactions"])
    app.include_router(ratings.router, tags=["ratings"])
    app.include_router(stream.router, tags=["stream"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
