"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性与推送订阅概况。
"""

import aiosqlite
import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性
    2. event_hub: 推送器已初始化
    """
    checks: dict[str, str] = {}
    all_ok = True

    store_group = getattr(request.app.state, "store_group", None)
    if store_group is None:
        checks["sqlite"] = "error: store not initialized"
        all_ok = False
    else:
        try:
            cursor = await store_group.conn.execute("SELECT 1")
            await cursor.fetchone()
            checks["sqlite"] = "ok"
        except aiosqlite.Error as e:
            log.warning("readiness_sqlite_failed", error=str(e))
            checks["sqlite"] = f"error: {e}"
            all_ok = False

    if getattr(request.app.state, "event_hub", None) is None:
        checks["event_hub"] = "error: not initialized"
        all_ok = False
    else:
        checks["event_hub"] = "ok"

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
