"""TraceMiddleware

从路径中提取任务 / 会话 / 交易 ID 绑定到 structlog contextvars，
同一资源的日志可以按 ID 串起来。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# 路径段 -> 绑定的上下文键
_RESOURCE_SEGMENTS = {
    "tasks": "task_id",
    "task": "task_id",
    "conversations": "conversation_id",
    "conversation": "conversation_id",
    "transactions": "transaction_id",
}

# ULID 长度
_ID_LENGTH = 26


def extract_resource_ids(path: str) -> dict[str, str]:
    """从 /api/tasks/{id}/... 一类的路径中提取资源 ID"""
    parts = [p for p in path.split("/") if p]
    ids: dict[str, str] = {}
    for i, part in enumerate(parts[:-1]):
        key = _RESOURCE_SEGMENTS.get(part)
        candidate = parts[i + 1]
        if key and key not in ids and len(candidate) == _ID_LENGTH:
            ids[key] = candidate
    return ids


class TraceMiddleware(BaseHTTPMiddleware):
    """资源级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        ids = extract_resource_ids(request.url.path)
        if ids:
            structlog.contextvars.bind_contextvars(**ids)

        return await call_next(request)
