"""请求日志中间件

每个 HTTP 请求分配一个 ULID request_id，绑定到 structlog contextvars，
并通过响应头 X-Request-ID 返回给客户端，便于与服务端日志对照。
探针路径（/health、/ready）只记 debug，避免淹没业务日志。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"
_PROBE_PATHS = frozenset({"/health", "/ready"})


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = str(ULID())
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
        )
        log = structlog.get_logger()
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        if path in _PROBE_PATHS:
            log.debug("probe_served", status_code=response.status_code)
        elif response.status_code >= 500:
            await log.awarning(
                "request_failed", status_code=response.status_code, duration_ms=elapsed_ms
            )
        else:
            await log.ainfo(
                "request_completed", status_code=response.status_code, duration_ms=elapsed_ms
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
