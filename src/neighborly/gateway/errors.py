"""异常处理器 -- 领域异常统一转换为 {"error": {"code", "message"}}

存储层异常（aiosqlite.Error）记录日志后返回 500 OPERATION_FAILED，
与业务错误使用不同的错误码。
"""

import aiosqlite
import structlog
from fastapi import FastAPI, Request
from neighborly.core.exceptions import NeighborlyError
from starlette.responses import JSONResponse

log = structlog.get_logger()


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    """构造统一错误响应体"""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


async def handle_domain_error(request: Request, exc: Exception) -> JSONResponse:
    """NeighborlyError -> 对应 HTTP 状态码"""
    assert isinstance(exc, NeighborlyError)
    log.info(
        "request_rejected",
        code=exc.code,
        status_code=exc.status_code,
        reason=exc.message,
    )
    return error_response(exc.status_code, exc.code, exc.message)


async def handle_store_error(request: Request, exc: Exception) -> JSONResponse:
    """存储层失败 -> 500 OPERATION_FAILED"""
    log.error(
        "store_operation_failed",
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return error_response(500, "OPERATION_FAILED", "Operation failed")


def register_exception_handlers(app: FastAPI) -> None:
    """注册全部异常处理器"""
    app.add_exception_handler(NeighborlyError, handle_domain_error)
    app.add_exception_handler(aiosqlite.Error, handle_store_error)
