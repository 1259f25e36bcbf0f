"""structlog 配置

NEIGHBORLY_LOG_FORMAT 选择渲染：dev（默认，控制台彩色输出）或 json（生产）。
NEIGHBORLY_LOG_LEVEL 控制根日志级别。标准库 logging（uvicorn、aiosqlite）
经 ProcessorFormatter 走同一条处理链，输出格式一致。
Logfire APM 由 LOGFIRE_SEND_TO_LOGFIRE 控制，默认关闭。
"""

import logging
import os

import structlog

# uvicorn 的 access log 与 LoggingMiddleware 的 request_completed 重复
_QUIET_LOGGERS = ("uvicorn.access",)


def _processor_chain(json_mode: bool) -> list[structlog.types.Processor]:
    chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_mode:
        chain.append(structlog.processors.format_exc_info)
    return chain


def _renderer(json_mode: bool) -> structlog.types.Processor:
    if json_mode:
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def setup_logging() -> None:
    """初始化 structlog 与根 logger，可重复调用"""
    json_mode = os.environ.get("NEIGHBORLY_LOG_FORMAT", "dev").lower() == "json"
    level_name = os.environ.get("NEIGHBORLY_LOG_LEVEL", "INFO").upper()
    chain = _processor_chain(json_mode)

    structlog.configure(
        processors=[*chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=_renderer(json_mode), foreign_pre_chain=chain)
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logfire(app=None) -> bool:
    """Logfire 可选初始化

    LOGFIRE_SEND_TO_LOGFIRE 环境变量控制：
    - "true": 启用 Logfire APM（需要 LOGFIRE_TOKEN 与 logfire extra）
    - "false" (默认): 纯本地日志

    Returns:
        True 如果 Logfire 已启用
    """
    send_to_logfire = os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower()
    if send_to_logfire != "true":
        return False
    try:
        import logfire

        logfire.configure()
        if app is not None:
            logfire.instrument_fastapi(app)
    except Exception as e:
        # 初始化失败时降级为纯本地日志
        structlog.get_logger().warning(
            "logfire_init_failed",
            error=str(e),
            message="Logfire 初始化失败，降级为纯本地日志",
        )
        return False
    return True
