"""GatewayConfig -- Gateway 配置加载

从环境变量加载监听地址与身份头名称。
非法值记录警告并回退为默认值，不阻塞启动。
"""

import os

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


class GatewayConfig(BaseModel):
    """Gateway 配置 -- 从环境变量加载

    环境变量:
        NEIGHBORLY_HOST: 监听地址（默认 127.0.0.1）
        NEIGHBORLY_PORT: 监听端口（默认 8000）
        NEIGHBORLY_AUTH_HEADER: 上游认证代理传递 user id 的请求头（默认 X-User-Id）
    """

    host: str = Field(default="127.0.0.1", description="监听地址")
    port: int = Field(default=8000, ge=1, le=65535, description="监听端口")
    auth_header: str = Field(
        default="X-User-Id",
        min_length=1,
        description="携带已认证 user id 的请求头",
    )


def load_gateway_config() -> GatewayConfig:
    """从环境变量加载 Gateway 配置

    Returns:
        GatewayConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("NEIGHBORLY_HOST"):
        kwargs["host"] = val

    if val := os.environ.get("NEIGHBORLY_PORT"):
        try:
            port = int(val)
        except ValueError:
            port = 0
        if 1 <= port <= 65535:
            kwargs["port"] = port
        else:
            log.warning(
                "invalid_port_config",
                env_var="NEIGHBORLY_PORT",
                value=val,
                fallback=8000,
            )

    if val := os.environ.get("NEIGHBORLY_AUTH_HEADER"):
        kwargs["auth_header"] = val.strip() or "X-User-Id"

    return GatewayConfig(**kwargs)
