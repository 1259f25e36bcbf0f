"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、实时推送心跳间隔、订阅队列容量等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("NEIGHBORLY_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "NEIGHBORLY_DB_PATH",
        str(_get_base_dir() / "sqlite" / "neighborly.db"),
    )


# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("NEIGHBORLY_SSE_HEARTBEAT_INTERVAL", "15")
)

# 每个订阅者的推送队列容量（满了之后跳过该订阅者，不排队不重试）
EVENT_QUEUE_MAXSIZE: int = int(
    os.environ.get("NEIGHBORLY_EVENT_QUEUE_MAXSIZE", "100")
)

# 金额保留两位小数
MONEY_SCALE: str = "0.01"

# 评分范围
RATING_MIN: int = 1
RATING_MAX: int = 5
