"""Event Domain Model -- 任务时间线

事件表 append-only，不允许更新或删除（社区级联删除除外）。
event_id 使用 ULID 格式，task_seq 同一 task 内严格单调递增。
事件与它记录的状态变更在同一个数据库事务中写入。
"""

from datetime import datetime
from typing import Any

from pydantic import Field

from .base import ApiModel
from .enums import EventType


class Event(ApiModel):
    """Event 数据模型"""

    event_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    task_id: str = Field(description="关联的 Task ID")
    task_seq: int = Field(description="任务内序号，严格单调递增")
    ts: datetime = Field(description="事件时间戳")
    type: EventType = Field(description="事件类型")
    actor_id: str = Field(description="触发者 user id")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")
