"""Conversation Domain Model

同一 (task_id, author_id, participant_id) 三元组至多一个会话。
一个任务可以有多个会话（多个感兴趣的人），但固定的两人之间只有一个。
"""

from datetime import datetime

from pydantic import Field

from .base import ApiModel
from .message import Message
from .task import Task
from .user import UserProfile


class Conversation(ApiModel):
    """任务作者与一位参与者之间的 1:1 会话"""

    id: str = Field(description="唯一标识，ULID 格式")
    task_id: str = Field(description="关联任务 ID")
    author_id: str = Field(description="任务作者 ID")
    participant_id: str = Field(description="参与者（感兴趣的人）ID")
    last_message_at: datetime | None = Field(default=None, description="最近消息时间（缓存）")
    created_at: datetime = Field(description="创建时间")

    def has_member(self, user_id: str) -> bool:
        return user_id in (self.author_id, self.participant_id)


class ConversationDetail(Conversation):
    """会话列表项 -- 附带任务、双方资料和最近一条消息"""

    task: Task
    author: UserProfile
    participant: UserProfile
    last_message: Message | None = None
