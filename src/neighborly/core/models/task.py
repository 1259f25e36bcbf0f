"""Task Domain Model

作者创建后 author_id 不可变；helper_id 在正常流程中只设置一次，且不等于 author_id。
状态只按 VALID_TRANSITIONS 向前流转。
"""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from .base import ApiModel
from .enums import TaskStatus
from .message import Message
from .user import UserProfile


class Task(ApiModel):
    """Task 数据模型"""

    id: str = Field(description="唯一标识，ULID 格式")
    title: str = Field(description="标题")
    description: str = Field(description="详细描述")
    category: str = Field(description="分类")
    reward: Decimal = Field(description="报酬，两位小数")
    time_estimate: str | None = Field(default=None, description="预计耗时")
    location: str | None = Field(default=None, description="地点（自由文本）")
    status: TaskStatus = Field(default=TaskStatus.OPEN, description="当前状态")
    author_id: str = Field(description="发布者 ID")
    helper_id: str | None = Field(default=None, description="接受者 ID")
    community_id: str = Field(description="所属社区 ID")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    def is_party(self, user_id: str) -> bool:
        """user_id 是否为该任务的作者或帮助者"""
        return user_id in (self.author_id, self.helper_id)

    def counterpart_of(self, user_id: str) -> str | None:
        """返回对方的 user id"""
        if user_id == self.author_id:
            return self.helper_id
        if user_id == self.helper_id:
            return self.author_id
        return None


class TaskWithUsers(Task):
    """附带作者/帮助者公开资料的任务"""

    author: UserProfile
    helper: UserProfile | None = None


class ChatEntry(TaskWithUsers):
    """聊天列表项 -- 旧版任务聊天与会话聊天合并后的统一视图"""

    last_message: Message | None = None
    conversation_id: str | None = None
