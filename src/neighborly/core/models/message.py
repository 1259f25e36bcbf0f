"""Message Domain Model

消息必须且只能属于一个作用域：旧版的任务作用域（TaskScope），
或当前的会话作用域（ConversationScope）。用带标签的联合类型表达这一约束。
"""

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import Field, computed_field, model_validator

from .base import ApiModel
from .enums import MessageType
from .user import UserProfile


class TaskScope(ApiModel):
    """旧版任务作用域（会话出现之前的聊天方式）"""

    kind: Literal["task"] = "task"
    task_id: str

    @property
    def topic(self) -> str:
        """实时推送主题"""
        return f"task:{self.task_id}"


class ConversationScope(ApiModel):
    """会话作用域"""

    kind: Literal["conversation"] = "conversation"
    conversation_id: str

    @property
    def topic(self) -> str:
        """实时推送主题"""
        return f"conversation:{self.conversation_id}"


MessageScope = Annotated[TaskScope | ConversationScope, Field(discriminator="kind")]


class Message(ApiModel):
    """消息 -- 创建后不可变"""

    id: str = Field(description="唯一标识，ULID 格式")
    content: str = Field(description="消息内容")
    sender_id: str = Field(description="发送者 ID")
    message_type: MessageType = Field(default=MessageType.TEXT, description="消息类型")
    scope: MessageScope = Field(exclude=True, description="作用域")
    created_at: datetime = Field(description="服务端创建时间")

    @model_validator(mode="before")
    @classmethod
    def _scope_from_ids(cls, data: Any) -> Any:
        """从对外 JSON 的 taskId / conversationId 还原作用域"""
        if not isinstance(data, dict) or "scope" in data:
            return data
        task_id = data.get("taskId", data.get("task_id"))
        conversation_id = data.get("conversationId", data.get("conversation_id"))
        if task_id is not None:
            return {**data, "scope": TaskScope(task_id=task_id)}
        if conversation_id is not None:
            return {**data, "scope": ConversationScope(conversation_id=conversation_id)}
        return data

    @computed_field(alias="taskId")  # type: ignore[prop-decorator]
    @property
    def task_id(self) -> str | None:
        return self.scope.task_id if isinstance(self.scope, TaskScope) else None

    @computed_field(alias="conversationId")  # type: ignore[prop-decorator]
    @property
    def conversation_id(self) -> str | None:
        if isinstance(self.scope, ConversationScope):
            return self.scope.conversation_id
        return None


class MessageWithSender(Message):
    """附带发送者公开资料的消息"""

    sender: UserProfile
