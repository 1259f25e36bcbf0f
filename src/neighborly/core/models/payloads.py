"""Event Payload 与实时推送信封

时间线事件的结构化 payload，以及推送给客户端的 JSON 信封 {type, ...payload}。
"""

from decimal import Decimal
from typing import Any, Literal

from pydantic import Field

from .base import ApiModel
from .enums import BroadcastType, TaskStatus, TransactionStatus
from .message import Message


class TaskCreatedPayload(ApiModel):
    """TASK_CREATED 事件 payload"""

    title: str
    community_id: str
    reward: Decimal


class HelperAssignedPayload(ApiModel):
    """HELPER_ASSIGNED 事件 payload"""

    helper_id: str


class TaskStateTransitionPayload(ApiModel):
    """TASK_STATE_TRANSITION 事件 payload"""

    from_status: TaskStatus
    to_status: TaskStatus
    reason: str = Field(default="")


class TransactionCreatedPayload(ApiModel):
    """TRANSACTION_CREATED 事件 payload"""

    transaction_id: str
    payer_id: str
    payee_id: str
    amount: Decimal


class TransactionHandshakePayload(ApiModel):
    """TRANSACTION_START_REQUESTED / CONFIRMED / CANCELLED 事件 payload"""

    transaction_id: str
    role: Literal["payer", "payee"]
    from_status: TransactionStatus
    to_status: TransactionStatus


class RatingSubmittedPayload(ApiModel):
    """RATING_SUBMITTED 事件 payload"""

    rating_id: str
    rated_id: str
    rating: int


class NewMessageEnvelope(ApiModel):
    """new_message 推送：作用域 ID + 新消息"""

    type: Literal[BroadcastType.NEW_MESSAGE] = BroadcastType.NEW_MESSAGE
    task_id: str | None = None
    conversation_id: str | None = None
    message: Message


class TransactionStartRequestEnvelope(ApiModel):
    """transaction_start_request 推送"""

    type: Literal[BroadcastType.TRANSACTION_START_REQUEST] = (
        BroadcastType.TRANSACTION_START_REQUEST
    )
    task_id: str
    transaction_id: str
    requested_by: str = Field(description="发起请求的一方")
    other_user_id: str = Field(description="被通知的另一方")
    both_requested: bool = Field(description="双方是否都已请求开始")


def to_wire(model: ApiModel) -> dict[str, Any]:
    """序列化为对外 JSON（camelCase，去掉空字段）"""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
