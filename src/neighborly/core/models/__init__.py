"""Neighborly Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .base import ApiModel, quantize_money
from .community import Community, CommunityMember
from .conversation import Conversation, ConversationDetail
from .enums import (
    CANCELLABLE_STATES,
    TERMINAL_STATES,
    TRANSACTION_TERMINAL_STATES,
    VALID_TRANSITIONS,
    BroadcastType,
    EventType,
    MessageType,
    TaskStatus,
    TransactionStatus,
    VerificationMethod,
    validate_transition,
)
from .event import Event
from .message import (
    ConversationScope,
    Message,
    MessageScope,
    MessageWithSender,
    TaskScope,
)
from .payloads import (
    HelperAssignedPayload,
    NewMessageEnvelope,
    RatingSubmittedPayload,
    TaskCreatedPayload,
    TaskStateTransitionPayload,
    TransactionCreatedPayload,
    TransactionHandshakePayload,
    TransactionStartRequestEnvelope,
    to_wire,
)
from .rating import Rating
from .task import ChatEntry, Task, TaskWithUsers
from .transaction import HandshakeFlags, Transaction, derive_transaction_status
from .user import User, UserProfile

__all__ = [
    # 基类
    "ApiModel",
    "quantize_money",
    # 枚举
    "TaskStatus",
    "TransactionStatus",
    "MessageType",
    "VerificationMethod",
    "EventType",
    "BroadcastType",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "CANCELLABLE_STATES",
    "TRANSACTION_TERMINAL_STATES",
    "validate_transition",
    "derive_transaction_status",
    # 实体
    "User",
    "UserProfile",
    "Community",
    "CommunityMember",
    "Task",
    "TaskWithUsers",
    "ChatEntry",
    "Transaction",
    "HandshakeFlags",
    "Conversation",
    "ConversationDetail",
    "Message",
    "MessageWithSender",
    "MessageScope",
    "TaskScope",
    "ConversationScope",
    "Rating",
    "Event",
    # Payloads
    "TaskCreatedPayload",
    "HelperAssignedPayload",
    "TaskStateTransitionPayload",
    "TransactionCreatedPayload",
    "TransactionHandshakePayload",
    "RatingSubmittedPayload",
    "NewMessageEnvelope",
    "TransactionStartRequestEnvelope",
    "to_wire",
]
