"""枚举定义

包含 TaskStatus 状态机、TransactionStatus、MessageType、VerificationMethod、
EventType 枚举，以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    OPEN = "open"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"

    # 终态
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# 合法状态流转（只能前进）
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.OPEN: {TaskStatus.ACCEPTED, TaskStatus.CANCELLED},
    TaskStatus.ACCEPTED: {
        TaskStatus.IN_PROGRESS,
        TaskStatus.COMPLETED,
        TaskStatus.CANCELLED,
    },
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED},
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
    TaskStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.CANCELLED,
}

# 取消只允许发生在这些状态
CANCELLABLE_STATES: set[TaskStatus] = {
    TaskStatus.OPEN,
    TaskStatus.ACCEPTED,
}


class TransactionStatus(StrEnum):
    """Transaction 状态 -- 由四个握手标志位 + 显式取消推导"""

    PENDING = "pending"
    START_REQUESTED = "start_requested"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TRANSACTION_TERMINAL_STATES: set[TransactionStatus] = {
    TransactionStatus.COMPLETED,
    TransactionStatus.CANCELLED,
}


class MessageType(StrEnum):
    """消息类型"""

    TEXT = "text"
    SYSTEM = "system"


class VerificationMethod(StrEnum):
    """社区加入验证方式（仅存储，不在本服务内校验）"""

    PASSWORD = "password"
    PHOTO = "photo"
    LOCATION = "location"


class EventType(StrEnum):
    """任务时间线事件类型"""

    TASK_CREATED = "TASK_CREATED"
    HELPER_ASSIGNED = "HELPER_ASSIGNED"
    TASK_STATE_TRANSITION = "TASK_STATE_TRANSITION"
    TRANSACTION_CREATED = "TRANSACTION_CREATED"
    TRANSACTION_START_REQUESTED = "TRANSACTION_START_REQUESTED"
    TRANSACTION_CONFIRMED = "TRANSACTION_CONFIRMED"
    TRANSACTION_CANCELLED = "TRANSACTION_CANCELLED"
    RATING_SUBMITTED = "RATING_SUBMITTED"


class BroadcastType(StrEnum):
    """实时推送信封类型"""

    NEW_MESSAGE = "new_message"
    TRANSACTION_START_REQUEST = "transaction_start_request"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
