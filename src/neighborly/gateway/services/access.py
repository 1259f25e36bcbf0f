"""资源加载与访问控制

路由与服务共享的前置检查：资源存在性（NotFound）、
社区成员资格（Forbidden）、消息作用域 / 推送主题的授权。
除 authorize_topic 外都不取锁，调用方须处在 StoreGroup.atomic() 或 read() 块内。
"""

from neighborly.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)
from neighborly.core.models import (
    Community,
    Conversation,
    ConversationScope,
    MessageScope,
    Task,
    TaskScope,
    Transaction,
)
from neighborly.core.store import StoreGroup


async def get_community_or_404(stores: StoreGroup, community_id: str) -> Community:
    community = await stores.community_store.get_community(community_id)
    if community is None:
        raise NotFoundError("Community", community_id)
    return community


async def get_task_or_404(stores: StoreGroup, task_id: str) -> Task:
    task = await stores.task_store.get_task(task_id)
    if task is None:
        raise NotFoundError("Task", task_id)
    return task


async def get_conversation_or_404(stores: StoreGroup, conversation_id: str) -> Conversation:
    conversation = await stores.conversation_store.get_conversation(conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation", conversation_id)
    return conversation


async def get_transaction_or_404(stores: StoreGroup, transaction_id: str) -> Transaction:
    transaction = await stores.transaction_store.get_transaction(transaction_id)
    if transaction is None:
        raise NotFoundError("Transaction", transaction_id)
    return transaction


async def require_member(stores: StoreGroup, user_id: str, community_id: str) -> None:
    """要求 user_id 是社区成员

    Raises:
        ForbiddenError: 非成员
    """
    if not await stores.community_store.is_member(user_id, community_id):
        raise ForbiddenError("Not a member of this community")


async def get_visible_task(stores: StoreGroup, user_id: str, task_id: str) -> Task:
    """加载任务并要求调用者是其社区成员"""
    task = await get_task_or_404(stores, task_id)
    await require_member(stores, user_id, task.community_id)
    return task


async def authorize_scope(stores: StoreGroup, user_id: str, scope: MessageScope) -> None:
    """校验用户可以读写该消息作用域

    任务作用域：任务所在社区的成员。
    会话作用域：会话的作者或参与者。
    """
    if isinstance(scope, TaskScope):
        await get_visible_task(stores, user_id, scope.task_id)
        return
    conversation = await get_conversation_or_404(stores, scope.conversation_id)
    if not conversation.has_member(user_id):
        raise ForbiddenError("Not a participant of this conversation")


def parse_topic(topic: str) -> MessageScope:
    """解析推送主题 task:{id} / conversation:{id}

    Raises:
        ValidationFailedError: 主题格式不合法
    """
    kind, _, resource_id = topic.partition(":")
    if not resource_id:
        raise ValidationFailedError(f"Invalid topic: {topic}")
    if kind == "task":
        return TaskScope(task_id=resource_id)
    if kind == "conversation":
        return ConversationScope(conversation_id=resource_id)
    raise ValidationFailedError(f"Invalid topic: {topic}")


async def authorize_topic(stores: StoreGroup, user_id: str, topic: str) -> MessageScope:
    """解析并授权推送主题，规则与 authorize_scope 相同

    订阅发生在请求处理之外，这里自行取读锁，不能在 atomic() 内调用。
    """
    scope = parse_topic(topic)
    async with stores.read():
        await authorize_scope(stores, user_id, scope)
    return scope
