"""ConversationService -- 会话、消息与聊天列表

消息写入提交之后推送 new_message 到作用域主题（task:{id} / conversation:{id}）。
聊天列表把旧版任务聊天与会话聊天按任务 ID 合并，会话条目覆盖旧版条目。
"""

from datetime import UTC, datetime

import structlog
from neighborly.core.exceptions import ValidationFailedError
from neighborly.core.models import (
    ChatEntry,
    Conversation,
    ConversationDetail,
    ConversationScope,
    Message,
    MessageScope,
    MessageType,
    MessageWithSender,
    NewMessageEnvelope,
    TaskScope,
    to_wire,
)
from neighborly.core.store import StoreGroup
from ulid import ULID

from .access import authorize_scope, get_visible_task
from .event_hub import EventHub

log = structlog.get_logger()


class ConversationService:
    """会话与消息业务服务"""

    def __init__(self, store_group: StoreGroup, event_hub: EventHub | None = None) -> None:
        self._stores = store_group
        self._event_hub = event_hub

    async def get_or_create(
        self,
        actor_id: str,
        task_id: str,
        author_id: str,
    ) -> tuple[Conversation, bool]:
        """调用者（参与者）与任务作者之间的会话，不存在则创建

        Returns:
            (会话, 是否新建)

        Raises:
            ValidationFailedError: author_id 不是任务作者，或调用者就是作者
        """
        async with self._stores.atomic():
            task = await get_visible_task(self._stores, actor_id, task_id)
            if author_id != task.author_id:
                raise ValidationFailedError("authorId must be the task author")
            if actor_id == task.author_id:
                raise ValidationFailedError("Cannot start a conversation with yourself")
            conversation, created = await self._stores.conversation_store.get_or_create(
                Conversation(
                    id=str(ULID()),
                    task_id=task.id,
                    author_id=task.author_id,
                    participant_id=actor_id,
                    created_at=datetime.now(UTC),
                )
            )

        if created:
            log.info(
                "conversation_created",
                conversation_id=conversation.id,
                task_id=task.id,
                participant_id=actor_id,
            )
        return conversation, created

    async def list_for_user(self, user_id: str) -> list[ConversationDetail]:
        """用户参与的全部会话，附带任务、双方资料、最近一条消息"""
        async with self._stores.read():
            return await self._list_for_user(user_id)

    async def _list_for_user(self, user_id: str) -> list[ConversationDetail]:
        conversations = await self._stores.conversation_store.list_for_user(user_id)
        profiles = await self._stores.user_store.get_profiles(
            [c.author_id for c in conversations] + [c.participant_id for c in conversations]
        )
        details = []
        for conversation in conversations:
            # 每个会话各查一次任务和最近消息
            task = await self._stores.task_store.get_task(conversation.task_id)
            if task is None:
                continue
            last_message = await self._stores.message_store.get_last_message(
                ConversationScope(conversation_id=conversation.id)
            )
            details.append(
                ConversationDetail(
                    **conversation.model_dump(),
                    task=task,
                    author=profiles[conversation.author_id],
                    participant=profiles[conversation.participant_id],
                    last_message=last_message,
                )
            )
        return details

    async def list_messages(self, user_id: str, scope: MessageScope) -> list[MessageWithSender]:
        """作用域内的消息，按创建时间升序"""
        async with self._stores.read():
            await authorize_scope(self._stores, user_id, scope)
            return await self._stores.message_store.list_messages(scope)

    async def post_message(
        self,
        sender_id: str,
        scope: MessageScope,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> MessageWithSender:
        """发送消息并推送 new_message

        Raises:
            ForbiddenError: 发送者无权访问该作用域
            ValidationFailedError: 内容为空
        """
        if not content or not content.strip():
            raise ValidationFailedError("content is required")

        now = datetime.now(UTC)
        message = Message(
            id=str(ULID()),
            content=content,
            sender_id=sender_id,
            message_type=message_type,
            scope=scope,
            created_at=now,
        )

        async with self._stores.atomic():
            await authorize_scope(self._stores, sender_id, scope)
            await self._stores.message_store.append_message(message)
            if isinstance(scope, ConversationScope):
                await self._stores.conversation_store.touch_last_message(
                    scope.conversation_id, now
                )
            else:
                await self._stores.task_store.touch(scope.task_id, now)
            sender = (await self._stores.user_store.get_profiles([sender_id]))[sender_id]

        log.info(
            "message_posted",
            message_id=message.id,
            scope=scope.kind,
            topic=scope.topic,
        )

        if self._event_hub is not None:
            envelope = NewMessageEnvelope(
                task_id=message.task_id,
                conversation_id=message.conversation_id,
                message=message,
            )
            await self._event_hub.publish(scope.topic, to_wire(envelope))
        return MessageWithSender(
            id=message.id,
            content=message.content,
            sender_id=sender_id,
            message_type=message.message_type,
            scope=scope,
            created_at=now,
            sender=sender,
        )

    async def list_chats(self, user_id: str) -> list[ChatEntry]:
        """合并旧版任务聊天与会话聊天，按任务 ID 去重

        旧版条目先写入，会话条目后写入并覆盖同一任务的旧版条目。
        会话条目的 helper 字段是查看者在该会话中的对方。
        结果按最近消息时间倒序。
        """
        async with self._stores.read():
            entries = await self._collect_chat_entries(user_id)

        return sorted(
            entries.values(),
            key=lambda e: e.last_message.created_at if e.last_message else e.updated_at,
            reverse=True,
        )

    async def _collect_chat_entries(self, user_id: str) -> dict[str, ChatEntry]:
        entries: dict[str, ChatEntry] = {}

        legacy_tasks = await self._stores.task_store.list_tasks_with_task_messages(user_id)
        profiles = await self._stores.user_store.get_profiles(
            [t.author_id for t in legacy_tasks] + [t.helper_id for t in legacy_tasks if t.helper_id]
        )
        for task in legacy_tasks:
            entries[task.id] = ChatEntry(
                **task.model_dump(),
                author=profiles[task.author_id],
                helper=profiles.get(task.helper_id) if task.helper_id else None,
                last_message=await self._stores.message_store.get_last_message(
                    TaskScope(task_id=task.id)
                ),
            )

        for detail in await self._list_for_user(user_id):
            entries[detail.task_id] = ChatEntry(
                **detail.task.model_dump(),
                author=detail.author,
                helper=detail.participant if user_id == detail.author_id else detail.author,
                last_message=detail.last_message,
                conversation_id=detail.id,
            )
        return entries

