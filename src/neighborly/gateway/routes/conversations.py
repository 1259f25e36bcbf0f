"""会话与消息路由

GET  /api/conversations: 当前用户的全部会话。
POST /api/conversations: 与任务作者的会话（get-or-create）。
GET  /api/conversations/{id}/messages, POST /api/conversations/{id}/messages
GET  /api/tasks/{id}/messages, POST /api/tasks/{id}/messages: 旧版任务作用域聊天。
GET  /api/chats: 合并后的聊天列表。
"""

from fastapi import APIRouter, Depends, Response
from neighborly.core.models import (
    ApiModel,
    ChatEntry,
    Conversation,
    ConversationDetail,
    ConversationScope,
    MessageType,
    MessageWithSender,
    TaskScope,
)
from neighborly.core.store import StoreGroup
from pydantic import Field

from ..deps import get_current_user_id, get_event_hub, get_store_group
from ..services.conversation_service import ConversationService
from ..services.event_hub import EventHub

router = APIRouter()


class CreateConversationRequest(ApiModel):
    """会话创建请求体 -- 参与者即调用者"""

    task_id: str
    author_id: str = Field(description="任务作者 ID")


class PostMessageRequest(ApiModel):
    """消息发送请求体"""

    content: str = Field(max_length=4000)
    message_type: MessageType = MessageType.TEXT


@router.get("/api/conversations", response_model=list[ConversationDetail])
async def list_conversations(
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    return await ConversationService(store_group).list_for_user(user_id)


@router.post("/api/conversations", response_model=Conversation)
async def get_or_create_conversation(
    body: CreateConversationRequest,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """新建返回 201，已存在返回 200"""
    conversation, created = await ConversationService(store_group).get_or_create(
        user_id, body.task_id, body.author_id
    )
    response.status_code = 201 if created else 200
    return conversation


@router.get(
    "/api/conversations/{conversation_id}/messages",
    response_model=list[MessageWithSender],
)
async def list_conversation_messages(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    return await ConversationService(store_group).list_messages(
        user_id, ConversationScope(conversation_id=conversation_id)
    )


@router.post(
    "/api/conversations/{conversation_id}/messages",
    response_model=MessageWithSender,
    status_code=201,
)
async def post_conversation_message(
    conversation_id: str,
    body: PostMessageRequest,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
    event_hub: EventHub = Depends(get_event_hub),
):
    return await ConversationService(store_group, event_hub).post_message(
        user_id,
        ConversationScope(conversation_id=conversation_id),
        body.content,
        body.message_type,
    )


@router.get("/api/tasks/{task_id}/messages", response_model=list[MessageWithSender])
async def list_task_messages(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    return await ConversationService(store_group).list_messages(
        user_id, TaskScope(task_id=task_id)
    )


@router.post(
    "/api/tasks/{task_id}/messages",
    response_model=MessageWithSender,
    status_code=201,
)
async def post_task_message(
    task_id: str,
    body: PostMessageRequest,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
    event_hub: EventHub = Depends(get_event_hub),
):
    return await ConversationService(store_group, event_hub).post_message(
        user_id,
        TaskScope(task_id=task_id),
        body.content,
        body.message_type,
    )


@router.get("/api/chats", response_model=list[ChatEntry])
async def list_chats(
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """旧版任务聊天 + 会话聊天，每个任务一条"""
    return await ConversationService(store_group).list_chats(user_id)
