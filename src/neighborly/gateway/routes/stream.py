"""实时推送路由

GET /api/stream/task/{task_id}: SSE 推送任务主题（new_message / transaction_start_request）。
GET /api/stream/conversation/{conversation_id}: SSE 推送会话主题。
WS  /ws: 双向连接，客户端发送 {"action": "subscribe" | "unsubscribe", "topic": "..."}。

只推送订阅之后发生的事件，不回放历史；断线期间的事件请重新读取持久化数据。
"""

import asyncio
import json

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from neighborly.core.config import SSE_HEARTBEAT_INTERVAL
from neighborly.core.exceptions import NeighborlyError
from neighborly.core.store import StoreGroup
from sse_starlette.sse import EventSourceResponse

from ..deps import get_current_user_id, get_event_hub, get_store_group, provision_user
from ..services.access import authorize_topic
from ..services.event_hub import EventHub

log = structlog.get_logger()

router = APIRouter()

# 缺少身份时的 WebSocket 关闭码
WS_CLOSE_UNAUTHORIZED = 4401


def _stream_topic(topic: str, event_hub: EventHub) -> EventSourceResponse:
    """订阅主题并以 SSE 输出，空闲时发送心跳注释"""

    async def event_generator():
        queue = await event_hub.subscribe(topic)
        log.info("sse_subscribed", topic=topic)
        try:
            while True:
                try:
                    envelope = await asyncio.wait_for(
                        queue.get(), timeout=SSE_HEARTBEAT_INTERVAL
                    )
                    yield {
                        "event": envelope["type"],
                        "data": json.dumps(envelope, ensure_ascii=False),
                    }
                except TimeoutError:
                    yield {"comment": "heartbeat"}
        finally:
            await event_hub.unsubscribe(topic, queue)
            log.info("sse_unsubscribed", topic=topic)

    return EventSourceResponse(event_generator())


@router.get("/api/stream/task/{task_id}")
async def stream_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
    event_hub: EventHub = Depends(get_event_hub),
):
    """任务主题 SSE（仅社区成员）"""
    topic = f"task:{task_id}"
    await authorize_topic(store_group, user_id, topic)
    return _stream_topic(topic, event_hub)


@router.get("/api/stream/conversation/{conversation_id}")
async def stream_conversation(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
    event_hub: EventHub = Depends(get_event_hub),
):
    """会话主题 SSE（仅会话双方）"""
    topic = f"conversation:{conversation_id}"
    await authorize_topic(store_group, user_id, topic)
    return _stream_topic(topic, event_hub)


class _WebSocketSession:
    """一条 /ws 连接：一个队列订阅多个主题，发送串行化"""

    def __init__(
        self,
        websocket: WebSocket,
        user_id: str,
        store_group: StoreGroup,
        event_hub: EventHub,
    ) -> None:
        self.websocket = websocket
        self.user_id = user_id
        self.store_group = store_group
        self.event_hub = event_hub
        self.queue = event_hub.new_queue()
        self.topics: set[str] = set()
        self._send_lock = asyncio.Lock()

    async def send(self, payload: dict) -> None:
        async with self._send_lock:
            await self.websocket.send_json(payload)

    async def pump(self) -> None:
        """把订阅队列中的推送转发给客户端"""
        while True:
            envelope = await self.queue.get()
            await self.send(envelope)

    async def handle(self, raw: str) -> None:
        """处理一条客户端消息；无法识别的消息只记录日志"""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            log.info("ws_message_ignored", reason="invalid_json")
            return
        if not isinstance(data, dict) or data.get("action") not in ("subscribe", "unsubscribe"):
            log.info("ws_message_ignored", reason="unknown_action")
            return

        topic = data.get("topic")
        if not isinstance(topic, str):
            await self.send({"type": "error", "code": "VALIDATION_ERROR", "message": "topic is required"})
            return

        if data["action"] == "unsubscribe":
            await self.event_hub.unsubscribe(topic, self.queue)
            self.topics.discard(topic)
            await self.send({"type": "unsubscribed", "topic": topic})
            return

        try:
            await authorize_topic(self.store_group, self.user_id, topic)
        except NeighborlyError as e:
            log.info("ws_subscribe_rejected", topic=topic, code=e.code)
            await self.send({"type": "error", "topic": topic, "code": e.code, "message": e.message})
            return

        await self.event_hub.subscribe(topic, self.queue)
        self.topics.add(topic)
        log.info("ws_subscribed", topic=topic)
        await self.send({"type": "subscribed", "topic": topic})

    async def close(self) -> None:
        for topic in list(self.topics):
            await self.event_hub.unsubscribe(topic, self.queue)
        self.topics.clear()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """双向推送连接 -- 身份来自认证头或 user_id 查询参数"""
    state = websocket.app.state
    header = state.gateway_config.auth_header
    user_id = (websocket.headers.get(header) or websocket.query_params.get("user_id") or "").strip()
    if not user_id:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    await websocket.accept()
    await provision_user(state.store_group, user_id)
    structlog.contextvars.bind_contextvars(user_id=user_id)

    session = _WebSocketSession(websocket, user_id, state.store_group, state.event_hub)
    pump_task = asyncio.create_task(session.pump())
    log.info("ws_connected")
    try:
        while True:
            raw = await websocket.receive_text()
            await session.handle(raw)
    except WebSocketDisconnect:
        log.info("ws_disconnected", topics=sorted(session.topics))
    finally:
        pump_task.cancel()
        await session.close()
