"""EventHub -- 内存中按主题广播的实时推送器

主题为 "task:{id}" 或 "conversation:{id}"。每个订阅者持有一个有界 asyncio.Queue，
同一个队列可以订阅多个主题（WebSocket 连接），也可以只订阅一个（SSE 连接）。
推送是 fire-and-forget：队列已满的订阅者跳过本条消息，不排队、不重试、不回放。
持久化数据才是真相来源，推送只是提示。
"""

import asyncio
from collections import defaultdict
from typing import Any

import structlog
from neighborly.core.config import EVENT_QUEUE_MAXSIZE

log = structlog.get_logger()

Envelope = dict[str, Any]


class EventHub:
    """按主题发布/订阅"""

    def __init__(self, queue_maxsize: int = EVENT_QUEUE_MAXSIZE) -> None:
        # topic -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    def new_queue(self) -> asyncio.Queue:
        """创建一个可跨多个主题复用的订阅队列"""
        return asyncio.Queue(maxsize=self._queue_maxsize)

    async def subscribe(self, topic: str, queue: asyncio.Queue | None = None) -> asyncio.Queue:
        """订阅主题

        Args:
            topic: 主题
            queue: 复用已有队列；为 None 时新建

        Returns:
            接收推送的 asyncio.Queue
        """
        if queue is None:
            queue = self.new_queue()
        self._subscribers[topic].add(queue)
        return queue

    async def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        """取消订阅"""
        subscribers = self._subscribers.get(topic)
        if subscribers is None:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[topic]

    async def unsubscribe_all(self, queue: asyncio.Queue) -> None:
        """从所有主题移除该队列（连接断开时）"""
        for topic in list(self._subscribers):
            await self.unsubscribe(topic, queue)

    async def publish(self, topic: str, envelope: Envelope) -> int:
        """向主题的全部订阅者推送

        Returns:
            成功入队的订阅者数
        """
        delivered = 0
        for queue in list(self._subscribers.get(topic, ())):
            try:
                queue.put_nowait(envelope)
                delivered += 1
            except asyncio.QueueFull:
                log.warning(
                    "event_hub_subscriber_skipped",
                    topic=topic,
                    envelope_type=envelope.get("type"),
                )
        log.debug(
            "event_hub_published",
            topic=topic,
            envelope_type=envelope.get("type"),
            delivered=delivered,
        )
        return delivered

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))
