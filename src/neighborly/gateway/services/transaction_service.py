"""TransactionService -- 双方两段式握手

每个操作都是写锁内的一次读-改-写：重新读取交易行，设置调用方的标志位，
用 derive_transaction_status 重新计算状态，写回并追加时间线事件，一并提交。
双方都请求开始时，任务在同一事务内 accepted -> in_progress。
提交之后才推送 transaction_start_request。
"""

from datetime import UTC, datetime

import aiosqlite
import structlog
from neighborly.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
)
from neighborly.core.models import (
    TRANSACTION_TERMINAL_STATES,
    EventType,
    Task,
    TaskStateTransitionPayload,
    TaskStatus,
    Transaction,
    TransactionCreatedPayload,
    TransactionHandshakePayload,
    TransactionStartRequestEnvelope,
    TransactionStatus,
    derive_transaction_status,
    to_wire,
)
from neighborly.core.store import StoreGroup, append_task_event
from ulid import ULID

from .access import get_task_or_404, get_transaction_or_404, get_visible_task
from .event_hub import EventHub

log = structlog.get_logger()

# 可以创建交易的任务状态
_TRANSACTABLE_TASK_STATES = {TaskStatus.ACCEPTED, TaskStatus.IN_PROGRESS}

# 可以请求开始的交易状态；in_progress 下重复请求不改变状态
_STARTABLE_STATES = {
    TransactionStatus.PENDING,
    TransactionStatus.START_REQUESTED,
    TransactionStatus.IN_PROGRESS,
}


def _require_party(transaction: Transaction, actor_id: str) -> str:
    """返回 actor 的角色（payer / payee），非当事人 Forbidden"""
    role = transaction.role_of(actor_id)
    if role is None:
        raise ForbiddenError("Only the payer or payee can act on this transaction")
    return role


class TransactionService:
    """交易握手业务服务"""

    def __init__(self, store_group: StoreGroup, event_hub: EventHub | None = None) -> None:
        self._stores = store_group
        self._event_hub = event_hub

    async def get_for_task(self, user_id: str, task_id: str) -> Transaction | None:
        """任务的交易（仅社区成员可见），没有时返回 None"""
        async with self._stores.read():
            await get_visible_task(self._stores, user_id, task_id)
            return await self._stores.transaction_store.get_latest_for_task(task_id)

    async def create_transaction(self, task_id: str, actor_id: str) -> tuple[Transaction, bool]:
        """为任务创建交易（get-or-create）

        Returns:
            (交易, 是否新建)

        Raises:
            NotFoundError: 任务不存在
            ForbiddenError: actor 不是任务作者或帮助者
            InvalidStateError: 任务没有帮助者或不处于 accepted / in_progress
        """
        async with self._stores.atomic():
            task = await get_task_or_404(self._stores, task_id)
            if not task.is_party(actor_id):
                raise ForbiddenError("Only the task author or helper can create a transaction")
            if task.helper_id is None:
                raise InvalidStateError("Cannot create a transaction before a helper accepts")
            if task.status not in _TRANSACTABLE_TASK_STATES:
                raise InvalidStateError(f"Cannot create a transaction for a {task.status} task")

            existing = await self._stores.transaction_store.get_active_for_task(task_id)
            if existing is not None:
                return existing, False

            now = datetime.now(UTC)
            transaction = Transaction(
                id=str(ULID()),
                task_id=task.id,
                payer_id=task.author_id,
                payee_id=task.helper_id,
                amount=task.reward,
                status=TransactionStatus.PENDING,
                created_at=now,
            )
            try:
                await self._stores.transaction_store.create_transaction(transaction)
            except aiosqlite.IntegrityError:
                # 部分唯一索引兜底
                existing = await self._stores.transaction_store.get_active_for_task(task_id)
                if existing is None:
                    raise
                return existing, False

            await append_task_event(
                self._stores.event_store,
                task.id,
                EventType.TRANSACTION_CREATED,
                actor_id,
                TransactionCreatedPayload(
                    transaction_id=transaction.id,
                    payer_id=transaction.payer_id,
                    payee_id=transaction.payee_id,
                    amount=transaction.amount,
                ),
                now,
            )

        log.info(
            "transaction_created",
            transaction_id=transaction.id,
            task_id=task_id,
            amount=str(transaction.amount),
        )
        return transaction, True

    async def request_start(self, transaction_id: str, actor_id: str) -> Transaction:
        """一方请求开始；双方都请求后进入 in_progress

        Raises:
            ForbiddenError: actor 不是当事人
            InvalidStateError: 交易已 completed / cancelled
        """
        async with self._stores.atomic():
            current = await get_transaction_or_404(self._stores, transaction_id)
            role = _require_party(current, actor_id)
            if current.status not in _STARTABLE_STATES:
                raise InvalidStateError(f"Cannot request start on a {current.status} transaction")

            updated = self._apply_flag(current, f"{role}_start_requested")
            await self._stores.transaction_store.save_handshake(updated)
            now = datetime.now(UTC)
            await append_task_event(
                self._stores.event_store,
                updated.task_id,
                EventType.TRANSACTION_START_REQUESTED,
                actor_id,
                TransactionHandshakePayload(
                    transaction_id=updated.id,
                    role=role,
                    from_status=current.status,
                    to_status=updated.status,
                ),
                now,
            )

            both_requested = updated.status == TransactionStatus.IN_PROGRESS
            if both_requested and current.status != TransactionStatus.IN_PROGRESS:
                task = await get_task_or_404(self._stores, updated.task_id)
                await self._start_task(task, actor_id, now)

        log.info(
            "transaction_start_requested",
            transaction_id=updated.id,
            role=role,
            status=updated.status,
        )

        envelope = TransactionStartRequestEnvelope(
            task_id=updated.task_id,
            transaction_id=updated.id,
            requested_by=actor_id,
            other_user_id=updated.other_party(actor_id),
            both_requested=both_requested,
        )
        if self._event_hub is not None:
            await self._event_hub.publish(f"task:{updated.task_id}", to_wire(envelope))
        return updated

    async def confirm(self, transaction_id: str, actor_id: str) -> Transaction:
        """一方确认完成；双方都确认后 completed 并记录完成时间（不推送）"""
        async with self._stores.atomic():
            current = await get_transaction_or_404(self._stores, transaction_id)
            role = _require_party(current, actor_id)
            if current.status in TRANSACTION_TERMINAL_STATES:
                raise InvalidStateError(f"Cannot confirm a {current.status} transaction")

            updated = self._apply_flag(current, f"{role}_confirmed")
            now = datetime.now(UTC)
            if updated.status == TransactionStatus.COMPLETED:
                updated = updated.model_copy(update={"completed_at": now})
            await self._stores.transaction_store.save_handshake(updated)
            await append_task_event(
                self._stores.event_store,
                updated.task_id,
                EventType.TRANSACTION_CONFIRMED,
                actor_id,
                TransactionHandshakePayload(
                    transaction_id=updated.id,
                    role=role,
                    from_status=current.status,
                    to_status=updated.status,
                ),
                now,
            )

        log.info(
            "transaction_confirmed",
            transaction_id=updated.id,
            role=role,
            status=updated.status,
        )
        return updated

    async def cancel(self, transaction_id: str, actor_id: str) -> Transaction:
        """任一方取消交易，标志位保持不变"""
        async with self._stores.atomic():
            current = await get_transaction_or_404(self._stores, transaction_id)
            role = _require_party(current, actor_id)
            if current.status in TRANSACTION_TERMINAL_STATES:
                raise InvalidStateError(f"Cannot cancel a {current.status} transaction")

            updated = current.model_copy(
                update={"status": derive_transaction_status(current.flags, cancelled=True)}
            )
            await self._stores.transaction_store.save_handshake(updated, cancelled=True)
            await append_task_event(
                self._stores.event_store,
                updated.task_id,
                EventType.TRANSACTION_CANCELLED,
                actor_id,
                TransactionHandshakePayload(
                    transaction_id=updated.id,
                    role=role,
                    from_status=current.status,
                    to_status=updated.status,
                ),
                datetime.now(UTC),
            )

        log.info("transaction_cancelled", transaction_id=updated.id, role=role)
        return updated

    @staticmethod
    def _apply_flag(transaction: Transaction, flag: str) -> Transaction:
        """置位一个握手标志并重新推导状态（标志位只会从 False 变 True）"""
        flagged = transaction.model_copy(update={flag: True})
        return flagged.model_copy(update={"status": derive_transaction_status(flagged.flags)})

    async def _start_task(self, task: Task, actor_id: str, now: datetime) -> None:
        """交易进入 in_progress 时把任务 accepted -> in_progress"""
        if task.status != TaskStatus.ACCEPTED:
            log.info(
                "task_start_skipped",
                task_id=task.id,
                status=task.status,
            )
            return
        await self._stores.task_store.update_status(
            task.id, TaskStatus.ACCEPTED, TaskStatus.IN_PROGRESS, now
        )
        await append_task_event(
            self._stores.event_store,
            task.id,
            EventType.TASK_STATE_TRANSITION,
            actor_id,
            TaskStateTransitionPayload(
                from_status=TaskStatus.ACCEPTED,
                to_status=TaskStatus.IN_PROGRESS,
                reason="both parties requested start",
            ),
            now,
        )
        log.info("task_started", task_id=task.id)
