"""TaskService -- 任务创建/接受/编辑/完成/取消

所有状态写入都在 StoreGroup.atomic() 内完成：先在写锁内重新读取任务，
再做授权与状态检查，最后写入状态和对应的时间线事件，一并提交。
"""

from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from neighborly.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    ValidationFailedError,
)
from neighborly.core.models import (
    CANCELLABLE_STATES,
    TERMINAL_STATES,
    Event,
    EventType,
    HelperAssignedPayload,
    Task,
    TaskCreatedPayload,
    TaskStateTransitionPayload,
    TaskStatus,
    TaskWithUsers,
    quantize_money,
    validate_transition,
)
from neighborly.core.store import StoreGroup, append_task_event
from neighborly.core.store.task_store import DETAIL_FIELDS
from ulid import ULID

from .access import (
    get_community_or_404,
    get_task_or_404,
    get_visible_task,
    require_member,
)

log = structlog.get_logger()


def _clean_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailedError(f"{field} is required")
    return value.strip()


def _clean_reward(value: Any) -> Decimal:
    try:
        reward = quantize_money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailedError("reward must be a decimal amount") from None
    if reward <= 0:
        raise ValidationFailedError("reward must be greater than zero")
    return reward


def _clean_details(fields: dict[str, Any]) -> dict[str, Any]:
    """校验并规范化可编辑字段"""
    cleaned: dict[str, Any] = {}
    for key, value in fields.items():
        if key in ("title", "description", "category"):
            cleaned[key] = _clean_text(value, key)
        elif key == "reward":
            cleaned[key] = _clean_reward(value)
        else:
            cleaned[key] = value.strip() if isinstance(value, str) and value.strip() else None
    return cleaned


class TaskService:
    """任务业务服务"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    async def with_users(self, tasks: list[Task]) -> list[TaskWithUsers]:
        """为任务附加作者 / 帮助者公开资料"""
        user_ids = [t.author_id for t in tasks] + [t.helper_id for t in tasks if t.helper_id]
        profiles = await self._stores.user_store.get_profiles(user_ids)
        return [
            TaskWithUsers(
                **task.model_dump(),
                author=profiles[task.author_id],
                helper=profiles.get(task.helper_id) if task.helper_id else None,
            )
            for task in tasks
        ]

    async def get_task(self, user_id: str, task_id: str) -> TaskWithUsers:
        """任务详情（仅社区成员可见）"""
        async with self._stores.read():
            task = await get_visible_task(self._stores, user_id, task_id)
            return (await self.with_users([task]))[0]

    async def list_community_tasks(self, user_id: str, community_id: str) -> list[TaskWithUsers]:
        """社区内未结束的任务（仅成员可见）"""
        async with self._stores.read():
            await get_community_or_404(self._stores, community_id)
            await require_member(self._stores, user_id, community_id)
            tasks = await self._stores.task_store.list_active_tasks(community_id)
            return await self.with_users(tasks)

    async def list_events(self, user_id: str, task_id: str) -> list[Event]:
        """任务时间线（仅社区成员可见）"""
        async with self._stores.read():
            await get_visible_task(self._stores, user_id, task_id)
            return await self._stores.event_store.get_events_for_task(task_id)

    # ------------------------------------------------------------------
    # 写入
    # ------------------------------------------------------------------

    async def create_task(
        self,
        author_id: str,
        community_id: str,
        fields: dict[str, Any],
    ) -> Task:
        """创建任务

        Raises:
            NotFoundError: 社区不存在
            ForbiddenError: 作者不是社区成员
            ValidationFailedError: 必填字段缺失或报酬不合法
        """
        cleaned = _clean_details({k: v for k, v in fields.items() if k in DETAIL_FIELDS})
        for required in ("title", "description", "category", "reward"):
            if required not in cleaned:
                raise ValidationFailedError(f"{required} is required")

        now = datetime.now(UTC)
        task = Task(
            id=str(ULID()),
            status=TaskStatus.OPEN,
            author_id=author_id,
            helper_id=None,
            community_id=community_id,
            created_at=now,
            updated_at=now,
            **cleaned,
        )

        async with self._stores.atomic():
            await get_community_or_404(self._stores, community_id)
            await require_member(self._stores, author_id, community_id)
            await self._stores.task_store.create_task(task)
            await append_task_event(
                self._stores.event_store,
                task.id,
                EventType.TASK_CREATED,
                author_id,
                TaskCreatedPayload(
                    title=task.title,
                    community_id=community_id,
                    reward=task.reward,
                ),
                now,
            )

        log.info(
            "task_created",
            task_id=task.id,
            community_id=community_id,
            author_id=author_id,
        )
        return task

    async def accept_task(self, task_id: str, actor_id: str) -> Task:
        """帮助者接受任务：helper = actor，状态 open -> accepted"""
        async with self._stores.atomic():
            task = await get_task_or_404(self._stores, task_id)
            await self._assign_helper(task, actor_id, actor_id)
            return await get_task_or_404(self._stores, task_id)

    async def update_task(self, task_id: str, actor_id: str, patch: dict[str, Any]) -> Task:
        """PATCH /api/tasks/{id}

        授权规则：actor 是作者，或 patch.helper_id == actor（帮助者自荐即接受）。
        作者可以编辑详情、指派帮助者、把状态设为 completed / cancelled。
        status=accepted 只能与 helper_id 一起出现，等同于指派。
        """
        helper_id = patch.get("helper_id")
        status = patch.get("status")
        details = {k: v for k, v in patch.items() if k in DETAIL_FIELDS}

        async with self._stores.atomic():
            task = await get_task_or_404(self._stores, task_id)

            if helper_id is not None and helper_id == task.author_id:
                raise ValidationFailedError(
                    "Task author cannot be the helper",
                    code="SELF_ACCEPT",
                )
            if actor_id != task.author_id and helper_id != actor_id:
                raise ForbiddenError("Only the task author can edit this task")

            if actor_id != task.author_id:
                # 帮助者只能把自己设为 helper，可附带 status=accepted
                if details or status not in (None, TaskStatus.ACCEPTED):
                    raise ForbiddenError("Only the task author can edit this task")
                await self._assign_helper(task, actor_id, actor_id)
                return await get_task_or_404(self._stores, task_id)

            if status == TaskStatus.ACCEPTED and helper_id is None:
                raise InvalidStateError("Accepting a task requires a helper")
            if status not in (
                None,
                TaskStatus.ACCEPTED,
                TaskStatus.COMPLETED,
                TaskStatus.CANCELLED,
            ):
                raise InvalidStateError(f"Cannot set task status to {status}")

            now = datetime.now(UTC)
            if details:
                if task.status in TERMINAL_STATES:
                    raise InvalidStateError(f"Cannot edit a {task.status} task")
                await self._stores.task_store.update_details(
                    task.id, _clean_details(details), now
                )
                log.info("task_details_updated", task_id=task.id, fields=sorted(details))

            if helper_id is not None:
                task = await self._assign_helper(task, helper_id, actor_id)

            if status == TaskStatus.COMPLETED:
                await self._complete(task, actor_id)
            elif status == TaskStatus.CANCELLED:
                await self._cancel(task, actor_id)

            return await get_task_or_404(self._stores, task_id)

    async def complete_task(self, task_id: str, actor_id: str) -> Task:
        """作者标记任务完成"""
        async with self._stores.atomic():
            task = await get_task_or_404(self._stores, task_id)
            await self._complete(task, actor_id)
            return await get_task_or_404(self._stores, task_id)

    async def cancel_task(self, task_id: str, actor_id: str) -> Task:
        """作者取消任务（仅 open / accepted）"""
        async with self._stores.atomic():
            task = await get_task_or_404(self._stores, task_id)
            await self._cancel(task, actor_id)
            return await get_task_or_404(self._stores, task_id)

    # ------------------------------------------------------------------
    # 内部：必须在 atomic() 块内调用
    # ------------------------------------------------------------------

    async def _assign_helper(self, task: Task, helper_id: str, actor_id: str) -> Task:
        """设置 helper 并进入 accepted"""
        if helper_id == task.author_id:
            raise ValidationFailedError(
                "Task author cannot accept their own task",
                code="SELF_ACCEPT",
            )
        await require_member(self._stores, helper_id, task.community_id)
        if task.helper_id is not None:
            raise ConflictError("Task already has a helper", code="TASK_ALREADY_ACCEPTED")
        if task.status != TaskStatus.OPEN:
            raise InvalidStateError(f"Cannot accept a {task.status} task")

        now = datetime.now(UTC)
        if not await self._stores.task_store.assign_helper(task.id, helper_id, now):
            raise ConflictError("Task already has a helper", code="TASK_ALREADY_ACCEPTED")

        await append_task_event(
            self._stores.event_store,
            task.id,
            EventType.HELPER_ASSIGNED,
            actor_id,
            HelperAssignedPayload(helper_id=helper_id),
            now,
        )
        await self._record_transition(task.id, TaskStatus.OPEN, TaskStatus.ACCEPTED, actor_id, now)

        log.info("task_accepted", task_id=task.id, helper_id=helper_id)
        return task.model_copy(
            update={"helper_id": helper_id, "status": TaskStatus.ACCEPTED, "updated_at": now}
        )

    async def _complete(self, task: Task, actor_id: str) -> None:
        if actor_id != task.author_id:
            raise ForbiddenError("Only the task author can complete this task")
        if task.status not in (TaskStatus.ACCEPTED, TaskStatus.IN_PROGRESS):
            raise InvalidStateError(f"Cannot complete a {task.status} task")

        now = datetime.now(UTC)
        await self._transition(task, TaskStatus.COMPLETED, actor_id, now, reason="completed by author")

        if task.helper_id:
            await self._stores.user_store.increment_counters(
                task.helper_id,
                completed_tasks=1,
                help_given=1,
            )
        await self._stores.user_store.increment_counters(task.author_id, help_received=1)
        log.info("task_completed", task_id=task.id, helper_id=task.helper_id)

    async def _cancel(self, task: Task, actor_id: str) -> None:
        if actor_id != task.author_id:
            raise ForbiddenError("Only the task author can cancel this task")
        if task.status not in CANCELLABLE_STATES:
            raise InvalidStateError(f"Cannot cancel a {task.status} task")

        now = datetime.now(UTC)
        await self._transition(task, TaskStatus.CANCELLED, actor_id, now, reason="cancelled by author")
        log.info("task_cancelled", task_id=task.id)

    async def _transition(
        self,
        task: Task,
        to_status: TaskStatus,
        actor_id: str,
        now: datetime,
        reason: str = "",
    ) -> None:
        """按状态机写入新状态 + 事件"""
        if not validate_transition(task.status, to_status):
            raise InvalidStateError(f"Cannot move task from {task.status} to {to_status}")
        if not await self._stores.task_store.update_status(task.id, task.status, to_status, now):
            raise ConflictError("Task was modified concurrently", code="TASK_STATUS_CONFLICT")
        await self._record_transition(task.id, task.status, to_status, actor_id, now, reason)

    async def _record_transition(
        self,
        task_id: str,
        from_status: TaskStatus,
        to_status: TaskStatus,
        actor_id: str,
        now: datetime,
        reason: str = "",
    ) -> None:
        await append_task_event(
            self._stores.event_store,
            task_id,
            EventType.TASK_STATE_TRANSITION,
            actor_id,
            TaskStateTransitionPayload(
                from_status=from_status,
                to_status=to_status,
                reason=reason,
            ),
            now,
        )
