"""RatingService -- 评分提交与均值重算

评分写入与被评分人均值重算在同一事务内完成。
"""

from datetime import UTC, datetime
from decimal import Decimal

import structlog
from neighborly.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    ValidationFailedError,
)
from neighborly.core.models import (
    EventType,
    Rating,
    RatingSubmittedPayload,
    TaskStatus,
)
from neighborly.core.store import (
    StoreGroup,
    append_task_event,
    insert_rating_and_recompute,
)
from ulid import ULID

from .access import get_task_or_404, get_visible_task

log = structlog.get_logger()


class RatingService:
    """评分业务服务"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def submit_rating(
        self,
        rater_id: str,
        task_id: str,
        rated_id: str,
        score: int,
        comment: str | None = None,
    ) -> tuple[Rating, Decimal]:
        """对任务对方评分

        Returns:
            (评分记录, 被评分人的新均值)

        Raises:
            ForbiddenError: 评分人不是任务当事人
            InvalidStateError: 任务尚未完成
            ValidationFailedError: 被评分人不是对方
            ConflictError: 已经评过分
        """
        async with self._stores.atomic():
            task = await get_task_or_404(self._stores, task_id)
            if not task.is_party(rater_id):
                raise ForbiddenError("Only the task author or helper can rate this task")
            if task.status != TaskStatus.COMPLETED:
                raise InvalidStateError(f"Cannot rate a {task.status} task")
            if rated_id != task.counterpart_of(rater_id):
                raise ValidationFailedError("ratedId must be the other party of the task")
            if await self._stores.rating_store.get_for_task_and_rater(task_id, rater_id):
                raise ConflictError("Task already rated", code="ALREADY_RATED")

            now = datetime.now(UTC)
            rating = Rating(
                id=str(ULID()),
                task_id=task_id,
                rater_id=rater_id,
                rated_id=rated_id,
                rating=score,
                comment=comment.strip() if comment and comment.strip() else None,
                created_at=now,
            )
            average = await insert_rating_and_recompute(
                self._stores.rating_store,
                self._stores.user_store,
                rating,
            )
            await append_task_event(
                self._stores.event_store,
                task_id,
                EventType.RATING_SUBMITTED,
                rater_id,
                RatingSubmittedPayload(
                    rating_id=rating.id,
                    rated_id=rated_id,
                    rating=score,
                ),
                now,
            )

        log.info(
            "rating_submitted",
            task_id=task_id,
            rated_id=rated_id,
            rating=score,
            average=str(average),
        )
        return rating, average

    async def get_my_rating(self, user_id: str, task_id: str) -> Rating | None:
        """调用者对该任务的评分，没有时返回 None"""
        async with self._stores.read():
            await get_visible_task(self._stores, user_id, task_id)
            return await self._stores.rating_store.get_for_task_and_rater(task_id, user_id)

    async def list_received(self, user_id: str) -> list[Rating]:
        """用户收到的评分，最新的在前"""
        async with self._stores.read():
            return await self._stores.rating_store.list_for_rated(user_id)
