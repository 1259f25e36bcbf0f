"""评分路由

POST /api/ratings: 任务完成后对对方评分。
GET  /api/tasks/{task_id}/rating: 调用者对该任务的评分（没有时为 null）。
"""

from decimal import Decimal

from fastapi import APIRouter, Depends
from neighborly.core.config import RATING_MAX, RATING_MIN
from neighborly.core.models import ApiModel, Rating
from neighborly.core.store import StoreGroup
from pydantic import Field

from ..deps import get_current_user_id, get_store_group
from ..services.rating_service import RatingService

router = APIRouter()


class CreateRatingRequest(ApiModel):
    """评分请求体"""

    task_id: str
    rated_id: str
    rating: int = Field(ge=RATING_MIN, le=RATING_MAX)
    comment: str | None = Field(default=None, max_length=2000)


class CreateRatingResponse(ApiModel):
    rating: Rating
    rated_user_rating: Decimal = Field(description="被评分人的新均值")


@router.post("/api/ratings", response_model=CreateRatingResponse, status_code=201)
async def create_rating(
    body: CreateRatingRequest,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    rating, average = await RatingService(store_group).submit_rating(
        rater_id=user_id,
        task_id=body.task_id,
        rated_id=body.rated_id,
        score=body.rating,
        comment=body.comment,
    )
    return CreateRatingResponse(rating=rating, rated_user_rating=average)


@router.get("/api/tasks/{task_id}/rating", response_model=Rating | None)
async def get_my_rating(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    return await RatingService(store_group).get_my_rating(user_id, task_id)
