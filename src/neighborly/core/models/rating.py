"""Rating Domain Model -- 每个 (task_id, rater_id) 至多一条"""

from datetime import datetime

from pydantic import Field

from ..config import RATING_MAX, RATING_MIN
from .base import ApiModel


class Rating(ApiModel):
    """评分记录 -- 创建后不可变"""

    id: str = Field(description="唯一标识，ULID 格式")
    task_id: str
    rater_id: str = Field(description="评分人")
    rated_id: str = Field(description="被评分人")
    rating: int = Field(ge=RATING_MIN, le=RATING_MAX, description="1-5 分")
    comment: str | None = None
    created_at: datetime
