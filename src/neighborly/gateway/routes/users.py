"""用户路由

GET /api/auth/user: 当前用户完整资料。
PUT /api/auth/user: 更新当前用户资料。
GET /api/users/{user_id}/ratings: 用户收到的评分。
"""

from datetime import UTC, datetime

import aiosqlite
import structlog
from fastapi import APIRouter, Depends
from neighborly.core.exceptions import ConflictError, NotFoundError
from neighborly.core.models import ApiModel, Rating, User
from neighborly.core.store import StoreGroup
from pydantic import Field

from ..deps import get_current_user_id, get_store_group
from ..services.rating_service import RatingService

log = structlog.get_logger()

router = APIRouter()


class UpdateProfileRequest(ApiModel):
    """资料更新请求体（只更新传入的字段）"""

    email: str | None = Field(default=None, max_length=320)
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None
    phone: str | None = None
    address: str | None = None


async def _load_user(store_group: StoreGroup, user_id: str) -> User:
    async with store_group.read():
        user = await store_group.user_store.get_user(user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


@router.get("/api/auth/user", response_model=User)
async def get_me(
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """当前用户资料（含联系方式）"""
    return await _load_user(store_group, user_id)


@router.put("/api/auth/user", response_model=User)
async def update_me(
    body: UpdateProfileRequest,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """更新当前用户资料"""
    fields = body.model_dump(exclude_unset=True)
    try:
        async with store_group.atomic():
            await store_group.user_store.update_profile(user_id, fields, datetime.now(UTC))
    except aiosqlite.IntegrityError:
        raise ConflictError("Email is already in use", code="EMAIL_TAKEN") from None
    log.info("user_profile_updated", fields=sorted(fields))
    return await _load_user(store_group, user_id)


@router.get("/api/users/{target_id}/ratings", response_model=list[Rating])
async def list_user_ratings(
    target_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """用户收到的评分，最新的在前"""
    await _load_user(store_group, target_id)
    return await RatingService(store_group).list_received(target_id)
