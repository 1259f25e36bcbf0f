"""社区路由

GET    /api/communities: 全部社区，最新的在前。
POST   /api/communities: 创建社区（创建者自动加入）。
POST   /api/communities/{id}/join: 加入社区（幂等）。
DELETE /api/communities/{id}: 创建者删除社区（级联）。
GET    /api/user/communities: 当前用户加入的社区。
GET    /api/communities/{id}/tasks: 社区内未结束的任务（仅成员）。
"""

from fastapi import APIRouter, Depends, Response
from neighborly.core.models import ApiModel, Community, TaskWithUsers, VerificationMethod
from neighborly.core.store import StoreGroup

from ..deps import get_current_user_id, get_store_group
from ..services.community_service import CommunityService
from ..services.task_service import TaskService

router = APIRouter()


class CreateCommunityRequest(ApiModel):
    """社区创建请求体"""

    name: str
    description: str | None = None
    verification_method: VerificationMethod
    verification_data: str | None = None
    show_real_names: bool = False
    show_addresses: bool = False


class DeleteCommunityResponse(ApiModel):
    community_id: str
    deleted_tasks: int


@router.get("/api/communities", response_model=list[Community])
async def list_communities(
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    return await CommunityService(store_group).list_communities()


@router.post("/api/communities", response_model=Community, status_code=201)
async def create_community(
    body: CreateCommunityRequest,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """创建社区，创建者自动加入"""
    return await CommunityService(store_group).create_community(
        creator_id=user_id,
        name=body.name,
        verification_method=body.verification_method,
        description=body.description,
        verification_data=body.verification_data,
        show_real_names=body.show_real_names,
        show_addresses=body.show_addresses,
    )


@router.post("/api/communities/{community_id}/join", response_model=Community)
async def join_community(
    community_id: str,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """加入社区 -- 新加入返回 201，已是成员返回 200"""
    community, joined = await CommunityService(store_group).join(user_id, community_id)
    response.status_code = 201 if joined else 200
    return community


@router.delete("/api/communities/{community_id}", response_model=DeleteCommunityResponse)
async def delete_community(
    community_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """创建者删除社区及其全部任务、会话、消息、交易、评分"""
    deleted = await CommunityService(store_group).delete(user_id, community_id)
    return DeleteCommunityResponse(community_id=community_id, deleted_tasks=deleted)


@router.get("/api/user/communities", response_model=list[Community])
async def list_my_communities(
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    return await CommunityService(store_group).list_user_communities(user_id)


@router.get("/api/communities/{community_id}/tasks", response_model=list[TaskWithUsers])
async def list_community_tasks(
    community_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """社区内未结束的任务，按创建时间倒序（仅成员）"""
    return await TaskService(store_group).list_community_tasks(user_id, community_id)
