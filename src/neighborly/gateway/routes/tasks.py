"""任务路由

POST   /api/tasks: 创建任务。
GET    /api/tasks/{task_id}: 任务详情（仅社区成员）。
PATCH  /api/tasks/{task_id}: 编辑 / 接受 / 指派 / 完成 / 取消。
DELETE /api/tasks/{task_id}: 作者取消任务。
GET    /api/tasks/{task_id}/events: 任务时间线。
"""

from decimal import Decimal

from fastapi import APIRouter, Depends
from neighborly.core.models import ApiModel, Event, Task, TaskStatus, TaskWithUsers
from neighborly.core.store import StoreGroup
from pydantic import Field

from ..deps import get_current_user_id, get_store_group
from ..services.task_service import TaskService

router = APIRouter()


class CreateTaskRequest(ApiModel):
    """任务创建请求体"""

    community_id: str = Field(description="所属社区 ID")
    title: str = Field(description="标题")
    description: str = Field(description="详细描述")
    category: str = Field(description="分类")
    reward: Decimal = Field(description="报酬")
    time_estimate: str | None = None
    location: str | None = None


class UpdateTaskRequest(ApiModel):
    """任务更新请求体 -- 只处理传入的字段"""

    title: str | None = None
    description: str | None = None
    category: str | None = None
    reward: Decimal | None = None
    time_estimate: str | None = None
    location: str | None = None
    helper_id: str | None = None
    status: TaskStatus | None = None


@router.post("/api/tasks", response_model=Task, status_code=201)
async def create_task(
    body: CreateTaskRequest,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """在社区内发布任务（作者必须是成员）"""
    fields = body.model_dump(exclude={"community_id"})
    return await TaskService(store_group).create_task(user_id, body.community_id, fields)


@router.get("/api/tasks/{task_id}", response_model=TaskWithUsers)
async def get_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    return await TaskService(store_group).get_task(user_id, task_id)


@router.patch("/api/tasks/{task_id}", response_model=Task)
async def update_task(
    task_id: str,
    body: UpdateTaskRequest,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """作者编辑任务，或帮助者通过 helperId=自己 接受任务"""
    patch = body.model_dump(exclude_unset=True)
    return await TaskService(store_group).update_task(task_id, user_id, patch)


@router.delete("/api/tasks/{task_id}", response_model=Task)
async def cancel_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """取消任务 -- 仅作者，仅 open / accepted"""
    return await TaskService(store_group).cancel_task(task_id, user_id)


@router.get("/api/tasks/{task_id}/events", response_model=list[Event])
async def list_task_events(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """任务时间线，按 taskSeq 升序"""
    return await TaskService(store_group).list_events(user_id, task_id)
