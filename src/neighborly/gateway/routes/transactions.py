"""交易路由

GET   /api/tasks/{task_id}/transaction: 任务的交易（没有时为 null）。
POST  /api/tasks/{task_id}/transaction: 创建交易（get-or-create）。
PATCH /api/transactions/{id}/start-request: 一方请求开始。
PATCH /api/transactions/{id}/confirm: 一方确认完成。
PATCH /api/transactions/{id}: {"status": "cancelled"} 取消交易。
"""

from typing import Literal

from fastapi import APIRouter, Depends, Response
from neighborly.core.models import ApiModel, Transaction
from neighborly.core.store import StoreGroup

from ..deps import get_current_user_id, get_event_hub, get_store_group
from ..services.event_hub import EventHub
from ..services.transaction_service import TransactionService

router = APIRouter()


class UpdateTransactionRequest(ApiModel):
    """交易更新请求体 -- 只支持取消"""

    status: Literal["cancelled"]


@router.get("/api/tasks/{task_id}/transaction", response_model=Transaction | None)
async def get_task_transaction(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    return await TransactionService(store_group).get_for_task(user_id, task_id)


@router.post("/api/tasks/{task_id}/transaction", response_model=Transaction)
async def create_task_transaction(
    task_id: str,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """新建返回 201，已存在未取消的交易时返回 200 + 该交易"""
    transaction, created = await TransactionService(store_group).create_transaction(
        task_id, user_id
    )
    response.status_code = 201 if created else 200
    return transaction


@router.patch("/api/transactions/{transaction_id}/start-request", response_model=Transaction)
async def request_start(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
    event_hub: EventHub = Depends(get_event_hub),
):
    return await TransactionService(store_group, event_hub).request_start(
        transaction_id, user_id
    )


@router.patch("/api/transactions/{transaction_id}/confirm", response_model=Transaction)
async def confirm(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    return await TransactionService(store_group).confirm(transaction_id, user_id)


@router.patch("/api/transactions/{transaction_id}", response_model=Transaction)
async def update_transaction(
    transaction_id: str,
    body: UpdateTransactionRequest,
    user_id: str = Depends(get_current_user_id),
    store_group: StoreGroup = Depends(get_store_group),
):
    """取消交易 -- 任一方，非终态"""
    return await TransactionService(store_group).cancel(transaction_id, user_id)
