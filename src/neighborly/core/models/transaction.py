"""Transaction Domain Model -- 双方两段式握手

状态不是独立存储的真相来源，而是四个标志位 + 显式取消的投影：
每次标志位变更后都调用 derive_transaction_status 重新计算。
"""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from .base import ApiModel
from .enums import TransactionStatus


class HandshakeFlags(ApiModel):
    """握手标志位 -- 一旦为 True 不会再被重置"""

    payer_start_requested: bool = False
    payee_start_requested: bool = False
    payer_confirmed: bool = False
    payee_confirmed: bool = False


def derive_transaction_status(
    flags: HandshakeFlags,
    cancelled: bool = False,
) -> TransactionStatus:
    """由标志位推导 Transaction 状态（纯函数）

    Args:
        flags: 当前四个握手标志位
        cancelled: 是否已被显式取消

    Returns:
        推导出的 TransactionStatus
    """
    if cancelled:
        return TransactionStatus.CANCELLED
    if flags.payer_confirmed and flags.payee_confirmed:
        return TransactionStatus.COMPLETED
    if flags.payer_start_requested and flags.payee_start_requested:
        return TransactionStatus.IN_PROGRESS
    if flags.payer_start_requested or flags.payee_start_requested:
        return TransactionStatus.START_REQUESTED
    return TransactionStatus.PENDING


class Transaction(HandshakeFlags):
    """Transaction 数据模型 -- 每个任务至多一条有效记录"""

    id: str = Field(description="唯一标识，ULID 格式")
    task_id: str = Field(description="关联任务 ID")
    payer_id: str = Field(description="付款方（任务作者）")
    payee_id: str = Field(description="收款方（任务帮助者）")
    amount: Decimal = Field(description="金额，创建时从任务报酬复制")
    status: TransactionStatus = Field(
        default=TransactionStatus.PENDING,
        description="派生状态",
    )
    created_at: datetime = Field(description="创建时间")
    completed_at: datetime | None = Field(default=None, description="双方确认完成时间")

    @property
    def flags(self) -> HandshakeFlags:
        return HandshakeFlags(
            payer_start_requested=self.payer_start_requested,
            payee_start_requested=self.payee_start_requested,
            payer_confirmed=self.payer_confirmed,
            payee_confirmed=self.payee_confirmed,
        )

    def role_of(self, user_id: str) -> str | None:
        """返回 "payer" / "payee"，非当事人返回 None"""
        if user_id == self.payer_id:
            return "payer"
        if user_id == self.payee_id:
            return "payee"
        return None

    def other_party(self, user_id: str) -> str:
        """返回另一方的 user id"""
        return self.payee_id if user_id == self.payer_id else self.payer_id
