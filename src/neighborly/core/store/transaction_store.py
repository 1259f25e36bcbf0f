"""TransactionStore SQLite 实现

status 列是握手标志位的投影，写入时与标志位一并更新。
idx_transactions_active_task 保证每个任务至多一条未取消的交易。
"""

from datetime import datetime
from decimal import Decimal

import aiosqlite

from ..models.enums import TransactionStatus
from ..models.transaction import Transaction


class SqliteTransactionStore:
    """TransactionStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_transaction(self, transaction: Transaction) -> None:
        """创建交易记录

        Raises:
            aiosqlite.IntegrityError: 该任务已有未取消的交易
        """
        await self._conn.execute(
            """
            INSERT INTO transactions (id, task_id, payer_id, payee_id, amount, status,
                                      payer_start_requested, payee_start_requested,
                                      payer_confirmed, payee_confirmed, cancelled,
                                      created_at, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                transaction.id,
                transaction.task_id,
                transaction.payer_id,
                transaction.payee_id,
                str(transaction.amount),
                transaction.status.value,
                int(transaction.payer_start_requested),
                int(transaction.payee_start_requested),
                int(transaction.payer_confirmed),
                int(transaction.payee_confirmed),
                int(transaction.status == TransactionStatus.CANCELLED),
                transaction.created_at.isoformat(),
                None,
            ),
        )

    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        """根据 id 查询交易"""
        cursor = await self._conn.execute(
            "SELECT * FROM transactions WHERE id = ?",
            (transaction_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_transaction(row)

    async def get_active_for_task(self, task_id: str) -> Transaction | None:
        """任务当前未取消的交易"""
        cursor = await self._conn.execute(
            "SELECT * FROM transactions WHERE task_id = ? AND status != ?",
            (task_id, TransactionStatus.CANCELLED.value),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_transaction(row)

    async def get_latest_for_task(self, task_id: str) -> Transaction | None:
        """任务最近一条交易（含已取消），优先返回未取消的"""
        active = await self.get_active_for_task(task_id)
        if active is not None:
            return active
        cursor = await self._conn.execute(
            """
            SELECT * FROM transactions WHERE task_id = ?
            ORDER BY created_at DESC, id DESC LIMIT 1
            """,
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_transaction(row)

    async def save_handshake(self, transaction: Transaction, cancelled: bool = False) -> None:
        """写回标志位、派生状态与完成时间

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            """
            UPDATE transactions
            SET payer_start_requested = ?, payee_start_requested = ?,
                payer_confirmed = ?, payee_confirmed = ?,
                cancelled = ?, status = ?, completed_at = ?
            WHERE id = ?
            """,
            (
                int(transaction.payer_start_requested),
                int(transaction.payee_start_requested),
                int(transaction.payer_confirmed),
                int(transaction.payee_confirmed),
                int(cancelled),
                transaction.status.value,
                transaction.completed_at.isoformat() if transaction.completed_at else None,
                transaction.id,
            ),
        )

    @staticmethod
    def _row_to_transaction(row: aiosqlite.Row) -> Transaction:
        """将数据库行转换为 Transaction 模型"""
        completed_at = row["completed_at"]
        return Transaction(
            id=row["id"],
            task_id=row["task_id"],
            payer_id=row["payer_id"],
            payee_id=row["payee_id"],
            amount=Decimal(row["amount"]),
            status=TransactionStatus(row["status"]),
            payer_start_requested=bool(row["payer_start_requested"]),
            payee_start_requested=bool(row["payee_start_requested"]),
            payer_confirmed=bool(row["payer_confirmed"]),
            payee_confirmed=bool(row["payee_confirmed"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
        )
