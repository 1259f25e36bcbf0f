"""状态机单元测试

测试内容：
1. 任务状态只能按合法流转前进
2. 终态不可再流转
3. 交易状态由握手标志位推导
"""

import itertools

import pytest
from neighborly.core.models import (
    CANCELLABLE_STATES,
    TERMINAL_STATES,
    HandshakeFlags,
    TaskStatus,
    TransactionStatus,
    derive_transaction_status,
    validate_transition,
)


class TestTaskTransitions:
    """任务状态流转"""

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (TaskStatus.OPEN, TaskStatus.ACCEPTED),
            (TaskStatus.OPEN, TaskStatus.CANCELLED),
            (TaskStatus.ACCEPTED, TaskStatus.IN_PROGRESS),
            (TaskStatus.ACCEPTED, TaskStatus.COMPLETED),
            (TaskStatus.ACCEPTED, TaskStatus.CANCELLED),
            (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED),
        ],
    )
    def test_valid_transition(self, from_status, to_status):
        assert validate_transition(from_status, to_status) is True

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (TaskStatus.OPEN, TaskStatus.IN_PROGRESS),
            (TaskStatus.OPEN, TaskStatus.COMPLETED),
            (TaskStatus.ACCEPTED, TaskStatus.OPEN),
            (TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED),
            (TaskStatus.IN_PROGRESS, TaskStatus.ACCEPTED),
        ],
    )
    def test_invalid_transition(self, from_status, to_status):
        assert validate_transition(from_status, to_status) is False

    def test_terminal_states_are_final(self):
        for terminal in TERMINAL_STATES:
            for target in TaskStatus:
                assert validate_transition(terminal, target) is False, (
                    f"终态 {terminal} 不应能流转到 {target}"
                )

    def test_cancel_only_before_work_starts(self):
        assert CANCELLABLE_STATES == {TaskStatus.OPEN, TaskStatus.ACCEPTED}


class TestTransactionStatus:
    """交易状态推导"""

    def test_no_flags_is_pending(self):
        assert derive_transaction_status(HandshakeFlags()) == TransactionStatus.PENDING

    def test_single_start_request(self):
        flags = HandshakeFlags(payee_start_requested=True)
        assert derive_transaction_status(flags) == TransactionStatus.START_REQUESTED

    def test_both_start_requests(self):
        flags = HandshakeFlags(payer_start_requested=True, payee_start_requested=True)
        assert derive_transaction_status(flags) == TransactionStatus.IN_PROGRESS

    def test_one_confirmation_keeps_in_progress(self):
        flags = HandshakeFlags(
            payer_start_requested=True,
            payee_start_requested=True,
            payer_confirmed=True,
        )
        assert derive_transaction_status(flags) == TransactionStatus.IN_PROGRESS

    def test_both_confirmations_complete(self):
        flags = HandshakeFlags(payer_confirmed=True, payee_confirmed=True)
        assert derive_transaction_status(flags) == TransactionStatus.COMPLETED

    def test_cancelled_overrides_flags(self):
        flags = HandshakeFlags(payer_confirmed=True, payee_confirmed=True)
        assert derive_transaction_status(flags, cancelled=True) == TransactionStatus.CANCELLED

    def test_status_is_function_of_flags(self):
        """所有标志位组合：完成当且仅当双方确认，进行中当且仅当双方请求开始且未完成"""
        for combo in itertools.product((False, True), repeat=4):
            flags = HandshakeFlags(
                payer_start_requested=combo[0],
                payee_start_requested=combo[1],
                payer_confirmed=combo[2],
                payee_confirmed=combo[3],
            )
            status = derive_transaction_status(flags)
            both_confirmed = combo[2] and combo[3]
            both_started = combo[0] and combo[1]
            assert (status == TransactionStatus.COMPLETED) == both_confirmed
            assert (status == TransactionStatus.IN_PROGRESS) == (both_started and not both_confirmed)
            assert status != TransactionStatus.CANCELLED
