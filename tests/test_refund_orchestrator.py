"""Tests for refund computation, execution and the refund ledger."""

import asyncio
from decimal import Decimal

import pytest

from booking_policy.errors import RefundNotFoundError
from booking_policy.policy.evaluator import evaluate_booking
from booking_policy.schemas.booking_schema import PaymentStatus
from booking_policy.schemas.refund_schema import RefundStatus
from booking_policy.tools.booking_store import InMemoryBookingStore
from booking_policy.tools.payments import MockPaymentProvider
from booking_policy.workflows.refund_orchestrator import (
    RefundOrchestrator,
    compute_refund_amount,
    refund_idempotency_key,
)

from tests.conftest import (
    NOW,
    TZ,
    RaisingProvider,
    fixed_clock,
    make_booking,
    make_payment,
    make_policy,
)


def _decision(booking):
    return evaluate_booking(booking, make_policy(), NOW, timezone_name=TZ, locale="en")


def _seed(store, **kwargs):
    booking = make_booking(**kwargs)
    store.add(booking, make_payment(booking))
    return booking


class SlowProvider(MockPaymentProvider):
    async def refund(self, provider_charge_ref, amount_minor, idempotency_key):
        await asyncio.sleep(1)
        return await super().refund(provider_charge_ref, amount_minor, idempotency_key)


class BrokenDocuments:
    async def generate_and_email_credit_note(self, refund_transaction_id):
        raise RuntimeError("pdf renderer crashed")


class FlakyStore(InMemoryBookingStore):
    async def update_payment_status(self, booking_id, status):
        raise RuntimeError("db down")


class TestComputeRefundAmount:
    def test_half_of_thousand(self):
        assert compute_refund_amount(make_booking(price="1000"), 50) == Decimal("500.00")

    def test_rounds_half_up_to_cents(self):
        assert compute_refund_amount(make_booking(price="0.05"), 50) == Decimal("0.03")

    def test_no_float_drift(self):
        assert compute_refund_amount(make_booking(price="333.33"), 33) == Decimal("110.00")

    def test_zero_percentage(self):
        assert compute_refund_amount(make_booking(), 0) == Decimal("0.00")

    def test_capped_at_collected_amount(self):
        booking = make_booking(price="1000")
        payment = make_payment(booking, amount="400")
        assert compute_refund_amount(booking, 100, payment) == Decimal("400")

    def test_idempotency_key_format(self):
        assert refund_idempotency_key("bk-1", "c1") == "refund-bk-1-c1"


class TestRefund:
    @pytest.mark.asyncio
    async def test_successful_half_refund(self, store, ledger, provider, documents):
        booking = _seed(store, hours_ahead=10)
        orchestrator = RefundOrchestrator(store, ledger, provider, documents, clock=fixed_clock)

        outcome = await orchestrator.refund(booking, _decision(booking), "sick", "c1")
        await orchestrator.drain()

        assert outcome.success is True
        assert outcome.refund_amount == Decimal("500.00")
        assert outcome.refund_percentage == 50
        row = await ledger.get(outcome.refund_transaction_id)
        assert row.status == RefundStatus.COMPLETED
        assert row.provider_refund_ref.startswith("rfnd_mock_")
        assert row.idempotency_key == "refund-bk-1-c1"
        assert provider.refund_calls[0]["amount_minor"] == 50000
        assert provider.refund_calls[0]["charge"] == "chrg-bk-1"
        assert (await store.get("bk-1")).payment_status == PaymentStatus.REFUNDED
        assert documents.generated == [outcome.refund_transaction_id]

    @pytest.mark.asyncio
    async def test_zero_percentage_is_noop(self, store, ledger, provider):
        booking = _seed(store, hours_ahead=10)
        decision = _decision(booking).model_copy(update={"refund_percentage": 0})
        orchestrator = RefundOrchestrator(store, ledger, provider)

        outcome = await orchestrator.refund(booking, decision, "sick", "c1")

        assert outcome.success is True
        assert outcome.refund_amount == Decimal("0")
        assert ledger.all() == []
        assert provider.refund_calls == []

    @pytest.mark.asyncio
    async def test_unpaid_booking_is_noop(self, store, ledger, provider):
        booking = _seed(store, hours_ahead=48, payment_status=PaymentStatus.PENDING)
        decision = _decision(booking).model_copy(update={"refund_percentage": 100})
        orchestrator = RefundOrchestrator(store, ledger, provider)

        outcome = await orchestrator.refund(booking, decision, "sick", "c1")

        assert outcome.success is True
        assert provider.refund_calls == []

    @pytest.mark.asyncio
    async def test_missing_payment_record(self, store, ledger, provider):
        booking = make_booking(hours_ahead=48)
        store.add(booking)
        orchestrator = RefundOrchestrator(store, ledger, provider)

        outcome = await orchestrator.refund(booking, _decision(booking), "sick", "c1")

        assert outcome.success is False
        assert "No successful payment" in outcome.error
        assert ledger.all() == []

    @pytest.mark.asyncio
    async def test_provider_failure_records_failed_row(self, store, ledger):
        booking = _seed(store, hours_ahead=48)
        provider = MockPaymentProvider(fail_refunds=True)
        orchestrator = RefundOrchestrator(store, ledger, provider)

        outcome = await orchestrator.refund(booking, _decision(booking), "sick", "c1")

        assert outcome.success is False
        assert outcome.error == "refund declined by provider"
        row = await ledger.get(outcome.refund_transaction_id)
        assert row.status == RefundStatus.FAILED
        assert row.error_message == "refund declined by provider"
        assert (await store.get("bk-1")).payment_status == PaymentStatus.PAID

    @pytest.mark.asyncio
    async def test_provider_exception_becomes_failure(self, store, ledger):
        booking = _seed(store, hours_ahead=48)
        orchestrator = RefundOrchestrator(store, ledger, RaisingProvider())

        outcome = await orchestrator.refund(booking, _decision(booking), "sick", "c1")

        assert outcome.success is False
        assert outcome.error == "provider unreachable"
        assert ledger.all()[0].status == RefundStatus.FAILED

    @pytest.mark.asyncio
    async def test_timeout_is_failure(self, store, ledger):
        booking = _seed(store, hours_ahead=48)
        orchestrator = RefundOrchestrator(store, ledger, SlowProvider(), timeout_sec=0.01)

        outcome = await orchestrator.refund(booking, _decision(booking), "sick", "c1")

        assert outcome.success is False
        assert "timed out" in outcome.error
        assert ledger.all()[0].status == RefundStatus.FAILED

    @pytest.mark.asyncio
    async def test_credit_note_failure_does_not_fail_refund(self, store, ledger, provider):
        booking = _seed(store, hours_ahead=48)
        orchestrator = RefundOrchestrator(store, ledger, provider, BrokenDocuments())

        outcome = await orchestrator.refund(booking, _decision(booking), "sick", "c1")
        await orchestrator.drain()

        assert outcome.success is True
        assert outcome.refund_amount == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_payment_status_write_failure_keeps_completed_refund(
        self, ledger, provider, documents
    ):
        store = FlakyStore()
        booking = _seed(store, hours_ahead=48)
        orchestrator = RefundOrchestrator(store, ledger, provider, documents, clock=fixed_clock)

        outcome = await orchestrator.refund(booking, _decision(booking), "sick", "c1")
        await orchestrator.drain()

        assert outcome.success is True
        assert outcome.refund_amount == Decimal("1000.00")
        assert outcome.error is None
        row = await ledger.get(outcome.refund_transaction_id)
        assert row.status == RefundStatus.COMPLETED
        assert provider.distinct_refunds == 1
        assert documents.generated == [outcome.refund_transaction_id]

    @pytest.mark.asyncio
    async def test_same_attempt_twice_refunds_once(self, store, ledger, provider):
        booking = _seed(store, hours_ahead=48)
        orchestrator = RefundOrchestrator(store, ledger, provider)
        decision = _decision(booking)

        first = await orchestrator.refund(booking, decision, "sick", "c1")
        second = await orchestrator.refund(booking, decision, "sick", "c1")

        assert first.success and second.success
        assert second.refund_transaction_id == first.refund_transaction_id
        assert len(ledger.all()) == 1
        assert provider.distinct_refunds == 1


class TestRetryFailed:
    @pytest.mark.asyncio
    async def test_retry_succeeds_with_same_key(self, store, ledger):
        booking = _seed(store, hours_ahead=48)
        provider = MockPaymentProvider(fail_refunds=True)
        orchestrator = RefundOrchestrator(store, ledger, provider, clock=fixed_clock)
        failed = await orchestrator.refund(booking, _decision(booking), "sick", "c1")

        provider.fail_refunds = False
        retried = await orchestrator.retry_failed(failed.refund_transaction_id)

        assert retried.success is True
        assert retried.refund_transaction_id != failed.refund_transaction_id
        keys = {call["idempotency_key"] for call in provider.refund_calls}
        assert keys == {"refund-bk-1-c1"}
        statuses = sorted(r.status.value for r in await ledger.list_for_booking("bk-1"))
        assert statuses == ["completed", "failed"]

    @pytest.mark.asyncio
    async def test_retry_completed_row_is_noop(self, store, ledger, provider):
        booking = _seed(store, hours_ahead=48)
        orchestrator = RefundOrchestrator(store, ledger, provider)
        done = await orchestrator.refund(booking, _decision(booking), "sick", "c1")

        again = await orchestrator.retry_failed(done.refund_transaction_id)

        assert again.success is True
        assert len(provider.refund_calls) == 1

    @pytest.mark.asyncio
    async def test_retry_unknown_id(self, store, ledger, provider):
        orchestrator = RefundOrchestrator(store, ledger, provider)
        with pytest.raises(RefundNotFoundError):
            await orchestrator.retry_failed("rf_missing")


class TestPreview:
    def test_preview_half_refund(self, store, ledger, provider):
        booking = make_booking(hours_ahead=10)
        preview = RefundOrchestrator(store, ledger, provider).preview(booking, _decision(booking))
        assert preview.eligible is True
        assert preview.original_amount == Decimal("1000.00")
        assert preview.refund_amount == Decimal("500.00")
        assert preview.refund_percentage == 50

    def test_preview_ineligible(self, store, ledger, provider):
        booking = make_booking(hours_ahead=1)
        preview = RefundOrchestrator(store, ledger, provider).preview(booking, _decision(booking))
        assert preview.eligible is False
        assert preview.refund_amount == Decimal("0")
        assert preview.reason is not None

    def test_preview_unpaid(self, store, ledger, provider):
        booking = make_booking(hours_ahead=48, payment_status=PaymentStatus.PENDING)
        preview = RefundOrchestrator(store, ledger, provider).preview(booking, _decision(booking))
        assert preview.eligible is False
        assert "pending" in preview.reason
