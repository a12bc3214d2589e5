import asyncio

import pytest

from conftest import FakeProvider, make_assignment, make_user, seed
from marketplace.constants import PaymentStatus
from marketplace.errors import Forbidden, InvalidTransition, NotFound, ValidationError
from marketplace.services.activity_log import ActivityLogService
from marketplace.services.gateway import SqlGateway
from marketplace.services.payment_service import PaymentOrchestrator, map_provider_status


def _seed_analyzed(session_factory, price=24.0):
    user = make_user()
    assignment = make_assignment(user, status="analyzed", price=price)
    asyncio.run(seed(session_factory, user, assignment))
    return user, assignment


async def _state(session_factory, assignment_id, reference=None):
    async with session_factory() as db:
        gateway = SqlGateway(db)
        assignment = await gateway.get_assignment(assignment_id)
        payment = await gateway.get_payment_by_reference(reference) if reference else None
        logs = await ActivityLogService(gateway).list_recent()
        return assignment, payment, logs


def _initiate(session_factory, provider, assignment_id, **kwargs):
    async def scenario():
        async with session_factory() as db:
            return await PaymentOrchestrator(SqlGateway(db), provider).initiate(assignment_id, **kwargs)

    return asyncio.run(scenario())


def _verify(session_factory, provider, reference, user_id=None, on_completed=None):
    async def scenario():
        async with session_factory() as db:
            orchestrator = PaymentOrchestrator(SqlGateway(db), provider, on_completed=on_completed)
            return await orchestrator.verify(reference, user_id=user_id)

    return asyncio.run(scenario())


def test_initiate_creates_pending_payment_with_checkout(session_factory, provider):
    user, assignment = _seed_analyzed(session_factory)

    result = _initiate(session_factory, provider, assignment.id, amount=24.0, user_id=user.id)

    assert result.provider_available
    assert result.checkout_url == f"https://pay.example/{result.transaction_reference}"
    assert result.transaction_reference.startswith("APE-student-")
    assert provider.checkouts[0]["amount"] == 24.0
    assert provider.checkouts[0]["redirect_url"].endswith(f"?tx_ref={result.transaction_reference}")

    stored, payment, logs = asyncio.run(_state(session_factory, assignment.id, result.transaction_reference))
    assert payment.status == "pending"
    assert payment.provider_payment_id == "link-1"
    assert payment.checkout_url == result.checkout_url
    # initiating does not touch the assignment
    assert stored.status == "analyzed"
    assert stored.payment_id is None
    assert [log.type for log in logs] == ["payment_initiated"]


def test_repeated_initiate_creates_distinct_payments(session_factory, provider):
    _, assignment = _seed_analyzed(session_factory)

    first = _initiate(session_factory, provider, assignment.id)
    second = _initiate(session_factory, provider, assignment.id)

    assert first.transaction_reference != second.transaction_reference
    assert first.payment_id != second.payment_id


@pytest.mark.parametrize("provider", [FakeProvider(fail_checkout=True), None])
def test_initiate_without_provider_keeps_auditable_row(session_factory, provider):
    _, assignment = _seed_analyzed(session_factory)

    result = _initiate(session_factory, provider, assignment.id)

    assert result.provider_available is False
    assert result.checkout_url is None
    _, payment, logs = asyncio.run(_state(session_factory, assignment.id, result.transaction_reference))
    assert payment.status == "pending"
    assert [log.type for log in logs] == ["payment_provider_unavailable"]


def test_initiate_guards(session_factory, provider):
    user, assignment = _seed_analyzed(session_factory)
    pending = make_assignment(user)
    asyncio.run(seed(session_factory, pending))

    with pytest.raises(InvalidTransition):
        _initiate(session_factory, provider, pending.id)
    with pytest.raises(NotFound):
        _initiate(session_factory, provider, assignment.id, user_id="someone-else")
    with pytest.raises(NotFound):
        _initiate(session_factory, provider, "missing")
    with pytest.raises(ValidationError):
        _initiate(session_factory, provider, assignment.id, amount=1.0)
    assert provider.checkouts == []


def test_verify_completed_submits_assignment_once(session_factory):
    provider = FakeProvider(status="COMPLETED")
    user, assignment = _seed_analyzed(session_factory)
    initiated = _initiate(session_factory, provider, assignment.id)
    reference = initiated.transaction_reference
    notified = []

    async def on_completed(a, p):
        notified.append((a.id, p.status))

    first = _verify(session_factory, provider, reference, user_id=user.id, on_completed=on_completed)
    second = _verify(session_factory, provider, reference, on_completed=on_completed)

    assert first.success and second.success
    assert provider.status_calls == 1
    assert notified == [(assignment.id, "completed")]

    stored, payment, logs = asyncio.run(_state(session_factory, assignment.id, reference))
    assert stored.status == "submitted"
    assert stored.payment_id == initiated.payment_id
    assert payment.completed_at is not None
    assert payment.details["provider_status"] == "COMPLETED"
    assert [log.type for log in logs] == ["payment_completed", "payment_initiated"]


def test_verify_failed_leaves_assignment_payable(session_factory):
    provider = FakeProvider(status="EXPIRED")
    _, assignment = _seed_analyzed(session_factory)
    reference = _initiate(session_factory, provider, assignment.id).transaction_reference

    result = _verify(session_factory, provider, reference)

    assert result.status == "failed"
    assert result.settled and not result.success
    stored, payment, logs = asyncio.run(_state(session_factory, assignment.id, reference))
    assert stored.status == "analyzed"
    assert payment.status == "failed"
    assert logs[0].type == "payment_failed"


@pytest.mark.parametrize("provider", [FakeProvider(status="PENDING"), FakeProvider(fail_status=True)])
def test_verify_pending_or_unreachable_changes_nothing(session_factory, provider):
    _, assignment = _seed_analyzed(session_factory)
    reference = _initiate(session_factory, provider, assignment.id).transaction_reference

    result = _verify(session_factory, provider, reference)

    assert result.status == "pending"
    assert not result.settled
    stored, payment, logs = asyncio.run(_state(session_factory, assignment.id, reference))
    assert stored.status == "analyzed"
    assert payment.status == "pending"
    assert len(logs) == 1


def test_verify_unknown_reference_and_foreign_user(session_factory, provider):
    _, assignment = _seed_analyzed(session_factory)
    reference = _initiate(session_factory, provider, assignment.id).transaction_reference

    with pytest.raises(NotFound):
        _verify(session_factory, provider, "APE-nope")
    with pytest.raises(Forbidden):
        _verify(session_factory, provider, reference, user_id="someone-else")


def test_duplicate_intent_completes_but_is_flagged(session_factory):
    provider = FakeProvider(status="COMPLETED")
    _, assignment = _seed_analyzed(session_factory)
    first = _initiate(session_factory, provider, assignment.id)
    second = _initiate(session_factory, provider, assignment.id)

    _verify(session_factory, provider, first.transaction_reference)
    result = _verify(session_factory, provider, second.transaction_reference)

    assert result.success
    stored, payment, logs = asyncio.run(_state(session_factory, assignment.id, second.transaction_reference))
    assert stored.status == "submitted"
    assert stored.payment_id == first.payment_id
    assert payment.status == "completed"
    assert logs[0].details["needs_review"] is True
    assert logs[0].payment_id == second.payment_id


def test_failing_hook_does_not_undo_completion(session_factory):
    provider = FakeProvider(status="succeeded")
    _, assignment = _seed_analyzed(session_factory)
    reference = _initiate(session_factory, provider, assignment.id).transaction_reference

    async def on_completed(a, p):
        raise RuntimeError("telegram down")

    assert _verify(session_factory, provider, reference, on_completed=on_completed).success
    stored, _, _ = asyncio.run(_state(session_factory, assignment.id))
    assert stored.status == "submitted"


def test_callback_payload_rechecks_provider(session_factory):
    provider = FakeProvider(status="succeeded")
    _, assignment = _seed_analyzed(session_factory)
    reference = _initiate(session_factory, provider, assignment.id).transaction_reference

    async def callback(payload):
        async with session_factory() as db:
            return await PaymentOrchestrator(SqlGateway(db), provider).handle_callback(payload)

    payload = {"event": "payment.succeeded", "object": {"id": "link-1", "metadata": {"transaction_reference": reference}}}
    assert asyncio.run(callback(payload)).status == "completed"
    assert provider.status_calls == 1

    with pytest.raises(ValidationError):
        asyncio.run(callback({"event": "payment.succeeded", "object": {}}))


def test_map_provider_status():
    assert map_provider_status("COMPLETED") == PaymentStatus.COMPLETED
    assert map_provider_status("succeeded") == PaymentStatus.COMPLETED
    assert map_provider_status("Canceled") == PaymentStatus.FAILED
    assert map_provider_status("EXPIRED") == PaymentStatus.FAILED
    assert map_provider_status("waiting_for_capture") == PaymentStatus.PENDING
    assert map_provider_status(None) == PaymentStatus.PENDING


class OverlappingProvider(FakeProvider):
    """Settles the payment through a second session while the first one waits on the provider."""

    def __init__(self, session_factory, reference, status):
        super().__init__(status=status)
        self.session_factory = session_factory
        self.reference = reference
        self.inner = None

    async def get_status(self, provider_payment_id):
        if self.inner is None:
            self.inner = FakeProvider(status=self.status)
            async with self.session_factory() as db:
                await PaymentOrchestrator(SqlGateway(db), self.inner).verify(self.reference)
        return await super().get_status(provider_payment_id)


@pytest.mark.parametrize(
    "raw_status, settled, log_type",
    [("COMPLETED", "completed", "payment_completed"), ("EXPIRED", "failed", "payment_failed")],
)
def test_overlapping_verifies_settle_once(session_factory, provider, raw_status, settled, log_type):
    user, assignment = _seed_analyzed(session_factory)
    reference = _initiate(session_factory, provider, assignment.id).transaction_reference
    overlapping = OverlappingProvider(session_factory, reference, raw_status)

    result = _verify(session_factory, overlapping, reference, user_id=user.id)

    assert result.status == settled
    assert overlapping.status_calls == 1
    assert overlapping.inner.status_calls == 1
    stored, payment, logs = asyncio.run(_state(session_factory, assignment.id, reference))
    assert payment.status == settled
    assert [log.type for log in logs].count(log_type) == 1
    assert stored.status == ("submitted" if settled == "completed" else "analyzed")
