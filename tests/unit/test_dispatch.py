"""Unit tests for concurrent push dispatch."""

from friendpush.services.apns import DispatchOutcome
from friendpush.services.dispatch import DispatchSummary, dispatch_all
from friendpush.services.payloads import SilentPushPayload
from tests.mocks.fake_services import FakeGateway

PAYLOAD = SilentPushPayload(visit_id="visit-1", author_id="author-1")


class TestDispatchAll:
    async def test_counts_sent_and_failed(self):
        gateway = FakeGateway(
            outcomes={
                "t2": DispatchOutcome.REJECTED,
                "t3": DispatchOutcome.TRANSPORT_ERROR,
                "t4": DispatchOutcome.SIGNING_ERROR,
            }
        )
        summary = await dispatch_all(gateway, ["t1", "t2", "t3", "t4", "t5"], PAYLOAD)

        assert summary.sent == 2
        assert summary.failed == 3
        assert summary.sent + summary.failed == 5

    async def test_every_delivery_gets_the_same_payload(self):
        gateway = FakeGateway()
        await dispatch_all(gateway, ["t1", "t2", "t3"], PAYLOAD)

        assert [token for token, _ in gateway.calls] == ["t1", "t2", "t3"]
        assert all(payload is PAYLOAD for _, payload in gateway.calls)

    async def test_crashing_delivery_does_not_cancel_siblings(self):
        gateway = FakeGateway(raise_for={"t2"}, delay=0.01)
        summary = await dispatch_all(gateway, ["t1", "t2", "t3"], PAYLOAD)

        assert summary.outcomes == [
            DispatchOutcome.DELIVERED,
            DispatchOutcome.TRANSPORT_ERROR,
            DispatchOutcome.DELIVERED,
        ]
        assert len(gateway.calls) == 3

    async def test_unbounded_by_default(self):
        gateway = FakeGateway(delay=0.01)
        await dispatch_all(gateway, [f"t{n}" for n in range(10)], PAYLOAD)
        assert gateway.max_in_flight == 10

    async def test_concurrency_cap(self):
        gateway = FakeGateway(delay=0.01)
        summary = await dispatch_all(gateway, [f"t{n}" for n in range(10)], PAYLOAD, max_concurrency=3)

        assert gateway.max_in_flight <= 3
        assert summary.sent == 10

    async def test_empty_token_list(self):
        gateway = FakeGateway()
        summary = await dispatch_all(gateway, [], PAYLOAD)
        assert summary.sent == 0
        assert summary.failed == 0
        assert gateway.calls == []


def test_summary_counts():
    summary = DispatchSummary(outcomes=[DispatchOutcome.DELIVERED, DispatchOutcome.REJECTED])
    assert summary.sent == 1
    assert summary.failed == 1
