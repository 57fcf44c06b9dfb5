"""Unit tests for the visit fan-out orchestration, with every collaborator faked."""

import dataclasses

import pytest

from friendpush.core.exceptions import ConfigurationMissingError
from friendpush.schemas.visits import ActivityEvent
from friendpush.services.apns import ApnsConfig, DispatchOutcome
from friendpush.services.devices import DeviceEndpoint
from friendpush.services.fanout import VisitFanoutService
from friendpush.services.payloads import SilentPushPayload
from tests.mocks.fake_services import FakeEndpoints, FakeGateway, FakeGraph

AUTHOR = "author-1234567890"
INCOMPLETE_APNS = ApnsConfig(key_id="KEY123")


def _ios(owner: str, token: str) -> DeviceEndpoint:
    return DeviceEndpoint(owner_id=owner, platform="ios", token=token)


def _event(visibility: str = "friends") -> ActivityEvent:
    return ActivityEvent(id="visit-1", actor_id=AUTHOR, visibility=visibility)


def _service(apns_config, graph=None, endpoints=None, gateway=None, max_concurrency=0):
    return VisitFanoutService(
        apns_config=apns_config,
        gateway=gateway or FakeGateway(),
        graph=graph or FakeGraph(),
        endpoints=endpoints or FakeEndpoints(),
        max_concurrency=max_concurrency,
    )


class TestEarlyExits:
    async def test_private_visit_touches_nothing(self, apns_config):
        graph, endpoints, gateway = FakeGraph(["f1"]), FakeEndpoints([_ios("f1", "t1")]), FakeGateway()
        service = _service(apns_config, graph, endpoints, gateway)

        result = await service.notify_friends(_event("private"))

        assert result.model_dump(exclude_none=True) == {
            "success": True,
            "message": "Private visit, no notifications sent",
        }
        assert graph.calls == []
        assert endpoints.calls == []
        assert gateway.calls == []

    async def test_private_visit_wins_over_missing_apns(self):
        service = _service(INCOMPLETE_APNS)
        result = await service.notify_friends(_event("private"))
        assert result.message == "Private visit, no notifications sent"
        assert result.apns_configured is None

    @pytest.mark.parametrize("field", ["key_id", "team_id", "bundle_id", "key_content"])
    async def test_missing_apns_field(self, apns_config, field):
        graph, gateway = FakeGraph(["f1"]), FakeGateway()
        service = _service(dataclasses.replace(apns_config, **{field: None}), graph=graph, gateway=gateway)

        result = await service.notify_friends(_event())

        assert result.model_dump(exclude_none=True) == {
            "success": True,
            "message": "APNs not configured",
            "apns_configured": False,
        }
        assert graph.calls == []
        assert gateway.calls == []

    async def test_blank_apns_field_counts_as_missing(self, apns_config):
        service = _service(dataclasses.replace(apns_config, team_id="   "))
        result = await service.notify_friends(_event())
        assert result.apns_configured is False

    async def test_missing_apns_wins_over_missing_storage(self):
        service = _service(INCOMPLETE_APNS, graph=FakeGraph(configured=False), endpoints=FakeEndpoints(configured=False))
        result = await service.notify_friends(_event())
        assert result.message == "APNs not configured"

    async def test_missing_storage_raises(self, apns_config):
        service = _service(apns_config, graph=FakeGraph(configured=False), endpoints=FakeEndpoints(configured=False))
        with pytest.raises(ConfigurationMissingError):
            await service.notify_friends(_event())

    async def test_no_friends_skips_device_lookup(self, apns_config):
        endpoints, gateway = FakeEndpoints(), FakeGateway()
        service = _service(apns_config, graph=FakeGraph([]), endpoints=endpoints, gateway=gateway)

        result = await service.notify_friends(_event())

        assert result.model_dump(exclude_none=True) == {
            "success": True,
            "message": "No friends to notify",
            "friends_count": 0,
        }
        assert endpoints.calls == []
        assert gateway.calls == []

    async def test_no_devices_skips_dispatch(self, apns_config):
        gateway = FakeGateway()
        endpoints = FakeEndpoints([DeviceEndpoint(owner_id="f1", platform="android", token="fcm-1")])
        service = _service(apns_config, graph=FakeGraph(["f1", "f2"]), endpoints=endpoints, gateway=gateway)

        result = await service.notify_friends(_event())

        assert result.model_dump(exclude_none=True) == {
            "success": True,
            "message": "No devices to notify",
            "friends_count": 2,
            "devices_count": 0,
        }
        assert endpoints.calls == [(["f1", "f2"], "ios")]
        assert gateway.calls == []


class TestDispatch:
    async def test_five_friends_four_devices_one_rejected(self, apns_config):
        graph = FakeGraph(["f1", "f2", "f3", "f4", "f5"])
        endpoints = FakeEndpoints(
            [
                _ios("f1", "t1a"),
                _ios("f1", "t1b"),
                _ios("f2", "t2"),
                _ios("f3", "t3"),
                DeviceEndpoint(owner_id="f4", platform="android", token="fcm-4"),
            ]
        )
        gateway = FakeGateway(outcomes={"t3": DispatchOutcome.REJECTED})
        service = _service(apns_config, graph, endpoints, gateway)

        result = await service.notify_friends(_event())

        assert result.model_dump(exclude_none=True) == {
            "success": True,
            "friends_count": 5,
            "devices_count": 4,
            "sent": 3,
            "failed": 1,
        }
        assert sorted(token for token, _ in gateway.calls) == ["t1a", "t1b", "t2", "t3"]

    async def test_every_device_gets_the_same_silent_payload(self, apns_config):
        gateway = FakeGateway()
        endpoints = FakeEndpoints([_ios("f1", "t1"), _ios("f2", "t2")])
        service = _service(apns_config, FakeGraph(["f1", "f2"]), endpoints, gateway)

        await service.notify_friends(_event())

        payloads = [payload for _, payload in gateway.calls]
        assert payloads[0] == SilentPushPayload(visit_id="visit-1", author_id=AUTHOR)
        assert all(p is payloads[0] for p in payloads)

    async def test_author_never_in_device_lookup(self, apns_config):
        endpoints = FakeEndpoints([_ios("f1", "t1")])
        service = _service(apns_config, FakeGraph(["f1"]), endpoints)

        await service.notify_friends(_event())

        (user_ids, _), = endpoints.calls
        assert AUTHOR not in user_ids

    async def test_crashing_delivery_is_counted_failed(self, apns_config):
        gateway = FakeGateway(raise_for={"t2"})
        endpoints = FakeEndpoints([_ios("f1", "t1"), _ios("f2", "t2")])
        service = _service(apns_config, FakeGraph(["f1", "f2"]), endpoints, gateway)

        result = await service.notify_friends(_event())

        assert result.sent == 1
        assert result.failed == 1

    async def test_concurrency_cap_applies(self, apns_config):
        gateway = FakeGateway(delay=0.01)
        endpoints = FakeEndpoints([_ios(f"f{n}", f"t{n}") for n in range(8)])
        service = _service(
            apns_config,
            FakeGraph([f"f{n}" for n in range(8)]),
            endpoints,
            gateway,
            max_concurrency=2,
        )

        result = await service.notify_friends(_event("everyone"))

        assert result.sent == 8
        assert gateway.max_in_flight <= 2
