import pytest

from app.services.outbox import SideEffectOutbox
from app.services.side_effects import EventEffect, NotificationEffect
from conftest import RecordingRouter


def _notification(push=True, user_id="juan"):
    return NotificationEffect(
        user_id=user_id,
        alert_id="alert-1",
        type="alert_resolved",
        title="Alert Resolved",
        message="Your alert has been resolved",
        push=push,
    )


@pytest.mark.asyncio
async def test_effects_run_in_order(repos, recording_router):
    outbox = SideEffectOutbox(repos.notifications, recording_router)

    delivered = await outbox.dispatch([
        EventEffect(event="alertResolved", payload={"n": 1}, user_id="juan"),
        EventEffect(event="alertUpdated", payload={"n": 2}, user_id="juan"),
        _notification(),
    ])

    assert delivered == 3
    assert [d["event"] for d in recording_router.delivered] == ["alertResolved", "alertUpdated", "newNotification"]
    pushed = recording_router.delivered[-1]["payload"]
    assert pushed["title"] == "Alert Resolved"
    assert pushed["read"] is False


@pytest.mark.asyncio
async def test_unpushed_notification_is_only_stored(repos, recording_router):
    outbox = SideEffectOutbox(repos.notifications, recording_router)

    await outbox.dispatch([_notification(push=False)])

    assert recording_router.delivered == []
    assert len(repos.notifications.query("juan")) == 1


@pytest.mark.asyncio
async def test_failed_delivery_is_retried_then_dropped(repos):
    router = RecordingRouter(fail_events={"alertResponded"})
    outbox = SideEffectOutbox(repos.notifications, router, max_attempts=3)

    delivered = await outbox.dispatch([
        EventEffect(event="alertResponded", payload={}, user_id="juan"),
        EventEffect(event="new-alert", payload={}),
    ])

    assert delivered == 1
    assert router.attempts == 4
    assert [d["event"] for d in router.delivered] == ["new-alert"]


@pytest.mark.asyncio
async def test_lost_push_keeps_single_notification_record(repos):
    router = RecordingRouter(fail_events={"newNotification"})
    outbox = SideEffectOutbox(repos.notifications, router, max_attempts=2)

    delivered = await outbox.dispatch([_notification()])

    assert delivered == 0
    assert len(repos.notifications.query("juan")) == 1


@pytest.mark.asyncio
async def test_storage_failure_does_not_raise(repos, recording_router, monkeypatch):
    def broken_create(**kwargs):
        raise RuntimeError("firestore unavailable")

    monkeypatch.setattr(repos.notifications, "create", broken_create)
    outbox = SideEffectOutbox(repos.notifications, recording_router, max_attempts=1)

    delivered = await outbox.dispatch([_notification(), EventEffect(event="new-alert", payload={})])

    assert delivered == 1
    assert [d["event"] for d in recording_router.delivered] == ["new-alert"]
