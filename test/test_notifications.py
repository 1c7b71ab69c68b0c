"""
Tests for the transient notification queue.
"""

from streetart.client.notifications import KIND_CAPTURE, NotificationQueue


def test_notifications_expire(clock) -> None:
    queue = NotificationQueue(dismiss_after=5, clock=clock)
    queue.push(KIND_CAPTURE, {"art_id": "art-01"})
    clock.advance(4.9)
    assert [n.payload["art_id"] for n in queue.active()] == ["art-01"]
    clock.advance(0.2)
    assert queue.active() == []
    assert len(queue) == 0


def test_each_notification_has_its_own_deadline(clock) -> None:
    queue = NotificationQueue(dismiss_after=5, clock=clock)
    queue.push(KIND_CAPTURE, {"art_id": "art-01"})
    clock.advance(3)
    queue.push(KIND_CAPTURE, {"art_id": "art-02"})
    clock.advance(3)
    assert [n.payload["art_id"] for n in queue.active()] == ["art-02"]


def test_dismiss(clock) -> None:
    queue = NotificationQueue(clock=clock)
    first = queue.push(KIND_CAPTURE, {"art_id": "art-01"})
    second = queue.push(KIND_CAPTURE, {"art_id": "art-02"})
    assert first.id != second.id
    assert queue.dismiss(first.id)
    assert not queue.dismiss(first.id)
    assert [n.id for n in queue.active()] == [second.id]


def test_payload_is_copied(clock) -> None:
    queue = NotificationQueue(clock=clock)
    payload = {"art_id": "art-01"}
    item = queue.push(KIND_CAPTURE, payload)
    payload["art_id"] = "changed"
    assert item.to_dict()["payload"] == {"art_id": "art-01"}
