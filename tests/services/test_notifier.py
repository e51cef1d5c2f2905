"""
Tests for the realtime notifier.
"""

from bankgame.services.notifier import RESYNC, RealtimeNotifier


def drain(queue):
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


def test_publish_reaches_every_subscriber_of_the_game():
    notifier = RealtimeNotifier()
    a = notifier.subscribe("g1")
    b = notifier.subscribe("g1")
    other = notifier.subscribe("g2")

    delivered = notifier.publish("g1", {"type": "game_state", "version": 3})

    assert delivered == 2
    assert drain(a) == [{"type": "game_state", "version": 3}]
    assert drain(b) == [{"type": "game_state", "version": 3}]
    assert drain(other) == []


def test_publish_without_subscribers():
    notifier = RealtimeNotifier()
    assert notifier.publish("nobody", {"type": "game_state"}) == 0


def test_messages_keep_commit_order():
    notifier = RealtimeNotifier()
    queue = notifier.subscribe("g1")
    for version in (2, 3, 4):
        notifier.publish("g1", {"version": version})
    assert [m["version"] for m in drain(queue)] == [2, 3, 4]


def test_unsubscribe():
    notifier = RealtimeNotifier()
    queue = notifier.subscribe("g1")
    notifier.unsubscribe("g1", queue)
    notifier.unsubscribe("g1", queue)

    assert notifier.subscriber_count("g1") == 0
    assert notifier.publish("g1", {"version": 1}) == 0


def test_slow_subscriber_is_dropped_with_resync():
    notifier = RealtimeNotifier(queue_size=2)
    slow = notifier.subscribe("g1")
    fast = notifier.subscribe("g1")

    notifier.publish("g1", {"version": 1})
    notifier.publish("g1", {"version": 2})
    drain(fast)
    delivered = notifier.publish("g1", {"version": 3})

    assert delivered == 1
    assert notifier.subscriber_count("g1") == 1
    assert drain(slow) == [{"type": RESYNC, "game_id": "g1"}]
    assert drain(fast) == [{"version": 3}]

    notifier.publish("g1", {"version": 4})
    assert drain(slow) == []
