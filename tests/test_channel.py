"""Broadcast channel tests — validation, TTL cache, fan-out, catch-up.

Learn: These run against the engine directly with FakeHandle and FakeClock,
no transport involved. The concrete scenario from the show notes:
symbols {circle, cross, waves}, TTL 60s, publish at t=0, subscribers at
t=10 (caught up) and t=70 (stale).
"""

import json

import pytest

from magicrelay.relay.channel import BroadcastChannel, coerce_magnitude
from magicrelay.relay.errors import InvalidSymbolError

SYMBOLS = ["circle", "cross", "waves"]


@pytest.fixture()
def channel(clock):
    return BroadcastChannel("zener", SYMBOLS, ttl_seconds=60, clock=clock)


# ─── Validation ───────────────────────────────────────────


@pytest.mark.parametrize("kind", [None, "", "triangle", "CIRCLE"])
def test_invalid_kind_rejected_without_touching_cache(channel, handle_factory, kind):
    channel.publish("circle")
    h = handle_factory()
    channel.subscribe(h)
    before = channel.peek_latest()
    sent_before = len(h.sent)

    with pytest.raises(InvalidSymbolError) as exc:
        channel.publish(kind)

    assert exc.value.valid == sorted(SYMBOLS)
    assert channel.peek_latest() is before
    assert len(h.sent) == sent_before
    assert channel.published == 1


def test_invalid_kind_on_empty_channel_leaves_cache_empty(channel):
    with pytest.raises(InvalidSymbolError):
        channel.publish("square")
    assert channel.cache.last is None


@pytest.mark.parametrize(
    "raw, expected",
    [(3, 3.0), ("2.5", 2.5), (None, 0.0), ("lots", 0.0), (True, 0.0), (float("nan"), 0.0), ([], 0.0)],
)
def test_magnitude_coercion(raw, expected):
    assert coerce_magnitude(raw) == expected


def test_event_carries_extra_opaquely(channel):
    event = channel.publish("waves", "7", {"day": "12", "month": "3"})
    assert event.magnitude == 7.0
    assert event.to_dict()["extra"] == {"day": "12", "month": "3"}
    with pytest.raises(TypeError):
        event.extra["day"] = "13"


# ─── TTL cache ────────────────────────────────────────────


def test_peek_latest_none_before_any_publish(channel):
    assert channel.peek_latest() is None


def test_peek_latest_respects_ttl(channel, clock):
    event = channel.publish("circle")
    clock.advance(59.9)
    assert channel.peek_latest() is event
    clock.advance(0.1)
    assert channel.peek_latest() is None


def test_cache_overwritten_on_each_publish(channel):
    channel.publish("circle")
    second = channel.publish("cross", 2)
    assert channel.peek_latest() is second


# ─── Fan-out ──────────────────────────────────────────────


def test_every_subscriber_receives_each_event_in_order(channel, handle_factory):
    handles = [handle_factory() for _ in range(3)]
    for h in handles:
        channel.subscribe(h)

    channel.publish("circle")
    channel.publish("waves")

    for h in handles:
        assert [m["kind"] for m in h.messages] == ["circle", "waves"]


def test_failed_subscriber_pruned_others_still_served(channel, handle_factory):
    good, bad = handle_factory(), handle_factory(fail=True)
    channel.subscribe(good)
    channel.subscribe(bad)
    assert channel.subscriber_count == 2

    channel.publish("cross")

    assert channel.subscriber_count == 1
    assert bad not in channel.subscribers
    assert bad.closed
    assert [m["kind"] for m in good.messages] == ["cross"]

    channel.publish("circle")
    assert len(good.sent) == 2


def test_subscriber_added_during_iteration_is_not_served_twice(channel, handle_factory):
    late = handle_factory()

    class Recruiter:
        sent = []

        def send(self, message):
            self.sent.append(message)
            channel.subscribe(late)

        def close(self):
            pass

    channel.subscribe(Recruiter())
    channel.publish("circle")
    # late joined after the snapshot: catch-up only, no second live copy
    assert len(late.sent) == 1


def test_unsubscribe_is_idempotent(channel, handle_factory):
    h = handle_factory()
    channel.subscribe(h)
    assert channel.unsubscribe(h) is True
    assert channel.unsubscribe(h) is False
    channel.publish("circle")
    assert h.sent == []


def test_subscription_ids_are_unique(channel, handle_factory):
    ids = {channel.subscribe(handle_factory()) for _ in range(5)}
    assert len(ids) == 5


# ─── Catch-up ─────────────────────────────────────────────


def test_catch_up_scenario(channel, clock, handle_factory):
    channel.publish("circle")

    clock.advance(10)
    early = handle_factory()
    channel.subscribe(early)
    assert [m["kind"] for m in early.messages] == ["circle"]

    clock.advance(60)  # t=70
    late = handle_factory()
    channel.subscribe(late)
    assert late.sent == []
    assert channel.peek_latest() is None


def test_catch_up_precedes_next_live_publish(channel, handle_factory):
    channel.publish("circle")
    h = handle_factory()
    channel.subscribe(h)
    channel.publish("waves")
    assert [m["kind"] for m in h.messages] == ["circle", "waves"]


def test_catch_up_write_failure_prunes_immediately(channel, handle_factory):
    channel.publish("circle")
    bad = handle_factory(fail=True)
    channel.subscribe(bad)
    assert channel.subscriber_count == 0
    assert bad.closed


def test_silent_channel_withholds_cached_event(clock, handle_factory):
    channel = BroadcastChannel("reveal", SYMBOLS, ttl_seconds=60, silent_catch_up=True, clock=clock)
    channel.publish("waves")

    h = handle_factory()
    channel.subscribe(h)
    assert h.sent == []
    # Polling is independent of the push path
    assert channel.peek_latest().kind == "waves"

    channel.publish("cross")
    assert [m["kind"] for m in h.messages] == ["cross"]


def test_serialized_event_shape(channel, handle_factory):
    h = handle_factory()
    channel.subscribe(h)
    channel.publish("circle", 4)
    payload = json.loads(h.sent[0])
    assert set(payload) == {"channel", "kind", "magnitude", "received_at", "extra"}
    assert payload["channel"] == "zener"
    assert payload["magnitude"] == 4.0
