"""
Session state store tests
"""
import json
import pytest

from chat_client.models import MessageOrigin, SentimentBreakdown, SessionStatistics
from chat_client.realtime.codec import decode_inbound
from tests.mocks import FULL_RESPONSE, SCENARIO_RESPONSE, message_response


def decode(payload, now=None):
    return decode_inbound(json.dumps(payload), now=now)


class TestUserSends:
    """Locally originated messages"""

    def test_apply_user_send(self, store):
        snapshot = store.apply_user_send("Is this working?")

        assert len(snapshot.messages) == 1
        message = snapshot.messages[0]
        assert message.origin == MessageOrigin.USER
        assert message.content == "Is this working?"
        assert message.analytics is None
        assert message.id == "msg-001"
        assert snapshot.is_processing is True

    def test_user_send_does_not_touch_statistics(self, store):
        store.apply_server_event(decode(SCENARIO_RESPONSE))
        before = store.snapshot.statistics

        snapshot = store.apply_user_send("Another one")

        assert snapshot.statistics == before

    def test_clear_processing_keeps_log(self, store):
        store.apply_user_send("lost in transit")

        snapshot = store.clear_processing()

        assert snapshot.is_processing is False
        assert [m.content for m in snapshot.messages] == ["lost in transit"]
        assert snapshot.version == 2

    def test_clear_processing_when_idle_publishes_nothing(self, store):
        received = []
        store.subscribe(received.append)

        snapshot = store.clear_processing()

        assert snapshot.version == 0
        assert received == []


class TestServerEvents:
    """Server events and statistics"""

    def test_scenario(self, store, fixed_now):
        store.apply_user_send("Is this working?")
        snapshot = store.apply_server_event(decode(SCENARIO_RESPONSE, now=fixed_now))

        assert [m.origin for m in snapshot.messages] == [MessageOrigin.USER, MessageOrigin.SYSTEM]
        reply = snapshot.messages[1]
        assert reply.content == "Is this working?"
        assert reply.analytics.is_question is True
        assert reply.created_at == fixed_now
        assert snapshot.statistics == SessionStatistics(
            total_messages=1,
            total_words=3,
            questions_asked=1,
            avg_message_length=0,
            sentiment_breakdown=SentimentBreakdown(positive=0, negative=0, neutral=0)
        )
        assert snapshot.is_processing is False

    def test_statistics_are_replaced_not_merged(self, store):
        store.apply_server_event(decode(FULL_RESPONSE))
        snapshot = store.apply_server_event(decode(SCENARIO_RESPONSE))

        # Values come from the latest payload only, even though they are lower.
        assert snapshot.statistics.total_messages == 1
        assert snapshot.statistics.avg_message_length == 0
        assert snapshot.statistics.sentiment_breakdown.total == 0

    def test_statistics_follow_most_recent_payload(self, store):
        payloads = [
            message_response(stats={"total_messages": n, "total_words": n * 3, "questions_asked": n % 2})
            for n in range(1, 6)
        ]
        for payload in payloads:
            store.apply_server_event(decode(payload))

        assert store.snapshot.statistics.total_messages == 5
        assert store.snapshot.statistics.total_words == 15
        assert store.snapshot.statistics.questions_asked == 1

    def test_event_without_stats_keeps_statistics(self, store):
        store.apply_server_event(decode(FULL_RESPONSE))

        snapshot = store.apply_server_event(decode(message_response(echo="no stats")))

        assert snapshot.statistics.total_messages == 4
        assert snapshot.messages[-1].content == "no stats"

    def test_event_without_analytics_adds_no_message(self, store):
        snapshot = store.apply_server_event(decode({"type": "message_response", "echo": "bare"}))

        assert snapshot.messages == ()
        assert snapshot.statistics == SessionStatistics()

    def test_arrival_order_is_preserved(self, store):
        store.apply_server_event(decode(message_response(echo="E1")))
        store.apply_server_event(decode(message_response(echo="E2")))

        assert [m.content for m in store.snapshot.messages] == ["E1", "E2"]


class TestSnapshots:
    """Immutability and subscriptions"""

    def test_previous_snapshots_are_not_mutated(self, store):
        first = store.apply_user_send("one")
        second = store.apply_server_event(decode(SCENARIO_RESPONSE))

        assert len(first.messages) == 1
        assert first.statistics.total_messages == 0
        assert len(second.messages) == 2
        assert second.version == first.version + 1

    def test_subscribers_receive_every_snapshot(self, store):
        received = []
        store.subscribe(received.append)

        store.apply_user_send("one")
        store.apply_server_event(decode(SCENARIO_RESPONSE))

        assert [s.version for s in received] == [1, 2]
        assert received[-1] is store.snapshot

    def test_unsubscribe(self, store):
        received = []
        unsubscribe = store.subscribe(received.append)
        unsubscribe()

        store.apply_user_send("one")

        assert received == []

    def test_failing_subscriber_does_not_block_others(self, store):
        received = []

        def broken(snapshot):
            raise RuntimeError("renderer crashed")

        store.subscribe(broken)
        store.subscribe(received.append)

        store.apply_user_send("one")

        assert len(received) == 1

    def test_reset(self, store):
        store.apply_user_send("one")
        store.apply_server_event(decode(FULL_RESPONSE))

        snapshot = store.reset()

        assert snapshot.messages == ()
        assert snapshot.statistics == SessionStatistics()
