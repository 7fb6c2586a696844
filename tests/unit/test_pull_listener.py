"""Tests for Pub/Sub pull and streaming pull handling.

The Pub/Sub client is mocked; messages are plain namespaces shaped like
the google-cloud-pubsub message objects.
"""

import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
from google.api_core.exceptions import ServiceUnavailable

from rtdn_collector.models import Notification, NotificationSource
from rtdn_collector.repositories.persistence import MemoryBackend
from rtdn_collector.repositories.record_store import RecordStore, get_pull_store
from rtdn_collector.services.pull_listener import (
    STOP_TIMEOUT_SECONDS,
    ProjectNotConfiguredError,
    StreamingListener,
    get_streaming_listener,
    pull_messages,
    reset_streaming_listener,
)

SUBSCRIBER_CLIENT = "rtdn_collector.services.pull_listener.pubsub_v1.SubscriberClient"


def received(message_id, payload, ack_id=None, publish_time=None):
    """A ReceivedMessage as returned by SubscriberClient.pull()."""
    data = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return SimpleNamespace(
        ack_id=ack_id or f"ack-{message_id}",
        message=SimpleNamespace(
            message_id=message_id,
            data=data,
            attributes={},
            publish_time=publish_time,
        ),
    )


def streamed(message_id, payload):
    """A subscriber Message as passed to the streaming callback."""
    return SimpleNamespace(
        message_id=message_id,
        data=json.dumps(payload).encode("utf-8"),
        attributes={"origin": "play"},
        publish_time=None,
        ack=Mock(),
        nack=Mock(),
    )


@pytest.fixture
def subscriber():
    with patch(SUBSCRIBER_CLIENT) as client_cls:
        yield client_cls.return_value


@pytest.fixture
def store():
    return RecordStore("pull", Notification, MemoryBackend())


class TestPullMessages:
    """Synchronous pull: store first, acknowledge only what was stored."""

    def test_requires_project(self, subscriber):
        with pytest.raises(ProjectNotConfiguredError, match="GCP_PROJECT_ID"):
            pull_messages()
        subscriber.pull.assert_not_called()

    def test_stores_and_acknowledges(self, project_configured, subscriber, store, make_notification_payload):
        publish_time = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        subscriber.pull.return_value = SimpleNamespace(
            received_messages=[
                received("101", make_notification_payload(), publish_time=publish_time),
                received("102", {"testNotification": {"version": "1.0"}}),
            ]
        )

        stored = pull_messages(store=store)

        subscriber.pull.assert_called_once_with(
            request={"subscription": project_configured, "max_messages": 10}
        )
        subscriber.acknowledge.assert_called_once_with(
            request={"subscription": project_configured, "ack_ids": ["ack-101", "ack-102"]}
        )
        subscriber.close.assert_called_once()

        assert [n.messageId for n in stored] == ["101", "102"]
        assert stored[0].type == NotificationSource.PULL
        assert stored[0].data == make_notification_payload()
        assert stored[0].publishTime == "2023-11-14T22:13:20+00:00"
        assert [n.id for n in store.list()] == [n.id for n in stored]

    def test_max_messages_argument(self, project_configured, subscriber, store):
        subscriber.pull.return_value = SimpleNamespace(received_messages=[])

        pull_messages(max_messages=3, store=store)

        assert subscriber.pull.call_args.kwargs["request"]["max_messages"] == 3

    def test_max_messages_from_config(self, monkeypatch, project_configured, subscriber, store):
        from rtdn_collector.config import reset_config

        monkeypatch.setenv("PULL_MAX_MESSAGES", "42")
        reset_config()
        subscriber.pull.return_value = SimpleNamespace(received_messages=[])

        pull_messages(store=store)

        assert subscriber.pull.call_args.kwargs["request"]["max_messages"] == 42

    def test_empty_pull_does_not_acknowledge(self, project_configured, subscriber, store):
        subscriber.pull.return_value = SimpleNamespace(received_messages=[])

        assert pull_messages(store=store) == []
        subscriber.acknowledge.assert_not_called()

    def test_unstored_message_is_not_acknowledged(self, project_configured, subscriber):
        failing_store = Mock()
        failing_store.append.side_effect = [None, OSError("disk full"), None]
        subscriber.pull.return_value = SimpleNamespace(
            received_messages=[received("1", {}), received("2", {}), received("3", {})]
        )

        stored = pull_messages(store=failing_store)

        assert [n.messageId for n in stored] == ["1", "3"]
        assert subscriber.acknowledge.call_args.kwargs["request"]["ack_ids"] == ["ack-1", "ack-3"]

    def test_non_json_payload_is_stored_as_text(self, project_configured, subscriber, store):
        subscriber.pull.return_value = SimpleNamespace(received_messages=[received("1", b"hello")])

        assert pull_messages(store=store)[0].data == "hello"

    def test_pull_error_propagates(self, project_configured, subscriber, store):
        subscriber.pull.side_effect = ServiceUnavailable("unavailable")

        with pytest.raises(ServiceUnavailable):
            pull_messages(store=store)
        subscriber.close.assert_called_once()

    def test_acknowledge_error_propagates_after_storing(self, project_configured, subscriber, store):
        subscriber.pull.return_value = SimpleNamespace(received_messages=[received("1", {})])
        subscriber.acknowledge.side_effect = ServiceUnavailable("unavailable")

        with pytest.raises(ServiceUnavailable):
            pull_messages(store=store)
        assert store.count() == 1

    def test_uses_global_pull_store(self, project_configured, subscriber):
        subscriber.pull.return_value = SimpleNamespace(received_messages=[received("1", {})])

        pull_messages()

        assert get_pull_store().count() == 1


class TestStreamingListener:
    """Streaming pull lifecycle and per-message handling."""

    def test_start_requires_project(self, subscriber):
        listener = StreamingListener()

        with pytest.raises(ProjectNotConfiguredError):
            listener.start()
        assert listener.is_active() is False

    def test_start_opens_one_stream(self, project_configured, subscriber, store):
        listener = StreamingListener(store=store)

        assert listener.start() is True
        assert listener.start() is False

        subscriber.subscribe.assert_called_once()
        assert subscriber.subscribe.call_args.args[0] == project_configured
        assert listener.is_active() is True
        assert listener.subscription_path == project_configured

    def test_stop_when_idle(self, subscriber):
        assert StreamingListener().stop() is False

    def test_stop_cancels_stream(self, project_configured, subscriber, store):
        listener = StreamingListener(store=store)
        listener.start()
        future = subscriber.subscribe.return_value

        assert listener.stop() is True

        future.cancel.assert_called_once()
        future.result.assert_called_once_with(timeout=STOP_TIMEOUT_SECONDS)
        subscriber.close.assert_called_once()
        assert listener.is_active() is False
        assert listener.stop() is False

    def test_stop_survives_stream_failure(self, project_configured, subscriber, store):
        listener = StreamingListener(store=store)
        listener.start()
        subscriber.subscribe.return_value.result.side_effect = ServiceUnavailable("stream broke")

        assert listener.stop() is True

        subscriber.close.assert_called_once()
        assert listener.is_active() is False

    def test_restart_after_stop(self, project_configured, subscriber, store):
        listener = StreamingListener(store=store)
        listener.start()
        listener.stop()

        assert listener.start() is True
        assert subscriber.subscribe.call_count == 2

    def test_message_is_stored_then_acked(self, project_configured, subscriber, store, make_notification_payload):
        listener = StreamingListener(store=store)
        message = streamed("555", make_notification_payload())

        listener._handle_message(message)

        message.ack.assert_called_once()
        message.nack.assert_not_called()
        [notification] = store.list()
        assert notification.type == NotificationSource.PULL_STREAM
        assert notification.messageId == "555"
        assert notification.attributes == {"origin": "play"}
        assert notification.id.endswith("-555")

    def test_store_failure_nacks(self, project_configured, subscriber):
        failing_store = Mock()
        failing_store.append.side_effect = OSError("disk full")
        listener = StreamingListener(store=failing_store)
        message = streamed("555", {})

        listener._handle_message(message)

        message.nack.assert_called_once()
        message.ack.assert_not_called()

    def test_stream_error_resets_listener(self, project_configured, subscriber, store):
        listener = StreamingListener(store=store)
        listener.start()
        future = subscriber.subscribe.return_value
        future.cancelled.return_value = False
        future.exception.return_value = ServiceUnavailable("stream broke")

        on_done = future.add_done_callback.call_args.args[0]
        on_done(future)

        assert listener.is_active() is False
        subscriber.close.assert_called_once()
        assert listener.start() is True


class TestListenerSingleton:
    def test_same_instance(self):
        assert get_streaming_listener() is get_streaming_listener()

    def test_reset_stops_running_listener(self, project_configured, subscriber):
        listener = get_streaming_listener()
        listener.start()

        reset_streaming_listener()

        subscriber.subscribe.return_value.cancel.assert_called_once()
        assert get_streaming_listener() is not listener
