"""Shared fixtures: isolated configuration and fresh in-memory stores per test."""

import base64
import json

import pytest

from rtdn_collector.config import reset_config
from rtdn_collector.repositories.record_store import reset_stores
from rtdn_collector.services.enricher import reset_subscription_enricher
from rtdn_collector.services.play_api import reset_play_api
from rtdn_collector.services.pull_listener import reset_streaming_listener

PROJECT_ENV_VARS = ("GOOGLE_CLOUD_PROJECT", "GCP_PROJECT_ID")


def _reset_singletons() -> None:
    reset_streaming_listener()
    reset_subscription_enricher()
    reset_play_api()
    reset_stores()
    reset_config()


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Memory-backed stores, no settings file and no GCP project by default."""
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "settings.yaml"))
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    for name in PROJECT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    for name in ("PUBSUB_SUBSCRIPTION", "PULL_MAX_MESSAGES", "DISPLAY_TIMEZONE", "PLAY_CREDENTIALS_FILE"):
        monkeypatch.delenv(name, raising=False)

    _reset_singletons()
    yield
    _reset_singletons()


@pytest.fixture
def project_configured(monkeypatch):
    """Configure a GCP project and subscription."""
    monkeypatch.setenv("GCP_PROJECT_ID", "test-project")
    monkeypatch.setenv("PUBSUB_SUBSCRIPTION", "play-rtdn-sub")
    reset_config()
    return "projects/test-project/subscriptions/play-rtdn-sub"


def developer_notification(
    notification_type=4,
    purchase_token="token-abc-123",
    subscription_id="premium.monthly",
    package_name="com.example.app",
    event_time_millis="1700000000000",
) -> dict:
    """Build a DeveloperNotification payload as Google Play sends it."""
    return {
        "version": "1.0",
        "packageName": package_name,
        "eventTimeMillis": event_time_millis,
        "subscriptionNotification": {
            "version": "1.0",
            "notificationType": notification_type,
            "purchaseToken": purchase_token,
            "subscriptionId": subscription_id,
        },
    }


def push_envelope(payload) -> dict:
    """Wrap a payload the way a Pub/Sub push subscription delivers it."""
    data = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    return {
        "message": {
            "data": data,
            "messageId": "2070443601311540",
            "publishTime": "2023-11-14T22:13:20.000Z",
        },
        "subscription": "projects/test-project/subscriptions/play-push",
    }


@pytest.fixture
def make_notification_payload():
    """Factory fixture for DeveloperNotification payloads."""
    return developer_notification


@pytest.fixture
def make_push_envelope():
    """Factory fixture for push envelopes."""
    return push_envelope
