"""Tests for RTDN payload models and notification type names."""

import pytest

from rtdn_collector.models import (
    NotificationType,
    SubscriptionNotificationPayload,
    notification_type_name,
    optional_text,
)


class TestNotificationTypeName:
    @pytest.mark.parametrize(
        "code,name",
        [
            (1, "SUBSCRIPTION_RECOVERED"),
            (2, "SUBSCRIPTION_RENEWED"),
            (3, "SUBSCRIPTION_CANCELED"),
            (4, "SUBSCRIPTION_PURCHASED"),
            (5, "SUBSCRIPTION_ON_HOLD"),
            (6, "SUBSCRIPTION_IN_GRACE_PERIOD"),
            (7, "SUBSCRIPTION_RESTARTED"),
            (8, "SUBSCRIPTION_PRICE_CHANGE_CONFIRMED"),
            (9, "SUBSCRIPTION_DEFERRED"),
            (10, "SUBSCRIPTION_PAUSED"),
            (11, "SUBSCRIPTION_PAUSE_SCHEDULE_CHANGED"),
            (12, "SUBSCRIPTION_REVOKED"),
            (13, "SUBSCRIPTION_EXPIRED"),
            (20, "SUBSCRIPTION_PENDING_PURCHASE_CANCELED"),
        ],
    )
    def test_known_codes(self, code, name):
        assert notification_type_name(code) == name

    @pytest.mark.parametrize("code", [0, 14, 19, 999, -1, None, "abc", True])
    def test_unknown_codes(self, code):
        """Unmapped or malformed codes never raise."""
        assert notification_type_name(code) == "UNKNOWN"

    def test_numeric_string_code(self):
        assert notification_type_name("4") == "SUBSCRIPTION_PURCHASED"

    def test_enum_values(self):
        assert NotificationType.SUBSCRIPTION_PURCHASED == 4
        assert NotificationType.SUBSCRIPTION_PENDING_PURCHASE_CANCELED == 20


class TestSubscriptionNotificationPayload:
    def test_parses_developer_notification(self, make_notification_payload):
        payload = SubscriptionNotificationPayload.from_data(make_notification_payload())

        assert payload is not None
        assert payload.packageName == "com.example.app"
        assert payload.eventTimeMillis == "1700000000000"
        assert payload.subscriptionNotification.purchaseToken == "token-abc-123"
        assert payload.subscriptionNotification.subscriptionId == "premium.monthly"
        assert payload.subscriptionNotification.type_name == "SUBSCRIPTION_PURCHASED"

    def test_keeps_integer_event_time(self, make_notification_payload):
        payload = SubscriptionNotificationPayload.from_data(
            make_notification_payload(event_time_millis=1700000000000)
        )
        assert payload.eventTimeMillis == 1700000000000

    @pytest.mark.parametrize(
        "data",
        [
            None,
            "text payload",
            ["a"],
            {},
            {"packageName": "com.example.app"},
            {"packageName": "com.example.app", "testNotification": {"version": "1.0"}},
            {"packageName": "com.example.app", "oneTimeProductNotification": {"notificationType": 1}},
            {"subscriptionNotification": "not-an-object"},
            {"subscriptionNotification": None},
        ],
    )
    def test_non_subscription_data_returns_none(self, data):
        assert SubscriptionNotificationPayload.from_data(data) is None

    def test_unparseable_type_code_still_qualifies(self):
        data = {"subscriptionNotification": {"notificationType": "not-a-number"}}
        payload = SubscriptionNotificationPayload.from_data(data)

        assert payload.subscriptionNotification.notificationType == "not-a-number"
        assert payload.subscriptionNotification.type_name == "UNKNOWN"

    def test_numeric_text_fields_are_stringified(self, make_notification_payload):
        data = make_notification_payload(purchase_token=12345, subscription_id=7)
        data["version"] = 1
        data["packageName"] = 42

        payload = SubscriptionNotificationPayload.from_data(data)

        assert payload.version == "1"
        assert payload.packageName == "42"
        assert payload.subscriptionNotification.purchaseToken == "12345"
        assert payload.subscriptionNotification.subscriptionId == "7"
        assert payload.subscriptionNotification.type_name == "SUBSCRIPTION_PURCHASED"

    def test_nested_text_fields_become_none(self):
        data = {
            "packageName": {"name": "com.example.app"},
            "subscriptionNotification": {"purchaseToken": ["t"], "subscriptionId": True},
        }

        payload = SubscriptionNotificationPayload.from_data(data)

        assert payload.packageName is None
        assert payload.subscriptionNotification.purchaseToken is None
        assert payload.subscriptionNotification.subscriptionId is None

    def test_minimal_subscription_notification(self):
        payload = SubscriptionNotificationPayload.from_data({"subscriptionNotification": {}})
        assert payload is not None
        assert payload.packageName is None
        assert payload.subscriptionNotification.type_name == "UNKNOWN"


class TestOptionalText:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("abc", "abc"),
            ("", ""),
            (123, "123"),
            (1.5, "1.5"),
            (None, None),
            (True, None),
            ({"a": 1}, None),
            (["a"], None),
        ],
    )
    def test_coercion(self, value, expected):
        assert optional_text(value) == expected
