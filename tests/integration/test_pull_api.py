"""Pull endpoints with a mocked Pub/Sub subscriber."""

import json
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from google.api_core.exceptions import NotFound

pytestmark = pytest.mark.integration

SUBSCRIBER_CLIENT = "rtdn_collector.services.pull_listener.pubsub_v1.SubscriberClient"


@pytest.fixture
def subscriber():
    with patch(SUBSCRIBER_CLIENT) as client_cls:
        yield client_cls.return_value


def pull_response(*payloads):
    return SimpleNamespace(
        received_messages=[
            SimpleNamespace(
                ack_id=f"ack-{i}",
                message=SimpleNamespace(
                    message_id=str(1000 + i),
                    data=json.dumps(payload).encode("utf-8"),
                    attributes={},
                    publish_time=None,
                ),
            )
            for i, payload in enumerate(payloads)
        ]
    )


class TestPullWithoutProject:
    """Every Pub/Sub operation fails with 400 while no project is set."""

    @pytest.mark.parametrize("path", ["/pull", "/pull/start"])
    def test_returns_400_with_hint(self, client, subscriber, path):
        response = client.post(path)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "GCP_PROJECT_ID environment variable not set"
        assert "GOOGLE_CLOUD_PROJECT" in detail["hint"]
        subscriber.pull.assert_not_called()
        subscriber.subscribe.assert_not_called()


class TestSynchronousPull:
    def test_pulls_and_stores(self, client, project_configured, subscriber, make_notification_payload):
        subscriber.pull.return_value = pull_response(make_notification_payload(), {"testNotification": {}})

        response = client.post("/pull")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Pulled 2 messages"
        assert body["pulled"] == 2
        assert [e["messageId"] for e in body["entries"]] == ["1000", "1001"]
        assert len(client.get("/pull").json()) == 2

    def test_no_messages(self, client, project_configured, subscriber):
        subscriber.pull.return_value = pull_response()

        response = client.post("/pull")

        assert response.status_code == 200
        assert response.json() == {"message": "No new messages", "pulled": 0, "entries": []}

    def test_max_messages_query(self, client, project_configured, subscriber):
        subscriber.pull.return_value = pull_response()

        client.post("/pull", params={"max_messages": 5})

        assert subscriber.pull.call_args.kwargs["request"]["max_messages"] == 5

    @pytest.mark.parametrize("value", [0, 1001, "many"])
    def test_invalid_max_messages(self, client, project_configured, subscriber, value):
        assert client.post("/pull", params={"max_messages": value}).status_code == 422

    def test_pubsub_error_returns_500(self, client, project_configured, subscriber):
        subscriber.pull.side_effect = NotFound("Resource not found (resource=play-rtdn-sub).")

        response = client.post("/pull")

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["error"] == "Failed to pull messages"
        assert "not found" in detail["details"].lower()

    def test_get_and_delete_pulled(self, client, project_configured, subscriber):
        subscriber.pull.return_value = pull_response({"n": 1})
        notification_id = client.post("/pull").json()["entries"][0]["id"]

        assert client.get(f"/pull/{notification_id}").json()["data"] == {"n": 1}
        assert client.delete(f"/pull/{notification_id}").status_code == 204
        assert client.get(f"/pull/{notification_id}").status_code == 404


class TestStreamingListener:
    def test_start_and_stop(self, client, project_configured, subscriber):
        started = client.post("/pull/start")
        assert started.status_code == 200
        assert started.json() == {"message": "Pull listener started", "subscription": "play-rtdn-sub"}
        assert client.get("/status").json()["pullListenerActive"] is True

        again = client.post("/pull/start")
        assert again.json()["message"] == "Pull listener already running"
        subscriber.subscribe.assert_called_once()

        stopped = client.post("/pull/stop")
        assert stopped.json()["message"] == "Pull listener stopped"
        assert client.get("/status").json()["pullListenerActive"] is False

    def test_stop_when_idle(self, client):
        response = client.post("/pull/stop")

        assert response.status_code == 200
        assert response.json()["message"] == "No pull listener running"

    def test_start_failure_returns_500(self, client, project_configured, subscriber):
        subscriber.subscribe.side_effect = NotFound("subscription does not exist")

        response = client.post("/pull/start")

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "Failed to start listener"
        assert client.get("/status").json()["pullListenerActive"] is False
