"""
Unit tests for facewatch.mqtt_manager
"""
import json
from unittest.mock import MagicMock

from facewatch.mqtt_manager import MQTTManager
from facewatch.recognize.types import AlertEvent, RecognitionEvent

T0 = 1_700_000_000.0


def make_manager():
    client = MagicMock()
    return MQTTManager(site_id="lab", client=client), client


def published(client):
    return [(c.args[0], json.loads(c.args[1])) for c in client.publish.call_args_list]


class TestTopics:
    def test_topic_names(self):
        mgr, _ = make_manager()
        assert mgr.topic("alerts") == "facewatch/lab/alerts"
        assert mgr.topic("heartbeat") == "facewatch/lab/heartbeat"

    def test_injected_client_is_not_connected(self):
        _, client = make_manager()
        client.connect.assert_not_called()


class TestPublish:
    def test_alert(self):
        mgr, client = make_manager()
        mgr.publish_alert(AlertEvent(id="a1", message="Unrecognized person detected at Lobby", timestamp=T0))
        ((topic, payload),) = published(client)
        assert topic == "facewatch/lab/alerts"
        assert payload["id"] == "a1"
        assert payload["severity"] == "high"

    def test_recognitions(self):
        mgr, client = make_manager()
        events = [
            RecognitionEvent(id="1", name="Alice", confidence=91, timestamp=T0, is_unknown=False, location="Lobby"),
            RecognitionEvent(id="2", name="unknown", confidence=12, timestamp=T0, is_unknown=True, location="Lobby"),
        ]
        mgr.publish_recognitions(events)
        ((topic, payload),) = published(client)
        assert topic == "facewatch/lab/recognitions"
        assert [e["name"] for e in payload["events"]] == ["Alice", "unknown"]
        assert payload["events"][1]["isUnknown"] is True
        assert isinstance(payload["timestamp"], int)

    def test_heartbeat_on_connect(self):
        mgr, client = make_manager()
        ok = MagicMock(is_failure=False)
        mgr._on_connect(client, None, None, ok)
        ((topic, payload),) = published(client)
        assert topic == "facewatch/lab/heartbeat"
        assert payload["status"] == "ONLINE"

    def test_no_heartbeat_on_failed_connect(self):
        mgr, client = make_manager()
        mgr._on_connect(client, None, None, MagicMock(is_failure=True))
        client.publish.assert_not_called()

    def test_publish_errors_are_dropped(self):
        mgr, client = make_manager()
        client.publish.side_effect = OSError("broken pipe")
        mgr.publish_heartbeat()
        assert client.publish.call_count == 1

    def test_stop(self):
        mgr, client = make_manager()
        mgr.stop()
        client.loop_stop.assert_called_once()
        client.disconnect.assert_called_once()
