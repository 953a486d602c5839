import json
import logging
import time
from typing import List, Optional

import paho.mqtt.client as mqtt

from .recognize.types import AlertEvent, RecognitionEvent

logger = logging.getLogger(__name__)


class MQTTManager:
    """
    Publishes monitor output for other nodes:
    facewatch/<site_id>/alerts, /recognitions and /heartbeat.
    Publishing is best-effort; failures are logged and dropped.
    """

    def __init__(
        self,
        broker: str = "localhost",
        port: int = 1883,
        site_id: str = "default_site",
        client: Optional[mqtt.Client] = None,
        connect: bool = True,
    ):
        self.broker = broker
        self.port = port
        self.site_id = site_id
        self.client = client

        if self.client is None:
            self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
            self.client.on_connect = self._on_connect
            self.client.on_disconnect = self._on_disconnect

            if connect:
                try:
                    self.client.connect(self.broker, self.port, 60)
                    self.client.loop_start()
                except (OSError, ValueError) as e:
                    logger.error("[MQTT] Failed to connect to %s:%d: %s", self.broker, self.port, e)

    def topic(self, name: str) -> str:
        return f"facewatch/{self.site_id}/{name}"

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        logger.info("[MQTT] Connected with result code %s", reason_code)
        if not reason_code.is_failure:
            self.publish_heartbeat()

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        logger.info("[MQTT] Disconnected with result code %s", reason_code)

    def _publish(self, topic: str, payload: dict) -> None:
        try:
            self.client.publish(topic, json.dumps(payload))
        except (OSError, ValueError, RuntimeError) as e:
            logger.error("[MQTT] Failed to publish to %s: %s", topic, e)

    def publish_alert(self, alert: AlertEvent) -> None:
        self._publish(self.topic("alerts"), alert.to_dict())

    def publish_recognitions(self, events: List[RecognitionEvent]) -> None:
        self._publish(self.topic("recognitions"), {
            "events": [e.to_dict() for e in events],
            "timestamp": int(time.time()),
        })

    def publish_heartbeat(self) -> None:
        self._publish(self.topic("heartbeat"), {
            "node": "monitor",
            "status": "ONLINE",
            "timestamp": int(time.time()),
        })

    def stop(self) -> None:
        self.client.loop_stop()
        self.client.disconnect()
