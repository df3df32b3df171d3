import asyncio
import json
import logging
from typing import Any, Dict

from paho.mqtt import client as mqtt


class MQTTClient:
    def __init__(self, host: str, port: int, client_id: str = "plc_reader"):
        self.host = host
        self.port = int(port)
        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        self.connected = False
        self.logger = logging.getLogger(__name__)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

    async def connect(self) -> bool:
        try:
            self.logger.info(f"Connecting to MQTT broker at {self.host}:{self.port}")
            self.client.connect(self.host, self.port, keepalive=60)
            self.client.loop_start()

            # Wait for the network loop to report the CONNACK
            for _ in range(10):
                if self.connected:
                    return True
                await asyncio.sleep(1)
            self.logger.error("Timed out waiting for MQTT broker")
            return False
        except Exception as e:
            self.logger.error(f"Failed to connect to MQTT broker: {e}")
            return False

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            self.logger.error(f"Failed to connect to MQTT broker: {reason_code}")
            return
        self.connected = True
        self.logger.info("Connected to MQTT broker")

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        self.connected = False
        if reason_code.is_failure:
            self.logger.warning(f"Unexpected disconnection from MQTT broker: {reason_code}")
        else:
            self.logger.info("Cleanly disconnected from MQTT broker")

    async def publish(self, topic: str, payload: Dict[str, Any], qos: int = 0) -> bool:
        """Publish a JSON message to an MQTT topic."""
        if not self.connected:
            self.logger.warning("Cannot publish: not connected to MQTT broker")
            return False

        message = json.dumps(payload)
        try:
            result = await asyncio.get_running_loop().run_in_executor(
                None,
                self.client.publish,
                topic,
                message,
                qos
            )
        except Exception as e:
            self.logger.error(f"Error publishing to MQTT: {e}")
            return False

        if result.rc == mqtt.MQTT_ERR_SUCCESS:
            self.logger.debug(f"Published to {topic}: {message}")
            return True
        self.logger.warning(f"Failed to publish to {topic}. RC: {result.rc}")
        return False

    async def disconnect(self):
        try:
            self.client.disconnect()
            self.client.loop_stop()
            self.connected = False
        except Exception as e:
            self.logger.error(f"Error disconnecting from MQTT broker: {e}")
