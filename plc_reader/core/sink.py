import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .clients.mqtt_client import MQTTClient
from .decoder import Boolean, DecodedValue, Numeric, Unrecognized, decode, format_value
from .models import AcquisitionPath, ValueEnvelope


@dataclass(frozen=True)
class Reading:
    """One decoded tag value on its way to an output sink."""
    path: AcquisitionPath
    tag: str
    value: DecodedValue
    timestamp: datetime = field(default_factory=datetime.now)
    cycle: Optional[int] = None

    def format(self) -> str:
        return f"[{self.path.value}] {self.tag} = {format_value(self.value)}"


async def deliver(
        sink: "OutputSink",
        path: AcquisitionPath,
        tag: str,
        envelope: ValueEnvelope,
        logger: logging.Logger,
        cycle: Optional[int] = None
) -> Optional[Reading]:
    """Decode an envelope and forward it to the sink. Shared by both acquisition paths."""
    value = decode(envelope)
    if isinstance(value, Unrecognized):
        logger.warning(f"unexpected data type {value.type_name} for tag {tag} ({path.value})")
        return None
    reading = Reading(path=path, tag=tag, value=value, cycle=cycle)
    await sink.emit(reading)
    return reading


class OutputSink:
    async def emit(self, reading: Reading):
        raise NotImplementedError

    async def close(self):
        pass


class ConsoleSink(OutputSink):
    """Writes one line per reading to stdout."""

    async def emit(self, reading: Reading):
        # A single print call keeps each line whole
        print(reading.format(), flush=True)


class MqttSink(OutputSink):
    """Publishes readings as JSON on <prefix>/<path>/<tag>."""

    def __init__(self, mqtt_client: MQTTClient, topic_prefix: str = "plc/tags", qos: int = 0):
        self.mqtt_client = mqtt_client
        self.topic_prefix = topic_prefix.rstrip("/")
        self.qos = qos
        self.logger = logging.getLogger(__name__)

    async def open(self) -> bool:
        return await self.mqtt_client.connect()

    async def emit(self, reading: Reading):
        if isinstance(reading.value, (Numeric, Boolean)):
            value = reading.value.value
        else:
            value = None
        payload = {
            "tag": reading.tag,
            "path": reading.path.value,
            "value": value,
            "timestamp": reading.timestamp.isoformat(),
        }
        if reading.cycle is not None:
            payload["cycle"] = reading.cycle
        topic = f"{self.topic_prefix}/{reading.path.value}/{reading.tag}"
        if not await self.mqtt_client.publish(topic, payload, qos=self.qos):
            self.logger.warning(f"Reading for {reading.tag} was not published")

    async def close(self):
        await self.mqtt_client.disconnect()
