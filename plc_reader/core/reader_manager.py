import logging
from typing import Optional

from .clients.mqtt_client import MQTTClient
from .clients.opcua_client import ConnectionManager
from .config import Settings
from .poll_scheduler import PollScheduler
from .shutdown import ShutdownCoordinator
from .sink import ConsoleSink, MqttSink, OutputSink
from .subscription_engine import SubscriptionEngine
from .tags import TagRegistry


class ReaderManager:
    """Wires the connection, both acquisition paths and the shutdown coordinator."""

    def __init__(self, settings: Settings, sink: Optional[OutputSink] = None,
                 connection: Optional[ConnectionManager] = None):
        self.logger = logging.getLogger(__name__)
        self.settings = settings

        self.registry = TagRegistry.from_names(settings.TAGS, settings.TAG_NAMESPACE)
        self.sink = sink or self._build_sink()
        self.connection = connection or ConnectionManager(settings.connection_options())

        self.engine: Optional[SubscriptionEngine] = None
        self.scheduler: Optional[PollScheduler] = None
        self.coordinator: Optional[ShutdownCoordinator] = None

    def _build_sink(self) -> OutputSink:
        if self.settings.SINK == "mqtt":
            mqtt_client = MQTTClient(
                self.settings.MQTT_BROKER_HOST,
                self.settings.MQTT_BROKER_PORT,
                self.settings.MQTT_CLIENT_ID
            )
            return MqttSink(mqtt_client, self.settings.MQTT_TOPIC_PREFIX)
        return ConsoleSink()

    async def start(self):
        """Connect, then start the event path followed by the poll path."""
        try:
            if isinstance(self.sink, MqttSink) and not await self.sink.open():
                self.logger.warning("MQTT broker unavailable, readings will not be published")

            self.logger.info(f"Tags: {', '.join(self.registry.names())}")
            session = await self.connection.connect()

            self.engine = SubscriptionEngine(
                session,
                self.registry,
                self.settings.subscription_parameters(),
                self.settings.monitoring_parameters(),
                self.sink
            )
            await self.engine.start()

            self.scheduler = PollScheduler(
                session,
                self.registry,
                self.sink,
                interval=self.settings.POLL_INTERVAL,
                read_timeout=self.settings.POLL_READ_TIMEOUT
            )
            self.scheduler.start()

            self.coordinator = ShutdownCoordinator(self.scheduler, self.engine, self.connection, self.sink)
            self.logger.info("ready to run")

        except Exception as e:
            self.logger.error(f"Error starting reader: {e}")
            await self.stop()
            raise

    async def run(self) -> int:
        """Start acquisition and block until a termination signal was handled."""
        await self.start()
        self.coordinator.install_signal_handlers()
        return await self.coordinator.wait()

    async def stop(self) -> int:
        if self.coordinator is None:
            self.coordinator = ShutdownCoordinator(self.scheduler, self.engine, self.connection, self.sink)
        return await self.coordinator.shutdown()
