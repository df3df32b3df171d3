import logging
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings

from .models import ConnectionOptions, MonitoringParameters, RetryStrategy, SubscriptionParameters

logger = logging.getLogger("config")

DEFAULT_TAGS = [
    "E_STOP",
    "LIGHT_CURTAIN",
    "TEMPERATURE",
    "HUMIDITY",
    "CONVEYORSPEED",
]


def configure_logging(level: str = "INFO"):
    """Configure the root logger for the reader process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


class Settings(BaseSettings):
    # OPC UA Connection
    OPCUA_ENDPOINT: str = "opc.tcp://127.0.0.1:26543"
    APPLICATION_NAME: str = "OPC-UA Reader"
    RETRY_INITIAL_DELAY: float = 0.25  # seconds
    RETRY_MAX_DELAY: float = 0.5
    RETRY_MAX_COUNT: int = 1
    ENDPOINT_MUST_EXIST: bool = False
    CONNECT_TIMEOUT: float = 10.0

    # User identity
    USER_IDENTITY_NEEDED: bool = False
    OPCUA_USERNAME: str = "user"
    OPCUA_PASSWORD: str = "user"

    # Subscription
    PUBLISHING_INTERVAL: float = 1000  # ms
    LIFETIME_COUNT: int = 100
    MAX_KEEPALIVE_COUNT: int = 10
    MAX_NOTIFICATIONS_PER_PUBLISH: int = 100
    PUBLISHING_ENABLED: bool = True
    PRIORITY: int = 10

    # Monitored items
    SAMPLING_INTERVAL: float = 500  # ms
    QUEUE_SIZE: int = 10
    DISCARD_OLDEST: bool = True

    # Polling
    POLL_INTERVAL: float = 1.0  # seconds
    POLL_READ_TIMEOUT: Optional[float] = None

    # Tags
    TAG_NAMESPACE: str = "ns=1;s="
    TAGS: List[str] = DEFAULT_TAGS

    # Output
    SINK: str = "console"
    MQTT_BROKER_HOST: str = "localhost"
    MQTT_BROKER_PORT: int = 1883
    MQTT_CLIENT_ID: str = "plc_reader"
    MQTT_TOPIC_PREFIX: str = "plc/tags"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True
        frozen = True

    def connection_options(self) -> ConnectionOptions:
        return ConnectionOptions(
            endpoint=self.OPCUA_ENDPOINT,
            application_name=self.APPLICATION_NAME,
            retry_strategy=RetryStrategy(
                initial_delay=self.RETRY_INITIAL_DELAY,
                max_delay=self.RETRY_MAX_DELAY,
                max_retry=self.RETRY_MAX_COUNT,
            ),
            endpoint_must_exist=self.ENDPOINT_MUST_EXIST,
            connect_timeout=self.CONNECT_TIMEOUT,
            username=self.OPCUA_USERNAME if self.USER_IDENTITY_NEEDED else None,
            password=self.OPCUA_PASSWORD if self.USER_IDENTITY_NEEDED else None,
        )

    def subscription_parameters(self) -> SubscriptionParameters:
        return SubscriptionParameters(
            publishing_interval=self.PUBLISHING_INTERVAL,
            lifetime_count=self.LIFETIME_COUNT,
            max_keepalive_count=self.MAX_KEEPALIVE_COUNT,
            max_notifications_per_publish=self.MAX_NOTIFICATIONS_PER_PUBLISH,
            publishing_enabled=self.PUBLISHING_ENABLED,
            priority=self.PRIORITY,
        )

    def monitoring_parameters(self) -> MonitoringParameters:
        return MonitoringParameters(
            sampling_interval=self.SAMPLING_INTERVAL,
            queue_size=self.QUEUE_SIZE,
            discard_oldest=self.DISCARD_OLDEST,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
