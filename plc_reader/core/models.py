from datetime import datetime
from enum import Enum
from typing import Any, Optional

from asyncua import ua
from pydantic import BaseModel, ConfigDict


class ValueKind(str, Enum):
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    UNRECOGNIZED = "unrecognized"


class AcquisitionPath(str, Enum):
    EVENT = "event"
    POLL = "poll"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class SubscriptionState(str, Enum):
    CREATED = "created"
    STARTED = "started"
    KEEPALIVE = "keepalive"
    TERMINATED = "terminated"


# Protocol variant types surfaced as semantic value kinds
VARIANT_KINDS = {
    ua.VariantType.Double: ValueKind.NUMERIC,
    ua.VariantType.Boolean: ValueKind.BOOLEAN,
}


class ValueEnvelope(BaseModel):
    """A protocol-typed value as delivered by a read or a change notification."""
    model_config = ConfigDict(frozen=True)

    type_tag: ValueKind
    payload: Any = None
    variant_type: str = ""
    source_timestamp: Optional[datetime] = None
    server_timestamp: Optional[datetime] = None

    @classmethod
    def from_data_value(cls, data_value: ua.DataValue) -> "ValueEnvelope":
        variant = data_value.Value
        variant_type = variant.VariantType if variant is not None else None
        return cls(
            type_tag=VARIANT_KINDS.get(variant_type, ValueKind.UNRECOGNIZED),
            payload=variant.Value if variant is not None else None,
            variant_type=variant_type.name if variant_type is not None else "Null",
            source_timestamp=data_value.SourceTimestamp,
            server_timestamp=data_value.ServerTimestamp,
        )


class RetryStrategy(BaseModel):
    model_config = ConfigDict(frozen=True)

    initial_delay: float = 0.25  # seconds
    max_delay: float = 0.5
    max_retry: int = 1


class ConnectionOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    endpoint: str
    application_name: str = "OPC-UA Reader"
    retry_strategy: RetryStrategy = RetryStrategy()
    endpoint_must_exist: bool = False
    connect_timeout: float = 10.0
    username: Optional[str] = None
    password: Optional[str] = None


class SubscriptionParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    publishing_interval: float = 1000  # ms
    lifetime_count: int = 100
    max_keepalive_count: int = 10
    max_notifications_per_publish: int = 100
    publishing_enabled: bool = True
    priority: int = 10

    def to_ua(self) -> ua.CreateSubscriptionParameters:
        params = ua.CreateSubscriptionParameters()
        params.RequestedPublishingInterval = self.publishing_interval
        params.RequestedLifetimeCount = self.lifetime_count
        params.RequestedMaxKeepAliveCount = self.max_keepalive_count
        params.MaxNotificationsPerPublish = self.max_notifications_per_publish
        params.PublishingEnabled = self.publishing_enabled
        params.Priority = self.priority
        return params


class MonitoringParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    sampling_interval: float = 500  # ms
    queue_size: int = 10
    discard_oldest: bool = True
