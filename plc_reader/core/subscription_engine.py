import asyncio
import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from asyncua import Client, Node, ua
from asyncua.common.subscription import Subscription

from .errors import SessionError, SubscriptionTerminated
from .models import (
    AcquisitionPath,
    MonitoringParameters,
    SubscriptionParameters,
    SubscriptionState,
    ValueEnvelope,
)
from .sink import OutputSink, deliver
from .tags import Tag, TagRegistry


class TagChannel:
    """
    Bounded FIFO of pending change notifications for one tag.

    Puts never block. When the channel is full the oldest pending item is
    dropped (or, with discard_oldest=False, the incoming one), so a consumer
    that falls behind always sees the freshest values.
    """

    def __init__(self, maxsize: int = 10, discard_oldest: bool = True):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.maxsize = maxsize
        self.discard_oldest = discard_oldest
        self.dropped = 0
        self._items: Deque[Any] = deque(maxlen=maxsize)
        self._ready = asyncio.Event()

    def __len__(self) -> int:
        return len(self._items)

    def put_nowait(self, item: Any) -> bool:
        """Queue an item. Returns False when the item itself was discarded."""
        if len(self._items) >= self.maxsize:
            self.dropped += 1
            if not self.discard_oldest:
                return False
        # deque(maxlen) evicts from the left on append
        self._items.append(item)
        self._ready.set()
        return True

    def get_nowait(self) -> Any:
        if not self._items:
            raise IndexError("channel is empty")
        return self._items.popleft()

    async def get(self) -> Any:
        while not self._items:
            self._ready.clear()
            await self._ready.wait()
        return self._items.popleft()


class KeepAliveSubscription(Subscription):
    """asyncua subscription that also reports publish responses without notifications."""

    def __init__(self, server, params: ua.CreateSubscriptionParameters, handler, on_keepalive: Callable):
        super().__init__(server, params, handler)
        self._on_keepalive = on_keepalive

    async def publish_callback(self, publish_result: ua.PublishResult) -> None:
        await super().publish_callback(publish_result)
        if not publish_result.NotificationMessage.NotificationData:
            await self._on_keepalive()


class SubHandler:
    def __init__(self, engine: "SubscriptionEngine"):
        self._engine = engine
        self.logger = logging.getLogger(__name__)

    async def datachange_notification(self, node: Node, val: Any, data):
        """Handle data change notifications."""
        try:
            self._engine.dispatch(node.nodeid.to_string(), data.monitored_item.Value)
        except Exception as e:
            self.logger.error(f"Error in datachange notification: {e}")

    async def status_change_notification(self, status: ua.StatusChangeNotification):
        """Handle subscription status changes."""
        self.logger.info(f"Subscription status changed: {status.Status}")
        if not status.Status.is_good():
            self._engine.on_server_terminated(status.Status)


class SubscriptionEngine:
    """
    Event acquisition path.

    Creates one subscription on the session and one monitored item per tag.
    Each tag's notifications go through its own TagChannel and are drained by
    a dedicated consumer task, so ordering is kept per tag while tags are
    handled independently of each other.
    """

    def __init__(
        self,
        session: Client,
        registry: TagRegistry,
        subscription_params: SubscriptionParameters,
        monitoring_params: MonitoringParameters,
        sink: OutputSink,
        subscription_factory: Callable[..., Subscription] = KeepAliveSubscription
    ):
        self.session = session
        self.registry = registry
        self.subscription_params = subscription_params
        self.monitoring_params = monitoring_params
        self.sink = sink
        self.logger = logging.getLogger(__name__)

        self.state = SubscriptionState.CREATED
        self.subscription: Optional[Subscription] = None
        self.subscription_id: Optional[int] = None
        self.handles: Dict[str, int] = {}
        self.channels: Dict[str, TagChannel] = {
            tag.name: TagChannel(monitoring_params.queue_size, monitoring_params.discard_oldest)
            for tag in registry
        }
        self._subscription_factory = subscription_factory
        self._consumers: List[asyncio.Task] = []
        self._listeners: List[Callable[[SubscriptionState], Any]] = []
        self._terminating = False

    @property
    def is_active(self) -> bool:
        return self.state in (SubscriptionState.STARTED, SubscriptionState.KEEPALIVE)

    def add_lifecycle_listener(self, callback: Callable[[SubscriptionState], Any]):
        self._listeners.append(callback)

    def _set_state(self, state: SubscriptionState):
        self.state = state
        for callback in self._listeners:
            try:
                callback(state)
            except Exception as e:
                self.logger.error(f"Error in lifecycle listener: {e}")

    async def start(self):
        """Create the subscription and register one monitored item per tag."""
        if self.state != SubscriptionState.CREATED:
            raise SubscriptionTerminated(f"Subscription cannot be started from state {self.state.value}")

        params = self.subscription_params.to_ua()
        try:
            subscription = self._subscription_factory(
                self.session.uaclient,
                params,
                SubHandler(self),
                self._on_keepalive
            )
            results = await subscription.init()
            # Same negotiation as Client.create_subscription
            revised = self.session.get_subscription_revised_params(params, results)
            if revised is not None:
                await subscription.update(revised)
                self.logger.info(f"Subscription parameters revised by the server: {revised}")
        except Exception as e:
            raise SessionError(f"Subscription setup failed: {e}") from e

        self.subscription = subscription
        self.subscription_id = subscription.subscription_id
        self._set_state(SubscriptionState.STARTED)
        self.logger.info(f"Subscription started - subscriptionId={self.subscription_id}")

        for tag in self.registry:
            self._consumers.append(
                asyncio.create_task(self._consume(tag), name=f"subscription-{tag.name}")
            )

        for tag in self.registry:
            try:
                node = self.session.get_node(tag.node_address)
                handle = await subscription.subscribe_data_change(
                    node,
                    attr=ua.AttributeIds.Value,
                    queuesize=self.monitoring_params.queue_size,
                    sampling_interval=self.monitoring_params.sampling_interval
                )
                self.handles[tag.name] = handle
                self.logger.info(f"Monitoring {tag.node_address}")
            except Exception as e:
                self.logger.error(f"Error subscribing to tag {tag.name}: {e}")

        self.logger.info(f"Successfully subscribed to {len(self.handles)}/{len(self.registry)} tags")

    def dispatch(self, node_address: str, data_value: ua.DataValue):
        """Route one change notification into its tag's channel."""
        tag = self.registry.by_address(node_address)
        if tag is None:
            self.logger.warning(f"Change notification for unknown node {node_address}")
            return

        envelope = ValueEnvelope.from_data_value(data_value)
        channel = self.channels[tag.name]
        dropped_before = channel.dropped
        channel.put_nowait(envelope)
        if channel.dropped > dropped_before:
            self.logger.debug(f"Queue full for {tag.name}, dropped a pending value")

    async def _consume(self, tag: Tag):
        channel = self.channels[tag.name]
        while True:
            envelope = await channel.get()
            try:
                await deliver(self.sink, AcquisitionPath.EVENT, tag.name, envelope, self.logger)
            except Exception as e:
                self.logger.error(f"Error handling change for {tag.name}: {e}")

    async def _on_keepalive(self):
        if self.state == SubscriptionState.TERMINATED:
            return
        self._set_state(SubscriptionState.KEEPALIVE)
        self.logger.info("Subscription keepalive")

    def on_server_terminated(self, status: ua.StatusCode):
        """The server ended the subscription (timeout, shutdown...)."""
        if self.state == SubscriptionState.TERMINATED:
            return
        if not self._terminating:
            self.logger.error(
                f"Subscription terminated by server outside of shutdown: {status}. "
                "Reconnect or restart is required to resume event acquisition"
            )
        self._stop_consumers_nowait()
        self.handles.clear()
        self._set_state(SubscriptionState.TERMINATED)
        self.logger.info("Subscription terminated")

    def _stop_consumers_nowait(self) -> List[asyncio.Task]:
        consumers, self._consumers = self._consumers, []
        for task in consumers:
            task.cancel()
        return consumers

    async def terminate(self):
        """Unregister all monitored items and delete the subscription. Idempotent."""
        if self._terminating:
            return
        self._terminating = True

        if self.subscription is not None and self.state != SubscriptionState.TERMINATED:
            try:
                if self.handles:
                    await self.subscription.unsubscribe(list(self.handles.values()))
                await self.subscription.delete()
            except Exception as e:
                self.logger.error(f"Error terminating subscription: {e}")
        self.handles.clear()

        consumers = self._stop_consumers_nowait()
        if consumers:
            await asyncio.gather(*consumers, return_exceptions=True)

        if self.state != SubscriptionState.TERMINATED:
            self._set_state(SubscriptionState.TERMINATED)
            self.logger.info("Subscription terminated")
