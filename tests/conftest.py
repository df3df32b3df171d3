# tests/conftest.py

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from asyncua import ua

from plc_reader.core.models import MonitoringParameters, SubscriptionParameters
from plc_reader.core.sink import OutputSink
from plc_reader.core.tags import TagRegistry


def make_data_value(value, variant_type):
    return ua.DataValue(ua.Variant(value, variant_type))


class RecordingSink(OutputSink):
    def __init__(self):
        self.readings = []
        self.lines = []
        self.closed = False

    async def emit(self, reading):
        self.readings.append(reading)
        self.lines.append(reading.format())

    async def close(self):
        self.closed = True

    async def wait_for(self, count, timeout=1.0):
        async with asyncio.timeout(timeout):
            while len(self.readings) < count:
                await asyncio.sleep(0.001)


class FakeNode:
    def __init__(self, session, address):
        self.session = session
        self.nodeid = ua.NodeId.from_string(address)
        self.address = address

    async def read_data_value(self):
        return await self.session.read(self.address)


class FakeSession:
    """Stands in for a connected asyncua.Client."""

    def __init__(self):
        self.values = {}
        self.read_delays = {}
        self.read_errors = {}
        self.read_log = []
        self.uaclient = MagicMock(name="uaclient")
        self.connect = AsyncMock()
        self.disconnect = AsyncMock()
        self.set_user = MagicMock()
        self.set_password = MagicMock()
        self.get_subscription_revised_params = MagicMock(return_value=None)

    def get_node(self, address):
        return FakeNode(self, address)

    def set_value(self, address, value, variant_type):
        self.values[address] = make_data_value(value, variant_type)

    async def read(self, address):
        self.read_log.append(("start", address))
        delay = self.read_delays.get(address)
        if delay:
            await asyncio.sleep(delay)
        self.read_log.append(("end", address))
        if address in self.read_errors:
            raise self.read_errors[address]
        return self.values[address]


class FakeSubscription:
    """Records what the engine asks of an asyncua subscription."""

    instances = []

    def __init__(self, server, params, handler, on_keepalive):
        self.server = server
        self.params = params
        self.handler = handler
        self.on_keepalive = on_keepalive
        self.subscription_id = 42
        self.subscribed = []
        self.unsubscribed = []
        self.deleted = 0
        self.updated = []
        self.fail_nodes = set()
        FakeSubscription.instances.append(self)

    async def init(self):
        return SimpleNamespace(SubscriptionId=self.subscription_id)

    async def subscribe_data_change(self, node, attr=ua.AttributeIds.Value, queuesize=0, sampling_interval=0.0):
        if node.address in self.fail_nodes:
            raise ua.UaStatusCodeError(ua.StatusCodes.BadNodeIdUnknown)
        self.subscribed.append((node.address, attr, queuesize, sampling_interval))
        return len(self.subscribed)

    async def update(self, params):
        self.updated.append(params)

    async def unsubscribe(self, handles):
        self.unsubscribed.extend(handles)

    async def delete(self):
        self.deleted += 1

    async def notify(self, address, value, variant_type):
        data = SimpleNamespace(monitored_item=SimpleNamespace(Value=make_data_value(value, variant_type)))
        await self.handler.datachange_notification(FakeNode(None, address), value, data)


@pytest.fixture
def registry():
    return TagRegistry.from_names(["E_STOP", "LIGHT_CURTAIN", "TEMPERATURE", "HUMIDITY", "CONVEYORSPEED"])


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def subscription_params():
    return SubscriptionParameters()


@pytest.fixture
def monitoring_params():
    return MonitoringParameters()


@pytest.fixture
def fake_subscription_factory():
    FakeSubscription.instances = []
    return FakeSubscription


@pytest.fixture
def mock_connection():
    connection = MagicMock()
    connection.disconnect = AsyncMock()
    return connection


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
