# tests/test_tags.py

import pytest

from plc_reader.core.config import DEFAULT_TAGS
from plc_reader.core.tags import Tag, TagRegistry, node_address_for


class TestNodeAddress:
    def test_address_is_namespace_plus_name(self):
        assert node_address_for("E_STOP") == "ns=1;s=E_STOP"
        assert node_address_for("HUMIDITY", "ns=3;s=") == "ns=3;s=HUMIDITY"

    def test_address_is_deterministic(self):
        for name in DEFAULT_TAGS:
            assert node_address_for(name) == node_address_for(name)
            assert Tag.from_name(name) == Tag.from_name(name)

    def test_tag_is_immutable(self):
        tag = Tag.from_name("E_STOP")
        with pytest.raises(Exception):
            tag.name = "OTHER"


class TestTagRegistry:
    def test_preserves_order(self, registry):
        assert registry.names() == ["E_STOP", "LIGHT_CURTAIN", "TEMPERATURE", "HUMIDITY", "CONVEYORSPEED"]
        assert [tag.node_address for tag in registry][0] == "ns=1;s=E_STOP"
        assert len(registry) == 5

    def test_lookup(self, registry):
        assert registry.by_name("TEMPERATURE").node_address == "ns=1;s=TEMPERATURE"
        assert registry.by_address("ns=1;s=HUMIDITY").name == "HUMIDITY"
        assert registry.by_name("PRESSURE") is None
        assert registry.by_address("ns=2;s=HUMIDITY") is None

    def test_rejects_duplicates(self):
        with pytest.raises(ValueError):
            TagRegistry.from_names(["E_STOP", "E_STOP"])
