# tests/test_config.py

import pytest
from pydantic import ValidationError

from plc_reader.core.config import DEFAULT_TAGS, Settings


class TestSettings:
    def test_defaults_match_reference_configuration(self):
        settings = Settings()
        options = settings.connection_options()
        assert options.endpoint == "opc.tcp://127.0.0.1:26543"
        assert options.application_name == "OPC-UA Reader"
        assert options.retry_strategy.initial_delay == 0.25
        assert options.retry_strategy.max_delay == 0.5
        assert options.retry_strategy.max_retry == 1
        assert options.endpoint_must_exist is False
        assert options.username is None

        params = settings.subscription_parameters()
        assert (params.publishing_interval, params.lifetime_count, params.max_keepalive_count) == (1000, 100, 10)
        assert (params.max_notifications_per_publish, params.publishing_enabled, params.priority) == (100, True, 10)

        monitoring = settings.monitoring_parameters()
        assert (monitoring.sampling_interval, monitoring.queue_size, monitoring.discard_oldest) == (500, 10, True)
        assert settings.POLL_INTERVAL == 1.0
        assert settings.TAGS == DEFAULT_TAGS

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("OPCUA_ENDPOINT", "opc.tcp://plc.local:4840")
        monkeypatch.setenv("TAGS", '["E_STOP"]')
        monkeypatch.setenv("USER_IDENTITY_NEEDED", "true")
        settings = Settings()
        assert settings.OPCUA_ENDPOINT == "opc.tcp://plc.local:4840"
        assert settings.TAGS == ["E_STOP"]
        assert settings.connection_options().username == "user"

    def test_settings_are_frozen(self):
        settings = Settings()
        with pytest.raises(ValidationError):
            settings.POLL_INTERVAL = 5
        assert settings.POLL_INTERVAL == 1.0
