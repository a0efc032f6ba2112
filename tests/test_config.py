"""Unit tests for Config class."""

import os
from pathlib import Path

from cl_scheduler.config import Config


class TestConfig:
    """Test suite for Config class."""

    def test_config_has_required_attributes(self):
        """Test that Config class has all required configuration attributes."""
        # Database configuration
        assert hasattr(Config, "CL_SERVER_DIR")
        assert hasattr(Config, "SCHEDULER_DATABASE_URL")

        # Scheduler configuration
        assert hasattr(Config, "SCHEDULER_DYNAMIC")
        assert hasattr(Config, "SCHEDULER_INLINE")
        assert hasattr(Config, "SCHEDULER_ENV")
        assert hasattr(Config, "SCHEDULER_POLL_INTERVAL")
        assert hasattr(Config, "LOG_LEVEL")

        # MQTT configuration
        assert hasattr(Config, "MQTT_BROKER")
        assert hasattr(Config, "MQTT_PORT")
        assert hasattr(Config, "MQTT_TOPIC")
        assert hasattr(Config, "BROADCAST_TYPE")

    def test_config_values_have_types(self):
        """Test that Config values have appropriate types."""
        assert isinstance(Config.CL_SERVER_DIR, (str, Path))
        assert isinstance(Config.MQTT_PORT, int)
        assert isinstance(Config.SCHEDULER_POLL_INTERVAL, int)
        assert isinstance(Config.SCHEDULER_DYNAMIC, bool)
        assert isinstance(Config.SCHEDULER_INLINE, bool)

    def test_database_url_under_cl_server_dir(self):
        """Test that the default database lives under CL_SERVER_DIR."""
        if os.getenv("DATABASE_URL"):
            return
        assert Config.SCHEDULER_DATABASE_URL == f"sqlite:///{Config.CL_SERVER_DIR}/scheduler.db"

    def test_mqtt_defaults(self):
        """Test MQTT default values."""
        assert Config.MQTT_BROKER == "localhost" or os.getenv("MQTT_BROKER")
        assert Config.MQTT_PORT == 1883 or os.getenv("MQTT_PORT")
        assert Config.MQTT_TOPIC == "scheduler/schedules" or os.getenv("MQTT_TOPIC")
        assert Config.BROADCAST_TYPE == "mqtt" or os.getenv("BROADCAST_TYPE")

    def test_scheduler_defaults(self):
        """Test scheduler default values."""
        assert Config.SCHEDULER_DYNAMIC is False or os.getenv("SCHEDULER_DYNAMIC")
        assert Config.SCHEDULER_INLINE is False or os.getenv("SCHEDULER_INLINE")
        assert Config.SCHEDULER_ENV == "production" or os.getenv("SCHEDULER_ENV")
        assert Config.SCHEDULER_POLL_INTERVAL == 5 or os.getenv("SCHEDULER_POLL_INTERVAL")

    def test_helpers(self, monkeypatch):
        """Test the environment helpers."""
        monkeypatch.setenv("CL_TEST_BOOL", "Yes")
        monkeypatch.setenv("CL_TEST_LIST", "a, b,,c")

        assert Config._get_bool("CL_TEST_BOOL") is True
        assert Config._get_bool("CL_TEST_UNSET") is False
        assert Config._get_list("CL_TEST_LIST", "") == ["a", "b", "c"]
        assert Config._get_int("CL_TEST_UNSET", 7) == 7
