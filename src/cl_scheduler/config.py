"""Configuration for the CL scheduler.

Usage:
    from cl_scheduler.config import Config

    # Access config values
    database_url = Config.SCHEDULER_DATABASE_URL
    dynamic = Config.SCHEDULER_DYNAMIC
"""

import os


class Config:
    """Centralized configuration for scheduler processes.

    All configuration values are class variables that can be accessed directly.
    Values are loaded from environment variables with sensible defaults.

    Example:
        from cl_scheduler.config import Config

        print(Config.CL_SERVER_DIR)
        print(Config.SCHEDULER_DATABASE_URL)
    """

    # ========================================================================
    # Helper methods (static)
    # ========================================================================

    @staticmethod
    def _get_cl_server_dir() -> str:
        """Get and validate CL_SERVER_DIR environment variable.

        Returns:
            Validated CL_SERVER_DIR path

        Raises:
            ValueError: If CL_SERVER_DIR not set or not writable
        """
        cl_server_dir = os.getenv("CL_SERVER_DIR")
        if not cl_server_dir:
            raise ValueError("CL_SERVER_DIR environment variable must be set")

        if not os.access(cl_server_dir, os.W_OK):
            raise ValueError(
                f"CL_SERVER_DIR does not exist or no write permission: {cl_server_dir}"
            )

        return cl_server_dir

    @staticmethod
    def _get_value(key: str, default: str) -> str:
        """Get configuration value from environment with optional default."""
        return os.getenv(key, default)

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        """Get integer configuration value."""
        return int(os.getenv(key, str(default)))

    @staticmethod
    def _get_bool(key: str, default: bool = False) -> bool:
        """Get boolean configuration value."""
        return os.getenv(key, str(default)).lower() in ("true", "1", "yes")

    @staticmethod
    def _get_list(key: str, default: str, separator: str = ",") -> list[str]:
        """Get list configuration value."""
        return [item.strip() for item in os.getenv(key, default).split(separator) if item.strip()]

    # ========================================================================
    # Common Configuration
    # ========================================================================

    CL_SERVER_DIR: str = _get_cl_server_dir()

    LOG_LEVEL: str = _get_value("LOG_LEVEL", "INFO")

    # ========================================================================
    # Database Configuration
    # ========================================================================

    # Every scheduler and enqueuer process must point at the same database
    SCHEDULER_DATABASE_URL: str = _get_value(
        "DATABASE_URL", f"sqlite:///{CL_SERVER_DIR}/scheduler.db"
    )

    # ========================================================================
    # Scheduler Configuration
    # ========================================================================

    # Persist bulk-assigned schedules to the registry
    SCHEDULER_DYNAMIC: bool = _get_bool("SCHEDULER_DYNAMIC", False)

    # Hand jobs to the executor right away instead of storing them
    SCHEDULER_INLINE: bool = _get_bool("SCHEDULER_INLINE", False)

    SCHEDULER_ENV: str = _get_value("SCHEDULER_ENV", "production")
    SCHEDULER_POLL_INTERVAL: int = _get_int("SCHEDULER_POLL_INTERVAL", 5)

    # ========================================================================
    # MQTT Configuration (schedule change notification)
    # ========================================================================

    BROADCAST_TYPE: str = _get_value("BROADCAST_TYPE", "mqtt")
    MQTT_BROKER: str = _get_value("MQTT_BROKER", "localhost")
    MQTT_PORT: int = _get_int("MQTT_PORT", 1883)
    MQTT_TOPIC: str = _get_value("MQTT_TOPIC", "scheduler/schedules")
