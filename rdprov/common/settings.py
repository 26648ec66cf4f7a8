"""Application settings singleton for fixed constants

This module provides a singleton Settings class that consolidates:
1. Agent protocol constants (must match between agent and control client)
2. Fallback timeouts and the versioned permission sets

Deployment-specific values live in config.yml and reach components through
the loaded Config passed at construction time.

Usage:
    from rdprov.common.settings import settings

    permissions = settings.PERMISSION_SETS[2]
"""

from typing import Optional


class Settings:
    """Singleton holder of protocol and application constants"""

    _instance: Optional["Settings"] = None

    def __new__(cls) -> "Settings":
        """Ensure only one Settings instance exists"""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """Initialize settings singleton (only runs once)"""
        if hasattr(self, "_initialized"):
            return
        self._initialized = True

    # =========================================================================
    # Agent Protocol Constants
    # =========================================================================

    PROTOCOL_VERSION: str = "1.0"
    """Version announced in the agent HELLO message"""

    MAX_MESSAGE_BUFFER: int = 64 * 1024
    """Largest pending request buffer accepted from one control connection"""

    # =========================================================================
    # Privileged Execution Constants
    # =========================================================================

    DEFAULT_COMMAND_TIMEOUT_SEC: float = 15.0
    """Fallback per-command timeout when an executor is built without config"""

    KILL_GRACE_SEC: float = 2.0
    """How long to wait for a killed child to release its pipes"""

    # =========================================================================
    # Capability Permission Sets
    # =========================================================================

    PERMISSION_SETS: dict[int, tuple[str, ...]] = {
        1: (
            "android.permission.READ_EXTERNAL_STORAGE",
            "android.permission.WRITE_EXTERNAL_STORAGE",
            "android.permission.RECORD_AUDIO",
            "android.permission.SYSTEM_ALERT_WINDOW",
            "android.permission.REQUEST_IGNORE_BATTERY_OPTIMIZATIONS",
            "android.permission.POST_NOTIFICATIONS",
            "android.permission.WRITE_SECURE_SETTINGS",
        ),
        2: (
            "android.permission.READ_EXTERNAL_STORAGE",
            "android.permission.WRITE_EXTERNAL_STORAGE",
            "android.permission.RECORD_AUDIO",
            "android.permission.SYSTEM_ALERT_WINDOW",
            "android.permission.REQUEST_IGNORE_BATTERY_OPTIMIZATIONS",
            "android.permission.POST_NOTIFICATIONS",
            "android.permission.WRITE_SECURE_SETTINGS",
            "android.permission.CAPTURE_VIDEO_OUTPUT",
            "android.permission.CAPTURE_SECURE_VIDEO_OUTPUT",
            "android.permission.READ_FRAME_BUFFER",
        ),
    }
    """Versioned capability permission lists

    Version 2 adds the system-capture permissions that let a platform-signed
    build capture the screen without the interactive MediaProjection consent.
    """


# Global singleton instance
settings = Settings()
"""Global settings singleton instance

Import this anywhere in the application:
    from rdprov.common.settings import settings
"""
