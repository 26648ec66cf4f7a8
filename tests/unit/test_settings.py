"""Unit tests for settings singleton"""

from rdprov.common.settings import Settings, settings


class TestSettingsSingleton:
    """Test Settings singleton pattern"""

    def test_singleton_same_instance(self):
        """Test that Settings() returns same instance"""
        s1 = Settings()
        s2 = Settings()
        assert s1 is s2

    def test_global_settings_is_singleton(self):
        """Test that global 'settings' is the singleton"""
        assert settings is Settings()

    def test_holds_constants_only(self):
        """Runtime config is passed explicitly, never stored on the singleton"""
        assert not hasattr(settings, "config")
        assert not hasattr(settings, "initialize")


class TestSettingsConstants:
    """Test that all constants are accessible"""

    def test_protocol_constants(self):
        assert settings.PROTOCOL_VERSION == "1.0"
        assert settings.MAX_MESSAGE_BUFFER == 64 * 1024

    def test_executor_constants(self):
        assert settings.DEFAULT_COMMAND_TIMEOUT_SEC > 0
        assert settings.KILL_GRACE_SEC > 0

    def test_permission_set_two_extends_one(self):
        """Version 2 keeps every version 1 permission and adds capture ones"""
        v1 = settings.PERMISSION_SETS[1]
        v2 = settings.PERMISSION_SETS[2]
        assert v2[: len(v1)] == v1
        assert v2[len(v1):] == (
            "android.permission.CAPTURE_VIDEO_OUTPUT",
            "android.permission.CAPTURE_SECURE_VIDEO_OUTPUT",
            "android.permission.READ_FRAME_BUFFER",
        )
