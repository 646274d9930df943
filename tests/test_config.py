"""Tests for environment-driven configuration."""

import pytest
from bridge.config import BridgeConfig


def test_defaults():
    config = BridgeConfig.from_env({})
    assert config == BridgeConfig()
    assert config.locale == "en_GB"
    assert config.get_operations == ("get.*",)


def test_overrides():
    config = BridgeConfig.from_env(
        {
            "BRIDGE_LOCALE": "fr_FR",
            "BRIDGE_VENDOR": "Acme",
            "BRIDGE_GET_OPERATIONS": "get.*, find.*",
            "BRIDGE_STRAY_DOT_LANGUAGES": "sv,nb",
            "BRIDGE_PORT": "9000",
            "BRIDGE_LOG_LEVEL": "DEBUG",
            "BRIDGE_SERVICES": "/widgets=gateway.services:WidgetService",
            "BRIDGE_CLASS_MODULES": "myapp.models, gateway",
        }
    )
    assert config.locale == "fr_FR"
    assert config.vendor == "Acme"
    assert config.get_operations == ("get.*", "find.*")
    assert config.stray_dot_grouping_languages == ("sv", "nb")
    assert config.port == 9000
    assert config.log_level == "debug"
    assert config.services == {"/widgets": "gateway.services:WidgetService"}
    assert config.class_modules == ("myapp.models", "gateway")


def test_bad_services_entry():
    with pytest.raises(ValueError, match="BRIDGE_SERVICES"):
        BridgeConfig.from_env({"BRIDGE_SERVICES": "/widgets"})
