"""Configuration package."""

from shai_bridge.config.settings import BridgeSettings, load_settings, split_names

__all__ = ["BridgeSettings", "load_settings", "split_names"]
