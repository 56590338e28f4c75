"""
Domain plugins and the plugin host.
"""

from .base import BasePlugin, ClientPlugin, Validatable
from .host import PluginEvent, PluginEventKind, PluginHost, PluginOrigin, PluginRecord

__all__ = [
    "BasePlugin",
    "ClientPlugin",
    "Validatable",
    "PluginEvent",
    "PluginEventKind",
    "PluginHost",
    "PluginOrigin",
    "PluginRecord",
]
