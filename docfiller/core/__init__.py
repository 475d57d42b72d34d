"""Core configuration and factory components."""

from docfiller.core.config import Settings, get_settings
from docfiller.core.factory import ComponentFactory

__all__ = [
    "Settings",
    "get_settings",
    "ComponentFactory",
]
