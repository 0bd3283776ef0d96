"""
Core module initialization.
Exports configuration and logging utilities.
"""

from pizza_orders.core.config import (
    EnvironmentMode,
    Settings,
    get_settings,
    setup_logging,
)

__all__ = ["get_settings", "Settings", "EnvironmentMode", "setup_logging"]
