"""Configuration package."""

from .logging import get_logger, setup_logging
from .settings import FieldBoosts, Settings

__all__ = ["FieldBoosts", "Settings", "get_logger", "setup_logging"]
