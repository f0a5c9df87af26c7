"""
Steam News Relay.

Tracks which Steam games users follow, polls Steam's news API once per
followed game and pushes new items to every eligible subscriber.
"""

from steam_news_relay.config import Settings, get_settings
from steam_news_relay.logger import get_logger, setup_logging

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
    "__version__",
]
