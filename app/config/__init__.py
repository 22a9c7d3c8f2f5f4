from __future__ import annotations

from .bookmarks import BookmarksConfig
from .settings import AppConfig, RuntimeConfig, Settings, load_config
from .storage import ObjectStoreConfig

__all__ = [
    "AppConfig",
    "BookmarksConfig",
    "ObjectStoreConfig",
    "RuntimeConfig",
    "Settings",
    "load_config",
]
