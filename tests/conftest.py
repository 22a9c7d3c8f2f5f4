"""Pytest configuration and shared fixtures.

This module provides common fixtures for all tests.
"""

from __future__ import annotations

import pytest

from app.config import AppConfig
from app.infrastructure.persistence.object_store.bookmark_store import BookmarkStore
from app.infrastructure.persistence.object_store.keys import BookmarkKeys
from tests.fakes import InMemoryObjectStore, build_config


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def keys() -> BookmarkKeys:
    return BookmarkKeys(suffix="-test")


@pytest.fixture
def bookmark_store(store: InMemoryObjectStore, keys: BookmarkKeys) -> BookmarkStore:
    return BookmarkStore(store, keys, page_size=2, max_tags_to_persist=2)


@pytest.fixture
def app_config() -> AppConfig:
    return build_config()
