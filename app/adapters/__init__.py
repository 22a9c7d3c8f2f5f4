"""Adapters for external systems: the upstream bookmarks API and the object store."""
