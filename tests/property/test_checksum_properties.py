"""Property-based tests for fingerprints and slug assignment.

Uses Hypothesis to generate collections and verify:
- Fingerprints ignore ordering
- Any timestamp change alters the fingerprint
- Slugs are unique, deterministic and reversible
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

# Try to import hypothesis, skip tests if not available
hypothesis = pytest.importorskip("hypothesis")
from hypothesis import given, settings, strategies as st

from tests.fakes import make_bookmark

BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)

ids = st.lists(
    st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789", min_size=1, max_size=8),
    min_size=1,
    max_size=25,
    unique=True,
)


def _collection(bookmark_ids: list[str], offsets: list[int] | None = None):
    offsets = offsets or [0] * len(bookmark_ids)
    return [
        make_bookmark(bookmark_id, updated=BASE_TIME + timedelta(seconds=offset))
        for bookmark_id, offset in zip(bookmark_ids, offsets, strict=False)
    ]


class TestFingerprintProperties:
    @given(bookmark_ids=ids, data=st.data())
    @settings(max_examples=100, deadline=None)
    def test_order_insensitive(self, bookmark_ids: list[str], data: st.DataObject) -> None:
        from app.domain.services.checksum import fingerprint

        collection = _collection(bookmark_ids)
        shuffled = data.draw(st.permutations(collection))

        assert fingerprint(collection) == fingerprint(shuffled)

    @given(bookmark_ids=ids, data=st.data())
    @settings(max_examples=100, deadline=None)
    def test_timestamp_change_is_detected(
        self, bookmark_ids: list[str], data: st.DataObject
    ) -> None:
        from app.domain.services.checksum import fingerprint

        collection = _collection(bookmark_ids)
        position = data.draw(st.integers(min_value=0, max_value=len(collection) - 1))
        changed = list(collection)
        changed[position] = make_bookmark(
            collection[position].id, updated=BASE_TIME + timedelta(milliseconds=1)
        )

        assert fingerprint(collection) != fingerprint(changed)


class TestSlugProperties:
    @given(
        paths=st.lists(
            st.sampled_from(["/a", "/a/", "/A", "/b", "/a-b", "/a_b", ""]),
            min_size=1,
            max_size=30,
        )
    )
    @settings(max_examples=100, deadline=None)
    def test_slugs_unique_and_reversible(self, paths: list[str]) -> None:
        from app.domain.services.slug_generator import build_slug_mapping

        bookmarks = [
            make_bookmark(f"id-{i:03d}", url=f"https://example.com{path}")
            for i, path in enumerate(paths)
        ]

        mapping = build_slug_mapping(bookmarks)
        slugs = [entry.slug for entry in mapping.slugs.values()]

        assert len(slugs) == len(set(slugs)) == len(bookmarks)
        for bookmark_id, entry in mapping.slugs.items():
            assert mapping.reverse_map[entry.slug] == bookmark_id
        assert build_slug_mapping(list(reversed(bookmarks))).reverse_map == mapping.reverse_map
