"""Dataset validation domain service.

Guards the persisted manifest against upstream responses that are
technically well-formed but obviously wrong.
"""

from __future__ import annotations

import re
from collections import Counter

from app.domain.exceptions.domain_exceptions import DatasetValidationError
from app.domain.models.bookmark import Bookmark

_TEST_TITLE_RE = re.compile(r"test bookmark", re.IGNORECASE)


class DatasetValidator:
    """Domain service deciding whether a fetched dataset may replace persisted data."""

    @staticmethod
    def validate(bookmarks: list[Bookmark], previous_count: int | None = None) -> None:
        """Validate a freshly fetched dataset.

        Args:
            bookmarks: The fetched, normalised bookmarks.
            previous_count: Number of bookmarks in the current manifest, if any.

        Raises:
            DatasetValidationError: If the dataset must not be persisted.
        """
        if not bookmarks:
            if previous_count:
                raise DatasetValidationError(
                    "Upstream returned an empty dataset while persisted data exists",
                    details={"previous_count": previous_count},
                )
            return

        if all(not bookmark.url for bookmark in bookmarks):
            raise DatasetValidationError(
                "Every bookmark in the dataset is missing a URL",
                details={"count": len(bookmarks)},
            )

        if len(bookmarks) == 1 and _TEST_TITLE_RE.search(bookmarks[0].title or ""):
            raise DatasetValidationError(
                "Dataset contains only a single test bookmark",
                details={"id": bookmarks[0].id},
            )

        duplicates = sorted(
            bookmark_id
            for bookmark_id, seen in Counter(b.id for b in bookmarks).items()
            if seen > 1
        )
        if duplicates:
            raise DatasetValidationError(
                "Dataset contains duplicate bookmark ids",
                details={"duplicate_ids": duplicates[:20]},
            )
