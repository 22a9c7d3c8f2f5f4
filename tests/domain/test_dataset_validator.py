"""Tests for the fetched-dataset guard."""

from __future__ import annotations

import pytest

from app.domain.exceptions.domain_exceptions import DatasetValidationError
from app.domain.services.dataset_validator import DatasetValidator
from tests.fakes import make_bookmark


def test_accepts_normal_dataset() -> None:
    DatasetValidator.validate([make_bookmark("a"), make_bookmark("b")], previous_count=2)


def test_accepts_empty_dataset_when_nothing_was_persisted() -> None:
    DatasetValidator.validate([], previous_count=None)
    DatasetValidator.validate([], previous_count=0)


def test_rejects_empty_dataset_over_existing_manifest() -> None:
    with pytest.raises(DatasetValidationError) as exc_info:
        DatasetValidator.validate([], previous_count=12)
    assert exc_info.value.details["previous_count"] == 12


def test_rejects_when_every_url_is_missing() -> None:
    with pytest.raises(DatasetValidationError):
        DatasetValidator.validate([make_bookmark("a", url=""), make_bookmark("b", url="")])


def test_accepts_when_only_some_urls_are_missing() -> None:
    DatasetValidator.validate([make_bookmark("a", url=""), make_bookmark("b")])


def test_rejects_single_test_bookmark() -> None:
    with pytest.raises(DatasetValidationError):
        DatasetValidator.validate([make_bookmark("a", title="My Test Bookmark")])


def test_test_title_is_fine_in_a_larger_dataset() -> None:
    DatasetValidator.validate(
        [make_bookmark("a", title="Test bookmark"), make_bookmark("b")]
    )


def test_rejects_duplicate_ids() -> None:
    with pytest.raises(DatasetValidationError) as exc_info:
        DatasetValidator.validate([make_bookmark("a"), make_bookmark("b"), make_bookmark("a")])
    assert exc_info.value.details["duplicate_ids"] == ["a"]
