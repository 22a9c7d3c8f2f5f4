"""Tests for converting raw Karakeep bookmarks into domain bookmarks."""

from __future__ import annotations

from app.adapters.karakeep import to_bookmark
from app.adapters.karakeep.models import KarakeepBookmark
from app.domain.models.bookmark import TagAttribution


def _raw(**overrides) -> KarakeepBookmark:
    payload = {
        "id": "bm-1",
        "title": "  Readable title  ",
        "createdAt": "2024-01-01T00:00:00Z",
        "modifiedAt": "2024-02-01T00:00:00Z",
        "tags": [
            {"id": "t1", "name": "Machine Learning", "attachedBy": "ai"},
            {"id": "t2", "name": "machine   learning", "attachedBy": "human"},
        ],
        "content": {
            "type": "link",
            "url": "https://example.com/post",
            "description": "Summary text",
            "imageUrl": "https://example.com/og.png",
            "imageAssetId": "asset-1",
            "htmlContent": "<p>" + "word " * 450 + "</p>",
        },
    }
    payload.update(overrides)
    return KarakeepBookmark.model_validate(payload)


def test_core_fields() -> None:
    bookmark = to_bookmark(_raw())

    assert bookmark.id == "bm-1"
    assert bookmark.url == "https://example.com/post"
    assert bookmark.title == "Readable title"
    assert bookmark.description == "Summary text"
    assert bookmark.source_updated_at == bookmark.modified_at
    assert bookmark.date_bookmarked is not None


def test_tags_are_normalized_and_deduplicated() -> None:
    bookmark = to_bookmark(_raw())

    assert bookmark.tag_slugs == ["machine-learning"]
    assert bookmark.tags[0].attributed_by is TagAttribution.AUTOMATED


def test_content_metadata() -> None:
    metadata = to_bookmark(_raw()).content_metadata

    assert metadata is not None
    assert metadata.image_asset_id == "asset-1"
    assert metadata.image_url == "https://example.com/og.png"
    assert metadata.word_count == 450
    assert metadata.reading_time == 3


def test_asset_list_fills_missing_asset_ids() -> None:
    raw = _raw(
        content={"type": "link", "url": "https://example.com/x"},
        assets=[
            {"id": "banner-1", "assetType": "bannerImage"},
            {"id": "shot-1", "assetType": "screenshot"},
        ],
    )

    metadata = to_bookmark(raw).content_metadata

    assert metadata.image_asset_id == "banner-1"
    assert metadata.screenshot_asset_id == "shot-1"
    assert metadata.word_count is None


def test_fallbacks_for_missing_title_and_modified() -> None:
    raw = _raw(title=None, modifiedAt=None, content={"type": "link", "url": "https://e.com/a"})

    bookmark = to_bookmark(raw)

    assert bookmark.title == "https://e.com/a"
    assert bookmark.modified_at is None
    assert bookmark.source_updated_at == bookmark.date_bookmarked
