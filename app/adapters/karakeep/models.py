"""Pydantic models for the Karakeep API."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime

from pydantic import AliasChoices, BaseModel, Field


class KarakeepTag(BaseModel):
    """Tag as attached to a bookmark."""

    id: str = ""
    name: str
    attached_by: str | None = Field(default=None, alias="attachedBy")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class KarakeepContent(BaseModel):
    """Link content crawled by Karakeep."""

    type: str = "link"
    url: str | None = None
    title: str | None = None
    description: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    image_asset_id: str | None = Field(default=None, alias="imageAssetId")
    screenshot_asset_id: str | None = Field(default=None, alias="screenshotAssetId")
    favicon: str | None = None
    author: str | None = None
    publisher: str | None = None
    html_content: str | None = Field(default=None, alias="htmlContent")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class KarakeepAsset(BaseModel):
    id: str
    asset_type: str | None = Field(default=None, alias="assetType")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class KarakeepBookmark(BaseModel):
    """Raw bookmark as returned by the list endpoint."""

    id: str
    title: str | None = None
    note: str | None = None
    summary: str | None = None
    archived: bool = False
    favourited: bool = False
    tags: list[KarakeepTag] = Field(default_factory=list)
    content: KarakeepContent | None = None
    assets: list[KarakeepAsset] = Field(default_factory=list)
    created_at: datetime | None = Field(default=None, alias="createdAt")
    modified_at: datetime | None = Field(default=None, alias="modifiedAt")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    def asset_id_of_type(self, asset_type: str) -> str | None:
        for asset in self.assets:
            if asset.asset_type == asset_type:
                return asset.id
        return None


class KarakeepBookmarkList(BaseModel):
    """One cursor page of bookmarks."""

    bookmarks: list[KarakeepBookmark] = Field(
        default_factory=list, validation_alias=AliasChoices("bookmarks", "items")
    )
    next_cursor: str | None = Field(default=None, alias="nextCursor")

    model_config = {"populate_by_name": True, "extra": "ignore"}
