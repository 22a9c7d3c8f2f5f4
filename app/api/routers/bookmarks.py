"""Read and refresh endpoints over the bookmark engine.

Reads never fail because of lock or store trouble: the worst case is an
empty list. Only a refresh with nothing persisted to fall back to returns
an error envelope (see ``app.api.error_handlers``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, Path, Query

from app.api.dependencies import get_engine
from app.api.exceptions import ResourceNotFoundError
from app.api.models.responses import (
    BookmarkListData,
    BookmarkPageData,
    RefreshResultData,
    success_response,
)
from app.domain.models.bookmark import dump_bookmarks, tag_slug
from app.services.engine import BookmarkEngine

if TYPE_CHECKING:
    from app.domain.models.collection import CollectionIndex

logger = logging.getLogger(__name__)
router = APIRouter()


def _page_pagination(index: CollectionIndex | None, page: int, returned: int) -> dict[str, Any]:
    if index is None:
        return {"total": returned, "limit": returned, "offset": 0, "has_more": False}
    return {
        "total": index.count,
        "limit": index.page_size,
        "offset": (page - 1) * index.page_size,
        "has_more": page < index.total_pages,
    }


@router.get("")
async def list_bookmarks(
    include_images: bool = Query(True, alias="includeImages"),
    skip_upstream: bool = Query(False, alias="skipUpstream"),
    engine: BookmarkEngine = Depends(get_engine),
) -> dict:
    """Return the whole collection."""
    bookmarks = await engine.get_collection(
        skip_upstream=skip_upstream, include_images=include_images
    )
    data = BookmarkListData(bookmarks=dump_bookmarks(bookmarks), count=len(bookmarks))
    return success_response(data)


@router.get("/index")
async def get_index(engine: BookmarkEngine = Depends(get_engine)) -> dict:
    index = await engine.get_index()
    if index is None:
        raise ResourceNotFoundError("Bookmark index", "global")
    return success_response(index.to_json_dict())


@router.get("/pages/{page}")
async def get_page(
    page: int = Path(..., ge=1),
    engine: BookmarkEngine = Depends(get_engine),
) -> dict:
    bookmarks = await engine.get_page(page)
    index = await engine.get_index()
    data = BookmarkPageData(
        bookmarks=dump_bookmarks(bookmarks),
        count=len(bookmarks),
        page=page,
        total_pages=index.total_pages if index else int(bool(bookmarks)),
    )
    return success_response(data, pagination=_page_pagination(index, page, len(bookmarks)))


@router.get("/tags/{slug}/index")
async def get_tag_index(slug: str, engine: BookmarkEngine = Depends(get_engine)) -> dict:
    index = await engine.get_tag_index(slug)
    if index is None:
        raise ResourceNotFoundError("Tag", tag_slug(slug))
    return success_response(index.to_json_dict())


@router.get("/tags/{slug}/pages/{page}")
async def get_tag_page(
    slug: str,
    page: int = Path(..., ge=1),
    engine: BookmarkEngine = Depends(get_engine),
) -> dict:
    bookmarks = await engine.get_tag_page(slug, page)
    index = await engine.get_tag_index(slug)
    data = BookmarkPageData(
        bookmarks=dump_bookmarks(bookmarks),
        count=len(bookmarks),
        page=page,
        total_pages=index.total_pages if index else 0,
        tag=tag_slug(slug),
    )
    return success_response(data, pagination=_page_pagination(index, page, len(bookmarks)))


@router.post("/refresh")
async def refresh_bookmarks(
    force: bool = Query(False, description="Bypass the unchanged-checksum short circuit"),
    engine: BookmarkEngine = Depends(get_engine),
) -> dict:
    """Run one refresh cycle now."""
    result = await engine.refresh(force=force)
    logger.info("api_refresh_requested", extra={"force": force, "refreshed": result is not None})
    data = RefreshResultData(
        refreshed=result is not None,
        count=len(result) if result is not None else 0,
        forced=force,
    )
    return success_response(data)


@router.get("/heartbeat")
async def get_heartbeat(engine: BookmarkEngine = Depends(get_engine)) -> dict:
    heartbeat = await engine.get_heartbeat()
    return success_response(
        {
            "heartbeat": heartbeat.to_json_dict() if heartbeat else None,
            "engine": engine.status(),
        }
    )
