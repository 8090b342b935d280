"""
HTTP routes for the gallery API.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from starlette.concurrency import run_in_threadpool

from messverse.config import Settings
from messverse.db import DbClient, MemoryRecord, clamp_limit
from messverse.dependencies import get_db_client, get_media_store, get_settings_dep
from messverse.exceptions import NotFound, PayloadTooLarge, ValidationError
from messverse.guards import enforce_rate_limit, require_api_key
from messverse.media import MediaStoreClient, UploadOptions
from messverse.schemas import (
    DeleteMemoryResponse,
    HealthResponse,
    ListMemoriesResponse,
    MemoryResponse,
    PortraitMapResponse,
    PortraitResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_MEMORIES_LIMIT = 60
DEFAULT_MEMORY_ALT = "MessVerse memory"
PORTRAIT_MAX_SIDE = 1200
MEMORY_MAX_SIDE = 2200

health_router = APIRouter()
router = APIRouter()

mutating = [Depends(enforce_rate_limit), Depends(require_api_key)]


@dataclass
class DeleteOutcome:
    record: Optional[MemoryRecord]
    primary_deleted: bool
    secondary_cleaned: bool


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


async def _read_upload(file: Optional[UploadFile], max_bytes: int) -> bytes:
    if file is None:
        raise ValidationError("file is required")
    data = await file.read(max_bytes + 1)
    if not data:
        raise ValidationError("file is required")
    if len(data) > max_bytes:
        raise PayloadTooLarge(f"file exceeds {max_bytes} bytes")
    return data


async def _delete_memory_and_asset(
    db: DbClient, media: MediaStoreClient, memory_id: str
) -> DeleteOutcome:
    record = await run_in_threadpool(db.delete_memory, memory_id)
    if record is None:
        return DeleteOutcome(record=None, primary_deleted=False, secondary_cleaned=False)
    if not record.media_asset_id:
        return DeleteOutcome(record=record, primary_deleted=True, secondary_cleaned=True)
    try:
        cleaned = await run_in_threadpool(media.delete, record.media_asset_id)
    except Exception:
        logger.warning(
            "Asset %s for memory %s left behind", record.media_asset_id, record.id,
            exc_info=True,
        )
        cleaned = False
    return DeleteOutcome(record=record, primary_deleted=True, secondary_cleaned=cleaned)


@health_router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse()


@router.get("/member-portraits", response_model=PortraitMapResponse)
async def list_portraits(db: DbClient = Depends(get_db_client)):
    rows = await run_in_threadpool(db.list_portraits)
    return PortraitMapResponse(portraits={row.member_id: row.url for row in rows})


@router.post(
    "/member-portraits", response_model=PortraitResponse, dependencies=mutating
)
async def upload_portrait(
    member_id: Optional[str] = Form(None, alias="memberId"),
    file: Optional[UploadFile] = File(None),
    db: DbClient = Depends(get_db_client),
    media: MediaStoreClient = Depends(get_media_store),
    settings: Settings = Depends(get_settings_dep),
):
    member_id = _clean(member_id)
    if not member_id:
        raise ValidationError("memberId is required")
    data = await _read_upload(file, settings.max_upload_bytes)

    options = UploadOptions(
        folder=f"{settings.media_root_folder}/members",
        public_id=f"portrait_{member_id}",
        overwrite=True,
        max_width=PORTRAIT_MAX_SIDE,
        max_height=PORTRAIT_MAX_SIDE,
    )
    result = await run_in_threadpool(media.upload, data, options)
    saved = await run_in_threadpool(
        db.upsert_portrait, member_id, result.url, result.asset_id
    )
    logger.info("Stored portrait for member %s as %s", member_id, result.asset_id)
    return PortraitResponse(portrait=saved.as_dict())


@router.get("/memories", response_model=ListMemoriesResponse)
async def list_memories(
    limit: int = Query(DEFAULT_MEMORIES_LIMIT),
    db: DbClient = Depends(get_db_client),
):
    rows = await run_in_threadpool(db.list_recent_memories, clamp_limit(limit))
    return ListMemoriesResponse(memories=[row.as_dict() for row in rows])


@router.post("/memories", response_model=MemoryResponse, dependencies=mutating)
async def upload_memory(
    caption: Optional[str] = Form(None),
    alt: Optional[str] = Form(None),
    member_id: Optional[str] = Form(None, alias="memberId"),
    file: Optional[UploadFile] = File(None),
    db: DbClient = Depends(get_db_client),
    media: MediaStoreClient = Depends(get_media_store),
    settings: Settings = Depends(get_settings_dep),
):
    caption = _clean(caption)
    alt = _clean(alt) or caption or DEFAULT_MEMORY_ALT
    member_id = _clean(member_id)
    data = await _read_upload(file, settings.max_upload_bytes)

    options = UploadOptions(
        folder=f"{settings.media_root_folder}/memories",
        max_width=MEMORY_MAX_SIDE,
        max_height=MEMORY_MAX_SIDE,
    )
    result = await run_in_threadpool(media.upload, data, options)
    saved = await run_in_threadpool(
        lambda: db.create_memory(
            result.url,
            media_asset_id=result.asset_id,
            caption=caption,
            alt=alt,
            member_id=member_id,
        )
    )
    logger.info("Stored memory %s as %s", saved.id, result.asset_id)
    return MemoryResponse(memory=saved.as_dict())


@router.delete(
    "/memories/{memory_id}", response_model=DeleteMemoryResponse, dependencies=mutating
)
async def delete_memory(
    memory_id: str,
    db: DbClient = Depends(get_db_client),
    media: MediaStoreClient = Depends(get_media_store),
):
    outcome = await _delete_memory_and_asset(db, media, memory_id)
    if not outcome.primary_deleted:
        raise NotFound("Memory not found")
    return DeleteMemoryResponse(
        memory=outcome.record.as_dict(), assetDeleted=outcome.secondary_cleaned
    )
