"""
Pydantic schemas for the gallery API responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    ok: Literal[True] = True


class Portrait(BaseModel):
    memberId: str
    url: str
    mediaAssetId: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime


class PortraitMapResponse(BaseModel):
    portraits: dict[str, str]


class PortraitResponse(BaseModel):
    ok: Literal[True] = True
    portrait: Portrait


class Memory(BaseModel):
    id: str
    url: str
    mediaAssetId: Optional[str] = None
    caption: Optional[str] = None
    alt: Optional[str] = None
    memberId: Optional[str] = None
    createdAt: datetime


class ListMemoriesResponse(BaseModel):
    memories: list[Memory]


class MemoryResponse(BaseModel):
    ok: Literal[True] = True
    memory: Memory


class DeleteMemoryResponse(BaseModel):
    ok: Literal[True] = True
    memory: Memory
    assetDeleted: bool
