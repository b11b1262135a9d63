from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str = Field(default="ok", description="Health status indicator.")
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ReadinessResponse(BaseModel):
    status: str
    database: bool
    storage_backend: str
    bucket: str


class EnvCheckResponse(BaseModel):
    ffmpeg: bool
    ffprobe: bool


class AuditEntry(BaseModel):
    file: str
    status: Literal["linked", "orphan", "missing"]


class AuditSummary(BaseModel):
    linked: int
    orphan: int
    missing: int


class AuditResponse(BaseModel):
    summary: AuditSummary
    linked: List[AuditEntry]
    orphan: List[AuditEntry]
    missing: List[AuditEntry]
    degraded_folders: List[str] = Field(
        default_factory=list,
        description="Folders whose listing failed and were left out of the audit.",
    )


class StorageFilesResponse(BaseModel):
    files: List[str]
    count: int
    degraded_folders: List[str] = Field(default_factory=list)


class DeleteFilesRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    files: Optional[List[str]] = Field(default=None, json_schema_extra={"example": ["portfolio/1712000000000.mp4"]})


class DeleteFilesResponse(BaseModel):
    success: bool = True
    deleted: List[str] = Field(description="Every key targeted, including derived posters.")
    count: int


class PosterCleanupResponse(BaseModel):
    deleted: int
    files: List[str]


class MediaRecordResponse(BaseModel):
    id: str
    file_path: str
    poster_path: Optional[str]
    folder: str
    type: Literal["image", "video"]
    created_at: Optional[datetime]
    url: str
    poster_url: Optional[str]
    poster_error: Optional[str] = Field(
        default=None,
        description="Set when the poster could not be produced; the upload itself succeeded.",
    )


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[Any] = None


__all__ = [
    "HealthResponse",
    "ReadinessResponse",
    "EnvCheckResponse",
    "AuditEntry",
    "AuditSummary",
    "AuditResponse",
    "StorageFilesResponse",
    "DeleteFilesRequest",
    "DeleteFilesResponse",
    "PosterCleanupResponse",
    "MediaRecordResponse",
    "ErrorResponse",
]
