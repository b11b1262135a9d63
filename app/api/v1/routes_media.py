from __future__ import annotations

from fastapi import APIRouter, File, Form, UploadFile

from app.api import deps
from app.core.errors import InvalidRequest

from . import schemas


router = APIRouter(prefix="/admin/media", tags=["media"])


@router.post("/upload", response_model=schemas.MediaRecordResponse, summary="Store an image or video and record it")
async def upload_media(
    engine: deps.EngineDependency,
    _: deps.AdminDependency,
    file: UploadFile | None = File(default=None),
    folder: str | None = Form(default=None),
) -> schemas.MediaRecordResponse:
    if file is None:
        raise InvalidRequest("missing_file")
    try:
        payload = await file.read()
    finally:
        await file.close()

    result = await engine.ingest_upload(payload, file.content_type, folder, filename=file.filename)
    record = result.record
    return schemas.MediaRecordResponse(
        id=record.id,
        file_path=record.file_path,
        poster_path=record.poster_path,
        folder=record.folder,
        type=record.type.value,
        created_at=record.created_at,
        poster_error=result.poster_error,
        **engine.public_urls(record),
    )


__all__ = ["router"]
