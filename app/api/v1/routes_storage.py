from __future__ import annotations

from fastapi import APIRouter

from app.api import deps

from . import schemas


router = APIRouter(prefix="/admin/storage", tags=["storage"])


@router.get(
    "/audit",
    response_model=schemas.AuditResponse,
    summary="Classify bucket objects against content references",
    description=(
        "Posters under the catch-all posters folder are never referenced by content rows, so they are "
        "reported as orphan even while a media record points at them. Remove those through "
        "`POST /admin/storage/posters/cleanup`, not `POST /admin/storage/delete`."
    ),
)
async def audit_storage(engine: deps.EngineDependency, _: deps.AdminDependency) -> schemas.AuditResponse:
    report = await engine.audit()
    return schemas.AuditResponse(
        summary=schemas.AuditSummary(**report.summary),
        linked=[schemas.AuditEntry(file=path, status="linked") for path in report.linked],
        orphan=[schemas.AuditEntry(file=path, status="orphan") for path in report.orphan],
        missing=[schemas.AuditEntry(file=path, status="missing") for path in report.missing],
        degraded_folders=report.degraded_folders,
    )


@router.get("/files", response_model=schemas.StorageFilesResponse, summary="List objects in the scan scope")
async def list_files(engine: deps.EngineDependency, _: deps.AdminDependency) -> schemas.StorageFilesResponse:
    listing = await engine.list_files()
    files = sorted(listing.paths)
    return schemas.StorageFilesResponse(files=files, count=len(files), degraded_folders=listing.degraded_folders)


@router.post("/delete", response_model=schemas.DeleteFilesResponse, summary="Delete objects and their derived posters")
async def delete_files(
    payload: schemas.DeleteFilesRequest,
    engine: deps.EngineDependency,
    _: deps.AdminDependency,
) -> schemas.DeleteFilesResponse:
    result = await engine.delete_files(payload.files)
    return schemas.DeleteFilesResponse(deleted=result.deleted, count=len(result.deleted))


@router.post("/posters/cleanup", response_model=schemas.PosterCleanupResponse, summary="Remove posters no media record points at")
async def cleanup_posters(engine: deps.EngineDependency, _: deps.AdminDependency) -> schemas.PosterCleanupResponse:
    result = await engine.cleanup_orphan_posters()
    return schemas.PosterCleanupResponse(deleted=result.deleted, files=result.files)


__all__ = ["router"]
