"""Typed failures raised by the reconciliation engine.

Each error carries a machine-readable ``kind`` and enough ``detail`` to
identify the failing source (entity kind, folder, storage call). The HTTP
layer renders them verbatim; raw backend messages are kept out of the
payload and only logged.
"""

from __future__ import annotations

from typing import Any

from fastapi import status


class ReconcileError(Exception):
    kind = "reconcile_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.detail: dict[str, Any] = detail

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.kind, "detail": {"message": str(self), **self.detail}}


class CollectionFailed(ReconcileError):
    kind = "collection_failed"

    def __init__(self, source: str) -> None:
        super().__init__(f"reference collection failed for {source}", source=source)
        self.source = source


class StorageUnavailable(ReconcileError):
    kind = "storage_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, operation: str, target: str, *, retryable: bool = True) -> None:
        super().__init__(
            f"storage {operation} failed for {target}",
            operation=operation,
            target=target,
            retryable=retryable,
        )
        self.operation = operation
        self.target = target
        self.retryable = retryable


class InvalidRequest(ReconcileError):
    kind = "invalid_request"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, reason: str) -> None:
        super().__init__(reason, reason=reason)
        self.reason = reason


class DerivedAssetGenerationFailed(ReconcileError):
    """Poster generation failed; callers record the upload without a derived asset."""

    kind = "derived_asset_generation_failed"

    def __init__(self, reason: str) -> None:
        super().__init__(reason, reason=reason)
        self.reason = reason


__all__ = [
    "ReconcileError",
    "CollectionFailed",
    "StorageUnavailable",
    "InvalidRequest",
    "DerivedAssetGenerationFailed",
]
