from __future__ import annotations

import subprocess
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from app.api.deps import AdminDependency
from app.core.auth import ADMIN_SCOPE, SESSION_COOKIE
from app.core.config import Settings, get_settings

from .schemas import EnvCheckResponse


router = APIRouter(prefix="/admin", tags=["admin"])


class DevTokenRequest(BaseModel):
    subject: str = Field(default="admin@localhost", examples=["admin@example.com"])
    scopes: list[str] = Field(default_factory=lambda: [ADMIN_SCOPE])


class DevTokenResponse(BaseModel):
    token: str


def _probe_binary(command: list[str]) -> bool:
    try:
        subprocess.run(command, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=True)
        return True
    except (OSError, subprocess.CalledProcessError):
        return False


@router.get("/env-check", response_model=EnvCheckResponse, summary="Validate the ffmpeg toolchain used for posters")
async def env_check(_: AdminDependency) -> EnvCheckResponse:
    return EnvCheckResponse(
        ffmpeg=_probe_binary(["ffmpeg", "-version"]),
        ffprobe=_probe_binary(["ffprobe", "-version"]),
    )


@router.post("/dev-token", response_model=DevTokenResponse, summary="Mint development admin session")
async def mint_dev_token(
    payload: DevTokenRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
) -> DevTokenResponse:
    if settings.environment_lower not in {"development", "dev"}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="dev_token_disabled")

    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(hours=1)
    claims: dict[str, object] = {
        "sub": payload.subject,
        "scopes": payload.scopes,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if settings.jwt_issuer:
        claims["iss"] = settings.jwt_issuer
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience

    token = jwt.encode(claims, settings.secrets.jwt_secret, algorithm=settings.jwt_algorithm)
    response.set_cookie(SESSION_COOKIE, token, httponly=True, samesite="lax", max_age=3600)
    return DevTokenResponse(token=token)


__all__ = ["router"]
