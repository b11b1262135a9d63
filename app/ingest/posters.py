from __future__ import annotations

import subprocess
import tempfile
from pathlib import Path
from typing import Tuple

import cv2  # type: ignore

from app.core.errors import DerivedAssetGenerationFailed

POSTER_WIDTH = 640
POSTER_TIMEMARK_S = 1.0
FFMPEG_TIMEOUT_S = 120


def generate_poster(
    video_bytes: bytes,
    *,
    suffix: str = ".mp4",
    timemark_s: float = POSTER_TIMEMARK_S,
    width: int = POSTER_WIDTH,
) -> bytes:
    """Return JPEG bytes of a single frame taken from ``video_bytes``.

    The frame is taken at ``timemark_s``; clips shorter than that fall back to
    the first frame. Raises ``DerivedAssetGenerationFailed`` on any failure.
    """
    if not video_bytes:
        raise DerivedAssetGenerationFailed("empty_video")

    with tempfile.TemporaryDirectory(prefix="octopus-poster-") as workdir:
        source = Path(workdir) / f"source{suffix or '.mp4'}"
        try:
            source.write_bytes(video_bytes)
        except OSError as exc:
            raise DerivedAssetGenerationFailed("tempfile_write_failed") from exc
        poster = Path(workdir) / "poster.jpg"

        for offset in dict.fromkeys((max(timemark_s, 0.0), 0.0)):
            if _extract_frame(source, offset, poster, width):
                break
        else:
            raise DerivedAssetGenerationFailed("frame_extraction_failed")

        try:
            _image_dimensions(poster)
        except RuntimeError as exc:
            raise DerivedAssetGenerationFailed("poster_unreadable") from exc
        return poster.read_bytes()


def _extract_frame(video_path: Path, timestamp: float, output_path: Path, width: int) -> bool:
    command = [
        "ffmpeg",
        "-nostdin",
        "-v",
        "error",
        "-ss",
        f"{timestamp:.3f}",
        "-i",
        str(video_path),
        "-frames:v",
        "1",
        "-vf",
        f"scale={width}:-2",
        "-q:v",
        "2",
        "-y",
        str(output_path),
    ]
    try:
        subprocess.run(
            command,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=FFMPEG_TIMEOUT_S,
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError):
        output_path.unlink(missing_ok=True)
        return False
    # ffmpeg exits cleanly without writing a frame when seeking past the end.
    return output_path.exists() and output_path.stat().st_size > 0


def _image_dimensions(image_path: Path) -> Tuple[int, int]:
    image = cv2.imread(str(image_path))
    if image is None:
        raise RuntimeError(f"Failed to read generated poster at {image_path}")
    height, width = image.shape[:2]
    return width, height


__all__ = ["POSTER_TIMEMARK_S", "POSTER_WIDTH", "generate_poster"]
