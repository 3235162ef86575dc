"""
Media normalization and probing.

Images are decoded with Pillow, bounded to a maximum dimension and
re-encoded as progressive JPEG. Videos are probed with FFprobe and
thumbnailed with FFmpeg, both via subprocess, reading from a temporary
file.

Failure modes:
    Corrupt or unidentifiable input, decompression bombs, codec errors,
    probe timeouts and clips without a video track raise TransformFailure.
    A missing ``ffprobe`` binary is not an error: the probe returns
    placeholder data marked ``measured=False``.
"""

from __future__ import annotations

import json
import subprocess
import tempfile
from io import BytesIO
from pathlib import Path
from typing import Any

from aws_lambda_powertools import Logger
from PIL import Image, UnidentifiedImageError

from timeline_media.core.config import MediaConfig
from timeline_media.core.models.errors import TransformFailure
from timeline_media.core.models.media import MediaKind, TransformedMedia, ValidatedMedia
from timeline_media.core.utils.constants import (
    NORMALIZED_IMAGE_CONTENT_TYPE,
    NORMALIZED_IMAGE_FORMAT,
    THUMBNAIL_MAX_DIMENSION,
    VIDEO_PROBE_TIMEOUT,
    VIDEO_THUMBNAIL_POSITION,
    VIDEO_THUMBNAIL_TIMEOUT,
)

logger = Logger(UTC=True)


def scaled_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Scale the longer side down to ``max_dimension``, keeping aspect ratio.

    Never upscales.
    """
    longer = max(width, height)
    if longer <= max_dimension:
        return width, height

    scale = max_dimension / longer
    if width >= height:
        return max_dimension, max(1, round(height * scale))
    return max(1, round(width * scale)), max_dimension


def _to_rgb(img: Image.Image) -> Image.Image:
    """Flatten transparency onto white; JPEG has no alpha channel."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


class MediaTransform:
    """Normalize accepted media and extract its dimensions."""

    def __init__(self, config: MediaConfig) -> None:
        self._config = config

    def apply(self, *, data: bytes, media: ValidatedMedia) -> TransformedMedia:
        """Dispatch on media kind."""
        if media.media_kind is MediaKind.IMAGE:
            return self.normalize_image(data)
        return self.probe_video(data, content_type=media.content_type)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def normalize_image(self, data: bytes) -> TransformedMedia:
        """Resize if needed and re-encode; report dimensions of the output."""
        try:
            with Image.open(BytesIO(data)) as source:
                source.load()
                original_size = source.size
                img = _to_rgb(source)

                target = scaled_size(*img.size, self._config.max_image_dimension)
                if target != img.size:
                    img = img.resize(target, Image.Resampling.LANCZOS)

                buffer = BytesIO()
                img.save(
                    buffer,
                    format=NORMALIZED_IMAGE_FORMAT,
                    quality=self._config.image_quality,
                    progressive=True,
                )

            encoded = buffer.getvalue()
            with Image.open(BytesIO(encoded)) as final:
                width, height = final.size

        except Image.DecompressionBombError as exc:
            logger.warning("Image exceeds pixel limit", extra={"error": str(exc)})
            raise TransformFailure(
                message="Image exceeds maximum pixel count",
                details={"reason": "decompression_bomb"},
            ) from exc

        except UnidentifiedImageError as exc:
            logger.warning("Cannot identify image format", extra={"error": str(exc)})
            raise TransformFailure(
                message="Failed to process image",
                details={"reason": "unidentified_image"},
            ) from exc

        except (OSError, ValueError, SyntaxError) as exc:
            logger.warning("Corrupted image data", extra={"error": str(exc)})
            raise TransformFailure(
                message="Failed to process image",
                details={"reason": "corrupt_image"},
            ) from exc

        logger.info(
            "Image normalized",
            extra={
                "original_size": f"{original_size[0]}x{original_size[1]}",
                "final_size": f"{width}x{height}",
                "bytes_in": len(data),
                "bytes_out": len(encoded),
            },
        )
        return TransformedMedia(
            data=encoded,
            content_type=NORMALIZED_IMAGE_CONTENT_TYPE,
            width=width,
            height=height,
        )

    # ------------------------------------------------------------------
    # Videos
    # ------------------------------------------------------------------

    def probe_video(self, data: bytes, *, content_type: str) -> TransformedMedia:
        """Read width, height and duration without decoding the stream.

        The bytes are passed through unchanged.
        """
        try:
            probe = self._run_ffprobe(data)
        except FileNotFoundError:
            logger.warning("ffprobe not installed; video dimensions are placeholders")
            return TransformedMedia(data=data, content_type=content_type, measured=False)

        video_stream = next(
            (s for s in probe.get("streams", []) if s.get("codec_type") == "video"),
            None,
        )
        if video_stream is None:
            logger.warning("No video track found in file")
            raise TransformFailure(
                message="No video track found in file",
                details={"reason": "no_video_stream"},
            )

        duration: float | None = None
        duration_str = probe.get("format", {}).get("duration") or video_stream.get("duration")
        if duration_str:
            try:
                duration = float(duration_str)
            except (TypeError, ValueError):
                logger.warning("Unparsable video duration", extra={"duration": duration_str})

        width = video_stream.get("width")
        height = video_stream.get("height")
        logger.info(
            "Video probed",
            extra={"width": width, "height": height, "duration": duration},
        )
        return TransformedMedia(
            data=data,
            content_type=content_type,
            width=width,
            height=height,
            duration=duration,
        )

    def _run_ffprobe(self, data: bytes) -> dict[str, Any]:
        with tempfile.NamedTemporaryFile(suffix=".video") as source:
            source.write(data)
            source.flush()

            cmd = [
                "ffprobe",
                "-v",
                "quiet",
                "-print_format",
                "json",
                "-show_format",
                "-show_streams",
                source.name,
            ]
            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=VIDEO_PROBE_TIMEOUT,
                )
            except subprocess.TimeoutExpired as exc:
                logger.warning("FFprobe timed out")
                raise TransformFailure(
                    message="Video probe timed out",
                    details={"reason": "timeout", "timeout": VIDEO_PROBE_TIMEOUT},
                ) from exc

        if result.returncode != 0:
            stderr = result.stderr.strip() if result.stderr else "Unknown error"
            logger.warning(
                "FFprobe failed to read video",
                extra={"returncode": result.returncode, "stderr": stderr},
            )
            raise TransformFailure(
                message="Failed to read video",
                details={"reason": "probe_failed", "returncode": result.returncode},
            )

        try:
            probe: dict[str, Any] = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise TransformFailure(
                message="Failed to parse video metadata",
                details={"reason": "probe_output"},
            ) from exc

        return probe

    def extract_video_thumbnail(self, data: bytes) -> bytes:
        """Grab a poster frame with FFmpeg and encode it as a bounded JPEG.

        Raises:
            TransformFailure: If FFmpeg is missing, fails or times out
        """
        with tempfile.TemporaryDirectory() as workdir:
            source = Path(workdir) / "source.video"
            frame = Path(workdir) / "frame.png"
            source.write_bytes(data)

            cmd = [
                "ffmpeg",
                "-y",
                "-v",
                "quiet",
                "-ss",
                str(VIDEO_THUMBNAIL_POSITION),
                "-i",
                str(source),
                "-frames:v",
                "1",
                str(frame),
            ]
            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    timeout=VIDEO_THUMBNAIL_TIMEOUT,
                )
            except FileNotFoundError as exc:
                raise TransformFailure(
                    message="Video thumbnails are unavailable",
                    details={"reason": "ffmpeg_missing"},
                ) from exc
            except subprocess.TimeoutExpired as exc:
                raise TransformFailure(
                    message="Thumbnail extraction timed out",
                    details={"reason": "timeout", "timeout": VIDEO_THUMBNAIL_TIMEOUT},
                ) from exc

            if result.returncode != 0 or not frame.exists():
                # clips shorter than the seek position yield no frame
                logger.warning(
                    "FFmpeg could not extract a frame",
                    extra={"returncode": result.returncode},
                )
                raise TransformFailure(
                    message="Failed to extract video thumbnail",
                    details={"reason": "no_frame", "returncode": result.returncode},
                )

            try:
                with Image.open(frame) as poster:
                    img = _to_rgb(poster)
                    img.thumbnail(
                        (THUMBNAIL_MAX_DIMENSION, THUMBNAIL_MAX_DIMENSION),
                        Image.Resampling.LANCZOS,
                    )
                    buffer = BytesIO()
                    img.save(
                        buffer,
                        format=NORMALIZED_IMAGE_FORMAT,
                        quality=self._config.image_quality,
                    )
            except (OSError, ValueError) as exc:
                raise TransformFailure(
                    message="Failed to encode video thumbnail",
                    details={"reason": "encode_failed"},
                ) from exc

        return buffer.getvalue()
