import json
import subprocess
from io import BytesIO
from types import SimpleNamespace

import pytest
from PIL import Image

from timeline_media.core.config import MediaConfig
from timeline_media.core.models.errors import TransformFailure
from timeline_media.core.models.media import MediaKind, ValidatedMedia
from timeline_media.core.services.transform import MediaTransform, scaled_size

RUN = "timeline_media.core.services.transform.subprocess.run"


@pytest.fixture
def transform() -> MediaTransform:
    return MediaTransform(MediaConfig())


def video(size_mb: float = 0.1) -> ValidatedMedia:
    return ValidatedMedia(media_kind=MediaKind.VIDEO, extension=".mp4", size_mb=size_mb, content_type="video/mp4")


class TestScaledSize:
    @pytest.mark.parametrize(
        "size, expected",
        [
            ((4000, 3000), (2048, 1536)),
            ((3000, 4000), (1536, 2048)),
            ((3000, 3000), (2048, 2048)),
            ((800, 600), (800, 600)),
            ((2048, 10), (2048, 10)),
            ((10000, 1), (2048, 1)),
        ],
    )
    def test_bounds_longer_side(self, size, expected) -> None:
        assert scaled_size(*size, 2048) == expected


class TestNormalizeImage:
    def test_large_image_is_resized_and_reencoded(self, transform, image_factory) -> None:
        result = transform.normalize_image(image_factory(4096, 2048))

        assert (result.width, result.height) == (2048, 1024)
        assert result.content_type == "image/jpeg"
        assert result.measured is True
        with Image.open(BytesIO(result.data)) as img:
            assert img.format == "JPEG"
            assert img.size == (2048, 1024)

    def test_small_image_keeps_dimensions(self, transform, image_factory) -> None:
        result = transform.normalize_image(image_factory(320, 200, fmt="GIF", mode="P"))

        assert (result.width, result.height) == (320, 200)

    def test_transparency_is_flattened(self, transform, image_factory) -> None:
        result = transform.normalize_image(image_factory(50, 50, fmt="PNG", mode="RGBA"))

        with Image.open(BytesIO(result.data)) as img:
            assert img.mode == "RGB"

    def test_corrupt_image(self, transform) -> None:
        with pytest.raises(TransformFailure):
            transform.normalize_image(b"\x89PNG\r\n\x1a\nnot really a png")

    def test_custom_bound(self, image_factory) -> None:
        transform = MediaTransform(MediaConfig(max_image_dimension=100))

        result = transform.normalize_image(image_factory(400, 300))

        assert (result.width, result.height) == (100, 75)


class TestProbeVideo:
    def test_probe_reports_dimensions(self, transform, monkeypatch) -> None:
        probe = {
            "streams": [
                {"codec_type": "audio"},
                {"codec_type": "video", "width": 1920, "height": 1080},
            ],
            "format": {"duration": "12.48"},
        }
        monkeypatch.setattr(
            RUN,
            lambda *a, **k: SimpleNamespace(returncode=0, stdout=json.dumps(probe), stderr=""),
        )

        result = transform.apply(data=b"video-bytes", media=video())

        assert (result.width, result.height, result.duration) == (1920, 1080, 12.48)
        assert result.measured is True
        assert result.data == b"video-bytes"
        assert result.content_type == "video/mp4"

    def test_missing_ffprobe_returns_placeholder(self, transform, monkeypatch) -> None:
        def missing(*args, **kwargs):
            raise FileNotFoundError("ffprobe")

        monkeypatch.setattr(RUN, missing)

        result = transform.probe_video(b"video-bytes", content_type="video/mp4")

        assert result.measured is False
        assert result.width is None and result.height is None and result.duration is None
        assert result.data == b"video-bytes"

    def test_no_video_stream(self, transform, monkeypatch) -> None:
        probe = {"streams": [{"codec_type": "audio"}], "format": {}}
        monkeypatch.setattr(
            RUN,
            lambda *a, **k: SimpleNamespace(returncode=0, stdout=json.dumps(probe), stderr=""),
        )

        with pytest.raises(TransformFailure) as exc_info:
            transform.probe_video(b"audio-only", content_type="video/mp4")

        assert exc_info.value.details["reason"] == "no_video_stream"

    def test_probe_error_exit(self, transform, monkeypatch) -> None:
        monkeypatch.setattr(
            RUN,
            lambda *a, **k: SimpleNamespace(returncode=1, stdout="", stderr="Invalid data"),
        )

        with pytest.raises(TransformFailure):
            transform.probe_video(b"garbage", content_type="video/mp4")

    def test_probe_timeout(self, transform, monkeypatch) -> None:
        def slow(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

        monkeypatch.setattr(RUN, slow)

        with pytest.raises(TransformFailure) as exc_info:
            transform.probe_video(b"video-bytes", content_type="video/mp4")

        assert exc_info.value.details["reason"] == "timeout"


class TestVideoThumbnail:
    def test_missing_ffmpeg(self, transform, monkeypatch) -> None:
        def missing(*args, **kwargs):
            raise FileNotFoundError("ffmpeg")

        monkeypatch.setattr(RUN, missing)

        with pytest.raises(TransformFailure) as exc_info:
            transform.extract_video_thumbnail(b"video-bytes")

        assert exc_info.value.details["reason"] == "ffmpeg_missing"

    def test_frame_is_bounded_jpeg(self, transform, monkeypatch) -> None:
        def fake_ffmpeg(cmd, **kwargs):
            Image.new("RGB", (1280, 720), (10, 20, 30)).save(cmd[-1], format="PNG")
            return SimpleNamespace(returncode=0, stdout=b"", stderr=b"")

        monkeypatch.setattr(RUN, fake_ffmpeg)

        thumbnail = transform.extract_video_thumbnail(b"video-bytes")

        with Image.open(BytesIO(thumbnail)) as img:
            assert img.format == "JPEG"
            assert img.size == (480, 270)

    def test_no_frame_produced(self, transform, monkeypatch) -> None:
        monkeypatch.setattr(RUN, lambda *a, **k: SimpleNamespace(returncode=0, stdout=b"", stderr=b""))

        with pytest.raises(TransformFailure) as exc_info:
            transform.extract_video_thumbnail(b"too-short")

        assert exc_info.value.details["reason"] == "no_frame"
