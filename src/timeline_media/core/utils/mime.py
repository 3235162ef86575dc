from collections.abc import Mapping

from timeline_media.core.models.media import MediaKind

MAGIC_BYTES: Mapping[bytes, str] = {
    b"\xff\xd8\xff": "image/jpeg",
    b"\x89PNG\r\n\x1a\n": "image/png",
    b"GIF87a": "image/gif",
    b"GIF89a": "image/gif",
    b"\x1a\x45\xdf\xa3": "video/webm",
}

# RIFF containers carry their form type at offset 8
RIFF_FORMS: Mapping[bytes, str] = {
    b"WEBP": "image/webp",
    b"AVI ": "video/x-msvideo",
}

# ISO base media files carry "ftyp" at offset 4 followed by a brand
QUICKTIME_BRAND = b"qt  "


def detect_mime_type(file_data: bytes) -> str | None:
    """Return the MIME type recognized from magic bytes, or None."""
    for signature, mime in MAGIC_BYTES.items():
        if file_data.startswith(signature):
            return mime

    if file_data.startswith(b"RIFF") and len(file_data) >= 12:
        return RIFF_FORMS.get(file_data[8:12])

    if file_data[4:8] == b"ftyp":
        return "video/quicktime" if file_data[8:12] == QUICKTIME_BRAND else "video/mp4"

    return None


def detect_media_kind(file_data: bytes) -> MediaKind | None:
    """Return the media kind recognized from magic bytes, or None."""
    mime = detect_mime_type(file_data)
    if mime is None:
        return None
    return MediaKind.IMAGE if mime.startswith("image/") else MediaKind.VIDEO
