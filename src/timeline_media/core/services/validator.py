"""Classification and size checks for incoming media."""

import os

from aws_lambda_powertools import Logger

from timeline_media.core.config import MediaConfig
from timeline_media.core.models.errors import FileTooLarge, UnsupportedMediaType
from timeline_media.core.models.media import MediaKind, ValidatedMedia
from timeline_media.core.utils.constants import bytes_to_mb
from timeline_media.core.utils.mime import detect_media_kind

logger = Logger(UTC=True)


class Validator:
    """Pure function of its inputs and the configured limit table."""

    def __init__(self, config: MediaConfig) -> None:
        self._config = config

    def classify(self, filename: str) -> tuple[MediaKind, str]:
        """Return (media kind, lower-cased extension) for a filename.

        Raises:
            UnsupportedMediaType: If the extension is not configured
        """
        extension = os.path.splitext(filename)[1].lower()

        if extension in self._config.image_extensions:
            return MediaKind.IMAGE, extension
        if extension in self._config.video_extensions:
            return MediaKind.VIDEO, extension

        logger.warning("Unsupported file extension", extra={"extension": extension})
        raise UnsupportedMediaType(
            message=f"Unsupported file type: {extension or 'no extension'}",
            details={
                "extension": extension,
                "allowed_extensions": sorted(
                    self._config.image_extensions | self._config.video_extensions
                ),
            },
        )

    def validate(self, *, data: bytes, filename: str, content_type: str) -> ValidatedMedia:
        """Classify a file and enforce the size ceiling for its kind.

        Raises:
            UnsupportedMediaType: If the file is empty, has an unknown
                                  extension, or its content is the other kind
            FileTooLarge: If the file exceeds the ceiling for its kind
        """
        media_kind, extension = self.classify(filename)

        if not data:
            raise UnsupportedMediaType(
                message="File is empty",
                details={"filename": filename},
            )

        sniffed = detect_media_kind(data)
        if sniffed is not None and sniffed != media_kind:
            logger.warning(
                "File content does not match extension",
                extra={"extension": extension, "detected": sniffed.value},
            )
            raise UnsupportedMediaType(
                message=f"File content is {sniffed.value}, but extension {extension} is {media_kind.value}",
                details={"extension": extension, "detected_kind": sniffed.value},
            )

        size_mb = bytes_to_mb(len(data))
        limit_mb = self._config.max_size_mb[media_kind]

        if size_mb > limit_mb:
            logger.warning(
                "File exceeds size limit",
                extra={"media_kind": media_kind.value, "size_mb": size_mb, "limit_mb": limit_mb},
            )
            raise FileTooLarge(
                message=f"File too large. Max size for {media_kind.value}: {limit_mb:g}MB",
                details={
                    "media_kind": media_kind.value,
                    "size_mb": size_mb,
                    "limit_mb": limit_mb,
                },
            )

        return ValidatedMedia(
            media_kind=media_kind,
            extension=extension,
            size_mb=size_mb,
            content_type=content_type or "application/octet-stream",
        )
