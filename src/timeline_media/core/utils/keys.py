"""Object key generation.

Keys look like ``users/{account_id}/{unix_millis}_{16 hex}_{name}{ext}`` and
must stay byte-compatible with keys already written to the bucket.
"""

import os
import re
import secrets

from timeline_media.core.utils.constants import (
    OBJECT_KEY_PREFIX,
    SANITIZE_PATTERN,
    SANITIZED_NAME_MAX_LENGTH,
    THUMBNAIL_SUFFIX,
)
from timeline_media.core.utils.time import unix_millis

_SANITIZE_RE = re.compile(SANITIZE_PATTERN)


def split_filename(filename: str) -> tuple[str, str]:
    """Return (base name without extension, extension) of a filename."""
    return os.path.splitext(os.path.basename(filename))


def sanitize_base_name(base_name: str) -> str:
    """Replace disallowed characters with ``_`` and truncate.

    Length is counted in UTF-16 code units, so a character outside the
    Basic Multilingual Plane becomes two underscores.
    """
    sanitized = _SANITIZE_RE.sub(
        lambda match: "__" if ord(match.group()) > 0xFFFF else "_",
        base_name,
    )
    return sanitized[:SANITIZED_NAME_MAX_LENGTH]


def account_prefix(account_id: str) -> str:
    """Return the key prefix under which an account's objects live."""
    return f"{OBJECT_KEY_PREFIX}/{account_id}/"


def generate_object_key(*, account_id: str, original_filename: str) -> str:
    """Generate a fresh, globally unique object key for an upload."""
    base_name, extension = split_filename(original_filename)
    random_id = secrets.token_hex(8)
    return (
        f"{account_prefix(account_id)}{unix_millis()}_{random_id}_"
        f"{sanitize_base_name(base_name)}{extension}"
    )


def thumbnail_key_for(object_key: str) -> str:
    """Return the thumbnail key paired with a primary object key."""
    root, _ = os.path.splitext(object_key)
    return f"{root}{THUMBNAIL_SUFFIX}"
