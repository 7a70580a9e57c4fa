"""Content fingerprint of the subtitle set of a media item."""

import base64
import hashlib
from typing import Iterable, Optional

from common.schemas import SubtitleFile

PATH_SEPARATOR = "|"


def compute_fingerprint(subtitles: Iterable[SubtitleFile]) -> str:
    """
    Fingerprint a set of subtitle files by their paths.

    Paths are sorted first, so the result does not depend on the order the
    filesystem listed them in. Adding, removing or renaming a file changes it.

    Args:
        subtitles: Subtitle files belonging to one media item

    Returns:
        Base64 encoded SHA-256 digest of the sorted, joined paths
    """
    hash_input = PATH_SEPARATOR.join(sorted(subtitle.path for subtitle in subtitles))
    digest = hashlib.sha256(hash_input.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def fingerprint_changed(new_fingerprint: str, stored_fingerprint: Optional[str]) -> bool:
    """True unless a stored fingerprint exists and equals the new one."""
    if not stored_fingerprint:
        return True
    return new_fingerprint != stored_fingerprint
