"""Staging file layout on local disk."""

from __future__ import annotations

import base64
from pathlib import Path

from recording_worker.domain.errors import StagingFileError

STAGING_FILE_EXTENSION = ".webm"


def encode_file_name_safe_base64(value: str) -> str:
    """Encode `value` as unpadded URL-safe base64 usable as a file name."""

    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii").rstrip("=")


def build_temp_file_id(user_id: str, entity_id: str, retry_count: int) -> str:
    """Derive the per-attempt staging id; unique for each (user, entity, attempt)."""

    return encode_file_name_safe_base64(f"{user_id}{entity_id}{retry_count}")


def staging_folder_path(staging_root: Path, user_id: str) -> Path:
    """Return the per-user staging directory; `user_id` must be one plain path segment."""

    if user_id in {"", ".", ".."} or Path(user_id).name != user_id or "\\" in user_id:
        raise StagingFileError(f"Invalid staging directory name: {user_id!r}")
    return Path(staging_root) / user_id


def staging_file_path(staging_root: Path, user_id: str, temp_file_id: str) -> Path:
    """Return the staging file path for one recording attempt."""

    return staging_folder_path(staging_root, user_id) / f"{temp_file_id}{STAGING_FILE_EXTENSION}"


__all__ = [
    "STAGING_FILE_EXTENSION",
    "build_temp_file_id",
    "encode_file_name_safe_base64",
    "staging_file_path",
    "staging_folder_path",
]
