"""Local disk staging for in-flight recordings."""

from recording_worker.infrastructure.staging.chunk_writer import (
    ChunkWriteFunction,
    ChunkWriter,
    append_chunk_to_file,
    truncate_chunk_file,
)
from recording_worker.infrastructure.staging.staging_paths import (
    STAGING_FILE_EXTENSION,
    build_temp_file_id,
    encode_file_name_safe_base64,
    staging_file_path,
    staging_folder_path,
)

__all__ = [
    "STAGING_FILE_EXTENSION",
    "ChunkWriteFunction",
    "ChunkWriter",
    "append_chunk_to_file",
    "build_temp_file_id",
    "encode_file_name_safe_base64",
    "staging_file_path",
    "staging_folder_path",
    "truncate_chunk_file",
]
