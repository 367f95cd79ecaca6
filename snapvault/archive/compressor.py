# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault Compressor - zstd stream compression for export archives.

Public levels run 0-9 and are mapped onto zstd's 1-19 range.
"""

from typing import BinaryIO

import zstandard as zstd

from snapvault.config import MAX_EXPORT_LEVEL, MIN_EXPORT_LEVEL

ARCHIVE_SUFFIX = ".tar.zst"


def clamp_level(level: int) -> int:
    """Clamp a public compression level into 0-9."""
    return max(MIN_EXPORT_LEVEL, min(MAX_EXPORT_LEVEL, int(level)))


def zstd_level_for(level: int) -> int:
    """
    Map a public level (0-9, clamped) to a zstd level.

    0 -> 1 (fastest), 9 -> 19 (smallest).
    """
    return 1 + 2 * clamp_level(level)


def open_compressed_writer(writer: BinaryIO, level: int) -> zstd.ZstdCompressionWriter:
    """
    Wrap writer in a zstd compressing stream.

    Closing the returned stream ends the zstd frame but leaves writer open.
    """
    compressor = zstd.ZstdCompressor(level=zstd_level_for(level))
    return compressor.stream_writer(writer, closefd=False)

