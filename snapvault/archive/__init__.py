# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Archive Exporter - zstd-compressed tar exports of snapshots.
"""

from snapvault.archive.compressor import (
    ARCHIVE_SUFFIX,
    clamp_level,
    zstd_level_for,
)

from snapvault.archive.exporter import (
    export_snapshot,
    export_snapshot_to_stream,
)

__all__ = [
    # Compressor
    "ARCHIVE_SUFFIX",
    "clamp_level",
    "zstd_level_for",
    # Exporter
    "export_snapshot",
    "export_snapshot_to_stream",
]
