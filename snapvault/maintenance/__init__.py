# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Maintenance - Garbage collection, repacking and ref packing.
"""

from snapvault.maintenance.collector import (
    collect_garbage,
    compute_reachable,
    expire_reflogs,
)

from snapvault.maintenance.packing import (
    repack_reachable,
    pack_refs,
)

__all__ = [
    # Collector
    "collect_garbage",
    "compute_reachable",
    "expire_reflogs",
    # Packing
    "repack_reachable",
    "pack_refs",
]
