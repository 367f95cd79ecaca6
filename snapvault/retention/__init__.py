# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Retention Engine - Purging snapshots and rewriting the surviving history.
"""

from snapvault.retention.criteria import (
    KeepNewestCount,
    KeepNewerThan,
    MaxTotalSizeBytes,
    RetentionCriterion,
)

from snapvault.retention.purge import (
    purge_snapshot,
    purge_keep_newest,
    purge_older_than,
    purge_over_size,
    apply_retention,
)

__all__ = [
    # Criteria
    "KeepNewestCount",
    "KeepNewerThan",
    "MaxTotalSizeBytes",
    "RetentionCriterion",
    # Purge
    "purge_snapshot",
    "purge_keep_newest",
    "purge_older_than",
    "purge_over_size",
    "apply_retention",
]
