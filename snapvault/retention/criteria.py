# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Retention criteria - the ways a history can be trimmed.
"""

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class KeepNewestCount:
    """Keep the newest `count` snapshots."""

    count: int


@dataclass(frozen=True)
class KeepNewerThan:
    """Keep snapshots taken within `duration` of now."""

    duration: timedelta


@dataclass(frozen=True)
class MaxTotalSizeBytes:
    """Drop the oldest snapshots until the store fits in `max_bytes`."""

    max_bytes: int


RetentionCriterion = KeepNewestCount | KeepNewerThan | MaxTotalSizeBytes
