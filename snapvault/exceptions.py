# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault Exceptions - Custom exceptions for the snapvault package.
"""


class SnapVaultError(Exception):
    """Base exception for all SnapVault errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(SnapVaultError):
    """Raised when configuration is invalid."""

    pass


class InvalidSnapshotIdError(SnapVaultError):
    """Raised when a snapshot id is malformed or does not resolve to a commit."""

    pass


class SnapshotNotFoundError(SnapVaultError):
    """Raised when a snapshot id is not part of the current history."""

    pass


class EmptyHistoryError(SnapVaultError):
    """Raised when an operation needs at least one snapshot and there is none."""

    pass


class CannotPurgeAllError(SnapVaultError):
    """Raised when a purge would remove every snapshot."""

    pass


class StoreIOError(SnapVaultError):
    """Raised when object store or filesystem operations fail."""

    pass


class GarbageCollectionError(StoreIOError):
    """Raised when garbage collection cannot prove which objects are reachable."""

    pass


class ArchiveIOError(SnapVaultError):
    """Raised when writing an export archive fails."""

    pass
