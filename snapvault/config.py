# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation to prevent
accidental modification while an engine is running against it.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List
import re

# Public archive level range; mapped onto the codec's own range on export
MIN_EXPORT_LEVEL = 0
MAX_EXPORT_LEVEL = 9

DEFAULT_BRANCH = "master"
DEFAULT_AUTHOR_NAME = "snapvault"
DEFAULT_AUTHOR_EMAIL = "snapvault@localhost"
DEFAULT_DESCRIPTION = "No description provided"
DEFAULT_EXPORT_LEVEL = 5


def _validate_branch_name(branch: str) -> bool:
    """
    Validate a branch name for use under refs/heads/.

    Rules (subset of git check-ref-format):
    - Non-empty, no whitespace or control characters
    - No '..', '~', '^', ':', '?', '*', '[' or backslash
    - Must not start with '-' or '/' and must not end with '/' or '.lock'
    """
    if not branch:
        return False

    if re.search(r"[\s~^:?*\[\\\x00-\x1f\x7f]", branch):
        return False

    if ".." in branch or "//" in branch:
        return False

    if branch.startswith(("-", "/")) or branch.endswith(("/", ".lock", ".")):
        return False

    return True


def _validate_identity(name: str, email: str) -> bool:
    """Validate the fixed commit identity (no angle brackets or newlines)."""
    for value in (name, email):
        if not value or any(ch in value for ch in "<>\n"):
            return False
    return True


@dataclass(frozen=True)
class SnapVaultConfig:
    """
    Immutable configuration for one backed-up target.

    One config describes exactly one store/working-directory pair. The
    engine opened from it owns the store exclusively.
    """

    # Required: where the object store lives
    store_dir: Path

    # Required: the directory tree that is snapshotted and restored
    working_dir: Path

    # Optional .gitignore-syntax file loaded when the engine opens
    ignore_file: Path | None = None

    # Branch whose tip is "the latest backup"
    branch: str = DEFAULT_BRANCH

    # Fixed local identity recorded on every commit and reflog entry
    author_name: str = DEFAULT_AUTHOR_NAME
    author_email: str = DEFAULT_AUTHOR_EMAIL

    # Description stored when create_snapshot() receives None
    default_description: str = DEFAULT_DESCRIPTION

    # Archive level used when export is called without one
    export_level: int = DEFAULT_EXPORT_LEVEL

    # Never snapshot (or remove on restore) a store nested in the working dir
    exclude_store_dir: bool = True

    # Names skipped on every snapshot in addition to the built-in list
    extra_excludes: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Normalize paths and validate configuration after creation."""
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "store_dir", Path(self.store_dir).expanduser().resolve())
        object.__setattr__(self, "working_dir", Path(self.working_dir).expanduser().resolve())
        if self.ignore_file is not None:
            object.__setattr__(self, "ignore_file", Path(self.ignore_file).expanduser().resolve())

        errors: List[str] = []

        if self.store_dir == self.working_dir:
            from snapvault.errors import explain_working_dir_is_store

            errors.append(explain_working_dir_is_store(str(self.store_dir)))

        if not _validate_branch_name(self.branch):
            from snapvault.errors import explain_invalid_branch

            errors.append(explain_invalid_branch(self.branch))

        if not _validate_identity(self.author_name, self.author_email):
            errors.append(
                f"Invalid commit identity: {self.author_name!r} <{self.author_email!r}>"
            )

        if not MIN_EXPORT_LEVEL <= self.export_level <= MAX_EXPORT_LEVEL:
            errors.append(
                f"export_level must be between {MIN_EXPORT_LEVEL} and {MAX_EXPORT_LEVEL}, "
                f"got {self.export_level}"
            )

        for name in self.extra_excludes:
            if not isinstance(name, str) or not name or "/" in name:
                errors.append(f"Invalid extra exclude entry: {name!r}")

        # Raise all errors at once
        if errors:
            from snapvault.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def ref_name(self) -> bytes:
        """Full ref name of the tracked branch."""
        return f"refs/heads/{self.branch}".encode("utf-8")

    @property
    def identity(self) -> bytes:
        """Git identity line used for author, committer and reflog entries."""
        return f"{self.author_name} <{self.author_email}>".encode("utf-8")

    def with_updates(self, **kwargs) -> "SnapVaultConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return SnapVaultConfig(**current)
