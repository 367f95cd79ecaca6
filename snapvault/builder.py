# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault Builder - Functional builder pattern for configuration.

This module provides pure functions for building SnapVaultConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict, List

from snapvault.config import (
    DEFAULT_AUTHOR_EMAIL,
    DEFAULT_AUTHOR_NAME,
    DEFAULT_BRANCH,
    DEFAULT_DESCRIPTION,
    DEFAULT_EXPORT_LEVEL,
    MAX_EXPORT_LEVEL,
    MIN_EXPORT_LEVEL,
    SnapVaultConfig,
)


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial empty configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "store_dir": None,
        "working_dir": None,
        "ignore_file": None,
        "branch": DEFAULT_BRANCH,
        "author_name": DEFAULT_AUTHOR_NAME,
        "author_email": DEFAULT_AUTHOR_EMAIL,
        "default_description": DEFAULT_DESCRIPTION,
        "export_level": DEFAULT_EXPORT_LEVEL,
        "exclude_store_dir": True,
        "extra_excludes": [],
    }


def with_directories(
    config: ConfigDict,
    store_dir: Path | str,
    working_dir: Path | str,
) -> ConfigDict:
    """
    Set the store and working directories.

    Args:
        config: Current configuration dictionary
        store_dir: Directory holding the object store
        working_dir: Directory tree to back up

    Returns:
        New configuration dictionary with both directories set
    """
    return {**config, "store_dir": Path(store_dir), "working_dir": Path(working_dir)}


def with_ignore_file(config: ConfigDict, ignore_file: Path | str) -> ConfigDict:
    """
    Set the .gitignore-syntax file loaded when the engine opens.

    The file does not need to exist yet.
    """
    return {**config, "ignore_file": Path(ignore_file)}


def with_branch(config: ConfigDict, branch: str) -> ConfigDict:
    """Set the branch whose tip is the latest backup."""
    return {**config, "branch": branch}


def with_identity(config: ConfigDict, name: str, email: str) -> ConfigDict:
    """
    Set the fixed identity recorded on commits and reflog entries.

    Args:
        config: Current configuration dictionary
        name: Author/committer name
        email: Author/committer email

    Returns:
        New configuration dictionary with identity set
    """
    return {**config, "author_name": name, "author_email": email}


def with_default_description(config: ConfigDict, description: str) -> ConfigDict:
    """Set the description stored when a snapshot is created without one."""
    return {**config, "default_description": description}


def with_export_level(config: ConfigDict, level: int) -> ConfigDict:
    """
    Set the default archive compression level.

    Args:
        config: Current configuration dictionary
        level: Compression level (0-9)

    Returns:
        New configuration dictionary with export level set
    """
    if not MIN_EXPORT_LEVEL <= level <= MAX_EXPORT_LEVEL:
        raise ValueError(
            f"export level must be {MIN_EXPORT_LEVEL}-{MAX_EXPORT_LEVEL}, got {level}"
        )
    return {**config, "export_level": level}


def exclude_names(config: ConfigDict, names: List[str]) -> ConfigDict:
    """
    Add file or directory names skipped on every snapshot.

    Args:
        config: Current configuration dictionary
        names: Exact entry names (e.g., ['node_modules', '.cache'])

    Returns:
        New configuration dictionary with names added
    """
    new_names = list(config["extra_excludes"]) + names
    return {**config, "extra_excludes": new_names}


def include_store_dir(config: ConfigDict) -> ConfigDict:
    """
    Stop protecting a store nested inside the working directory.

    WARNING: snapshots will then contain the store itself and restore may
    delete it. Use only when the store lives outside the working directory.
    """
    import sys

    print(
        "⚠️  WARNING: Nested store directory is no longer excluded from snapshots.",
        file=sys.stderr,
    )
    return {**config, "exclude_store_dir": False}


def build_config(config_dict: ConfigDict) -> SnapVaultConfig:
    """
    Validate and build an immutable SnapVaultConfig from a configuration dictionary.

    Args:
        config_dict: Configuration dictionary built using builder functions

    Returns:
        Validated, immutable SnapVaultConfig instance

    Raises:
        ConfigurationError: If validation fails
    """
    missing = [key for key in ("store_dir", "working_dir") if not config_dict.get(key)]
    if missing:
        from snapvault.exceptions import ConfigurationError

        raise ConfigurationError(
            "store_dir and working_dir are required",
            details={"missing": missing},
        )

    return SnapVaultConfig(**config_dict)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder functions into a single function.

    This allows a more readable pipeline style:
        config = pipe(
            lambda c: with_directories(c, "./store", "./data"),
            lambda c: with_ignore_file(c, "./data/.backupignore"),
        )(create_empty_config())
    """

    def composed(config: ConfigDict) -> ConfigDict:
        result = config
        for func in funcs:
            result = func(result)
        return result

    return composed


def build_from_steps(*steps: BuilderFunc) -> SnapVaultConfig:
    """
    Build config by applying a sequence of builder functions.

    This is a convenience function that combines pipe() and build_config().
    """
    config = create_empty_config()
    for step in steps:
        config = step(config)
    return build_config(config)


def create_config(
    store_dir: str | Path,
    working_dir: str | Path,
    *,
    ignore_file: str | Path | None = None,
    branch: str = DEFAULT_BRANCH,
    author_name: str = DEFAULT_AUTHOR_NAME,
    author_email: str = DEFAULT_AUTHOR_EMAIL,
    default_description: str = DEFAULT_DESCRIPTION,
    export_level: int = DEFAULT_EXPORT_LEVEL,
    **kwargs: Any,
) -> SnapVaultConfig:
    """
    Create SnapVault configuration from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Args:
        store_dir: Directory holding the object store (created if missing)
        working_dir: Directory tree to back up and restore into
        ignore_file: Optional .gitignore-syntax file (may not exist yet)
        branch: Branch tracking the latest backup (default: "master")
        author_name: Identity name recorded on commits
        author_email: Identity email recorded on commits
        default_description: Description used when none is given
        export_level: Default archive compression level, 0-9 (default: 5)
        **kwargs: Additional configuration options

    Returns:
        Validated, immutable SnapVaultConfig
    """
    return SnapVaultConfig(
        store_dir=Path(store_dir),
        working_dir=Path(working_dir),
        ignore_file=Path(ignore_file) if ignore_file is not None else None,
        branch=branch,
        author_name=author_name,
        author_email=author_email,
        default_description=default_description,
        export_level=export_level,
        **kwargs,
    )
