# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

The hosting layer usually knows each backed-up target's directories from
its own settings; these helpers cover the common case where they come
from the process environment instead.
"""

from __future__ import annotations

import os
from pathlib import Path

from snapvault.builder import create_config
from snapvault.config import (
    DEFAULT_AUTHOR_EMAIL,
    DEFAULT_AUTHOR_NAME,
    DEFAULT_BRANCH,
    DEFAULT_EXPORT_LEVEL,
    MAX_EXPORT_LEVEL,
    MIN_EXPORT_LEVEL,
    SnapVaultConfig,
)
from snapvault.errors import (
    explain_invalid_export_level_env,
    explain_missing_store_dir_env,
    explain_missing_working_dir_env,
)
from snapvault.exceptions import ConfigurationError


def _parse_export_level(value: str | None) -> int:
    if not value:
        return DEFAULT_EXPORT_LEVEL
    try:
        level = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_export_level_env(value)) from exc
    if not MIN_EXPORT_LEVEL <= level <= MAX_EXPORT_LEVEL:
        raise ConfigurationError(explain_invalid_export_level_env(value))
    return level


def _parse_path(value: str | None) -> Path | None:
    if not value or not value.strip():
        return None
    return Path(value.strip())


def create_config_from_env(
    *,
    store_dir: str | Path | None = None,
    working_dir: str | Path | None = None,
) -> SnapVaultConfig:
    """
    Create a SnapVaultConfig from environment variables.

    Explicit arguments win over the environment.

    Required (argument or environment):
        - SNAPVAULT_STORE_DIR: Directory holding the object store
        - SNAPVAULT_WORKING_DIR: Directory tree to back up

    Optional environment variables:
        - SNAPVAULT_IGNORE_FILE: .gitignore-syntax exclusion file
        - SNAPVAULT_BRANCH: Branch tracking the latest backup (default: master)
        - SNAPVAULT_AUTHOR_NAME / SNAPVAULT_AUTHOR_EMAIL: Commit identity
        - SNAPVAULT_EXPORT_LEVEL: Default archive level 0-9 (default: 5)
    """

    store = Path(store_dir) if store_dir is not None else _parse_path(os.getenv("SNAPVAULT_STORE_DIR"))
    if store is None:
        raise ConfigurationError(explain_missing_store_dir_env())

    working = (
        Path(working_dir) if working_dir is not None else _parse_path(os.getenv("SNAPVAULT_WORKING_DIR"))
    )
    if working is None:
        raise ConfigurationError(explain_missing_working_dir_env())

    return create_config(
        store,
        working,
        ignore_file=_parse_path(os.getenv("SNAPVAULT_IGNORE_FILE")),
        branch=os.getenv("SNAPVAULT_BRANCH") or DEFAULT_BRANCH,
        author_name=os.getenv("SNAPVAULT_AUTHOR_NAME") or DEFAULT_AUTHOR_NAME,
        author_email=os.getenv("SNAPVAULT_AUTHOR_EMAIL") or DEFAULT_AUTHOR_EMAIL,
        export_level=_parse_export_level(os.getenv("SNAPVAULT_EXPORT_LEVEL")),
    )
