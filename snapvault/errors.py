# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for SnapVault.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_missing_store_dir_env() -> str:
    """
    Explain that the store directory environment variable is missing.
    """

    return (
        "Backup store directory is not configured. "
        "Set the SNAPVAULT_STORE_DIR environment variable or pass store_dir=... to create_config()."
    )


def explain_missing_working_dir_env() -> str:
    """
    Explain that the working directory environment variable is missing.
    """

    return (
        "Working directory is not configured. "
        "Set the SNAPVAULT_WORKING_DIR environment variable or pass working_dir=... to create_config()."
    )


def explain_invalid_export_level_env(value: str | None) -> str:
    """
    Explain that SNAPVAULT_EXPORT_LEVEL is invalid.
    """

    return (
        f"Invalid SNAPVAULT_EXPORT_LEVEL value: {value!r}. "
        "It must be an integer compression level between 0 and 9."
    )


def explain_invalid_branch(value: str | None) -> str:
    """
    Explain that the tracked branch name cannot be used as a ref name.
    """

    return (
        f"Invalid branch name: {value!r}. "
        "Use a plain name such as 'master' without spaces, '..', or a leading '-' or '/'."
    )


def explain_working_dir_is_store(path: str) -> str:
    """
    Explain that the working directory and the store directory are the same.
    """

    return (
        f"working_dir and store_dir both resolve to {path}. "
        "The store must live in its own directory (it may be nested inside the working directory)."
    )
