# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for configuration, the functional builder and environment helpers.
"""

from pathlib import Path

import pytest

from snapvault.config import SnapVaultConfig
from snapvault.exceptions import ConfigurationError


# ============================================================================
# Test 1: Config Validation
# ============================================================================


def test_config_defaults(store_dir: Path, working_dir: Path):
    config = SnapVaultConfig(store_dir=store_dir, working_dir=working_dir)

    assert config.store_dir == store_dir.resolve()
    assert config.working_dir == working_dir.resolve()
    assert config.ignore_file is None
    assert config.branch == "master"
    assert config.ref_name == b"refs/heads/master"
    assert config.identity == b"snapvault <snapvault@localhost>"
    assert config.export_level == 5
    assert config.exclude_store_dir is True


def test_config_validation_collects_all_errors(temp_dir: Path):
    with pytest.raises(ConfigurationError) as exc_info:
        SnapVaultConfig(
            store_dir=temp_dir,
            working_dir=temp_dir,
            branch="bad..branch",
            author_name="Name <with brackets>",
            export_level=12,
            extra_excludes=["nested/name"],
        )

    errors = exc_info.value.details["errors"]
    assert len(errors) == 5
    message = str(exc_info.value)
    assert "both resolve to" in message
    assert "Invalid branch name" in message
    assert "Invalid commit identity" in message
    assert "export_level" in message
    assert "Invalid extra exclude" in message


@pytest.mark.parametrize("branch", ["", "-x", "/x", "x/", "a b", "x.lock", "a~1", "a:b"])
def test_invalid_branch_names(store_dir: Path, working_dir: Path, branch: str):
    with pytest.raises(ConfigurationError):
        SnapVaultConfig(store_dir=store_dir, working_dir=working_dir, branch=branch)


@pytest.mark.parametrize("branch", ["main", "backups/daily", "release-1.0"])
def test_valid_branch_names(store_dir: Path, working_dir: Path, branch: str):
    config = SnapVaultConfig(store_dir=store_dir, working_dir=working_dir, branch=branch)
    assert config.ref_name == f"refs/heads/{branch}".encode()


def test_config_is_frozen(test_config):
    with pytest.raises(AttributeError):
        test_config.branch = "other"


def test_with_updates_returns_new_validated_config(test_config, temp_dir: Path):
    updated = test_config.with_updates(branch="main", ignore_file=temp_dir / ".ignore")

    assert updated is not test_config
    assert updated.branch == "main"
    assert updated.ignore_file == (temp_dir / ".ignore").resolve()
    assert test_config.branch == "master"
    assert test_config.ignore_file is None

    with pytest.raises(ConfigurationError):
        test_config.with_updates(export_level=-1)


# ============================================================================
# Test 2: Builder
# ============================================================================


def test_builder_fluent_api(store_dir: Path, working_dir: Path):
    from snapvault.builder import (
        build_config,
        create_empty_config,
        exclude_names,
        with_branch,
        with_default_description,
        with_directories,
        with_export_level,
        with_identity,
        with_ignore_file,
    )

    config = build_config(
        with_export_level(
            exclude_names(
                with_default_description(
                    with_identity(
                        with_branch(
                            with_ignore_file(
                                with_directories(create_empty_config(), store_dir, working_dir),
                                working_dir / ".backupignore",
                            ),
                            "backups",
                        ),
                        "Backup Bot",
                        "bot@example.com",
                    ),
                    "nightly",
                ),
                ["node_modules", ".cache"],
            ),
            9,
        )
    )

    assert config.store_dir == store_dir.resolve()
    assert config.ignore_file == (working_dir / ".backupignore").resolve()
    assert config.branch == "backups"
    assert config.identity == b"Backup Bot <bot@example.com>"
    assert config.default_description == "nightly"
    assert config.extra_excludes == ["node_modules", ".cache"]
    assert config.export_level == 9


def test_builder_pipe_and_steps(store_dir: Path, working_dir: Path):
    from snapvault.builder import (
        build_config,
        build_from_steps,
        create_empty_config,
        pipe,
        with_branch,
        with_directories,
    )

    steps = (
        lambda c: with_directories(c, store_dir, working_dir),
        lambda c: with_branch(c, "main"),
    )

    piped = build_config(pipe(*steps)(create_empty_config()))
    stepped = build_from_steps(*steps)

    assert piped == stepped
    assert piped.branch == "main"


def test_builder_does_not_mutate_input(store_dir: Path, working_dir: Path):
    from snapvault.builder import create_empty_config, exclude_names, with_directories

    base = with_directories(create_empty_config(), store_dir, working_dir)
    exclude_names(base, ["node_modules"])

    assert base["extra_excludes"] == []


def test_build_config_requires_directories():
    from snapvault.builder import build_config, create_empty_config

    with pytest.raises(ConfigurationError) as exc_info:
        build_config(create_empty_config())

    assert exc_info.value.details["missing"] == ["store_dir", "working_dir"]


def test_with_export_level_rejects_out_of_range():
    from snapvault.builder import create_empty_config, with_export_level

    with pytest.raises(ValueError):
        with_export_level(create_empty_config(), 10)
    with pytest.raises(ValueError):
        with_export_level(create_empty_config(), -1)


def test_include_store_dir_warns(capsys, store_dir: Path, working_dir: Path):
    from snapvault.builder import build_from_steps, include_store_dir, with_directories

    config = build_from_steps(
        lambda c: with_directories(c, store_dir, working_dir),
        include_store_dir,
    )

    assert config.exclude_store_dir is False
    assert "WARNING" in capsys.readouterr().err


# ============================================================================
# Test 3: Environment Configuration
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "SNAPVAULT_STORE_DIR",
        "SNAPVAULT_WORKING_DIR",
        "SNAPVAULT_IGNORE_FILE",
        "SNAPVAULT_BRANCH",
        "SNAPVAULT_AUTHOR_NAME",
        "SNAPVAULT_AUTHOR_EMAIL",
        "SNAPVAULT_EXPORT_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_config_from_env(clean_env, store_dir: Path, working_dir: Path):
    from snapvault.env import create_config_from_env

    clean_env.setenv("SNAPVAULT_STORE_DIR", str(store_dir))
    clean_env.setenv("SNAPVAULT_WORKING_DIR", str(working_dir))
    clean_env.setenv("SNAPVAULT_IGNORE_FILE", str(working_dir / ".backupignore"))
    clean_env.setenv("SNAPVAULT_BRANCH", "main")
    clean_env.setenv("SNAPVAULT_AUTHOR_NAME", "Env Bot")
    clean_env.setenv("SNAPVAULT_EXPORT_LEVEL", "3")

    config = create_config_from_env()

    assert config.store_dir == store_dir.resolve()
    assert config.working_dir == working_dir.resolve()
    assert config.ignore_file == (working_dir / ".backupignore").resolve()
    assert config.branch == "main"
    assert config.author_name == "Env Bot"
    assert config.author_email == "snapvault@localhost"
    assert config.export_level == 3


def test_config_from_env_arguments_win(clean_env, temp_dir: Path, store_dir: Path, working_dir: Path):
    from snapvault.env import create_config_from_env

    clean_env.setenv("SNAPVAULT_STORE_DIR", str(temp_dir / "elsewhere"))

    config = create_config_from_env(store_dir=store_dir, working_dir=working_dir)

    assert config.store_dir == store_dir.resolve()


def test_config_from_env_missing_store(clean_env, working_dir: Path):
    from snapvault.env import create_config_from_env

    clean_env.setenv("SNAPVAULT_WORKING_DIR", str(working_dir))

    with pytest.raises(ConfigurationError) as exc_info:
        create_config_from_env()

    assert "SNAPVAULT_STORE_DIR" in str(exc_info.value)


def test_config_from_env_missing_working_dir(clean_env, store_dir: Path):
    from snapvault.env import create_config_from_env

    clean_env.setenv("SNAPVAULT_STORE_DIR", str(store_dir))
    clean_env.setenv("SNAPVAULT_WORKING_DIR", "   ")

    with pytest.raises(ConfigurationError) as exc_info:
        create_config_from_env()

    assert "SNAPVAULT_WORKING_DIR" in str(exc_info.value)


@pytest.mark.parametrize("value", ["abc", "12", "-1"])
def test_config_from_env_invalid_level(clean_env, store_dir: Path, working_dir: Path, value: str):
    from snapvault.env import create_config_from_env

    clean_env.setenv("SNAPVAULT_EXPORT_LEVEL", value)

    with pytest.raises(ConfigurationError) as exc_info:
        create_config_from_env(store_dir=store_dir, working_dir=working_dir)

    assert "SNAPVAULT_EXPORT_LEVEL" in str(exc_info.value)
