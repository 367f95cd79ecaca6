# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault Ignore Matcher - .gitignore-syntax exclusion rules.

A ruleset combines a fixed list of always-excluded names (VCS metadata,
OS junk, editor swap/temp files, __pycache__) with patterns loaded from an
optional ignore file. Pattern precedence follows git: the last matching
pattern wins, so ``!pattern`` re-includes a path excluded earlier.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Iterable, List, Tuple

import pathspec
import structlog

logger = structlog.get_logger()

# Always excluded, matched against the entry name at any depth
BUILTIN_EXCLUDED_NAMES: FrozenSet[str] = frozenset(
    {
        ".git",
        ".DS_Store",
        "Thumbs.db",
        "desktop.ini",
        ".Spotlight-V100",
        ".Trashes",
        "ehthumbs.db",
        "ehthumbs_vista.db",
        "$RECYCLE.BIN",
        "__pycache__",
    }
)

# Office lock files (~$report.docx)
BUILTIN_EXCLUDED_PREFIXES: Tuple[str, ...] = ("~$",)

# Temp, vim swap and editor backup files
BUILTIN_EXCLUDED_SUFFIXES: Tuple[str, ...] = (".tmp", ".swp", "~")


def is_builtin_excluded(name: str) -> bool:
    """Check an entry name against the built-in exclusion list."""
    if name in BUILTIN_EXCLUDED_NAMES:
        return True
    if name.startswith(BUILTIN_EXCLUDED_PREFIXES):
        return True
    return name.endswith(BUILTIN_EXCLUDED_SUFFIXES)


@dataclass(frozen=True)
class IgnoreRuleset:
    """
    Compiled exclusion rules. Read-only once built.

    Attributes:
        patterns: Accepted pattern lines, in file order
        rejected: Lines that failed to compile and were skipped
        source: Ignore file the patterns came from, if any
        extra_names: Additional exact names excluded at any depth
    """

    patterns: Tuple[str, ...] = ()
    rejected: Tuple[str, ...] = ()
    source: Path | None = None
    extra_names: FrozenSet[str] = frozenset()
    spec: pathspec.GitIgnoreSpec = field(
        default_factory=lambda: pathspec.GitIgnoreSpec.from_lines([]),
        compare=False,
        repr=False,
    )

    def is_excluded(self, path: str, is_directory: bool) -> bool:
        """
        Check whether a path relative to the working directory is excluded.

        Args:
            path: Relative path using '/' separators
            is_directory: Whether the path names a directory

        Returns:
            True if the entry must not be snapshotted
        """
        path = path.strip("/")
        if not path:
            return False

        name = path.rsplit("/", 1)[-1]
        if is_builtin_excluded(name) or name in self.extra_names:
            return True

        if not self.patterns:
            return False

        # Directory-only patterns (build/) match only with a trailing slash
        candidate = path + "/" if is_directory else path
        return self.spec.match_file(candidate)


def _split_pattern_lines(lines: Iterable[str]) -> Tuple[List[str], List[str]]:
    accepted: List[str] = []
    rejected: List[str] = []

    for raw in lines:
        line = raw.rstrip("\r\n")
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        try:
            pathspec.GitIgnoreSpec.from_lines([line])
        except (ValueError, TypeError) as e:
            rejected.append(line)
            logger.warning("ignore_pattern_rejected", pattern=line, error=str(e))
            continue
        accepted.append(line)

    return accepted, rejected


def compile_patterns(
    lines: Iterable[str],
    source: Path | None = None,
    extra_names: Iterable[str] = (),
) -> IgnoreRuleset:
    """
    Compile pattern lines into a ruleset.

    Malformed lines are skipped with a warning; the rest still apply.
    """
    accepted, rejected = _split_pattern_lines(lines)
    return IgnoreRuleset(
        patterns=tuple(accepted),
        rejected=tuple(rejected),
        source=source,
        extra_names=frozenset(extra_names),
        spec=pathspec.GitIgnoreSpec.from_lines(accepted),
    )


def compile_ruleset(
    ignore_file: Path | None,
    extra_names: Iterable[str] = (),
) -> IgnoreRuleset:
    """
    Build a ruleset from an optional ignore file plus the built-ins.

    A missing or unset file is not an error: the ruleset then holds only
    the built-in exclusions.
    """
    if ignore_file is None:
        return compile_patterns([], extra_names=extra_names)

    try:
        text = ignore_file.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        logger.debug("ignore_file_missing", path=str(ignore_file))
        return compile_patterns([], source=ignore_file, extra_names=extra_names)
    except OSError as e:
        logger.warning("ignore_file_unreadable", path=str(ignore_file), error=str(e))
        return compile_patterns([], source=ignore_file, extra_names=extra_names)

    ruleset = compile_patterns(text.splitlines(), source=ignore_file, extra_names=extra_names)
    logger.info(
        "ignore_rules_loaded",
        path=str(ignore_file),
        patterns=len(ruleset.patterns),
        rejected=len(ruleset.rejected),
    )
    return ruleset
