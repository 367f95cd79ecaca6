# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Integrations for host applications.
"""

from snapvault.integrations.aio import AsyncEngine, open_async_engine

__all__ = ["AsyncEngine", "open_async_engine"]
