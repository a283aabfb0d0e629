# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Framework Integrations - FastAPI plugin.
"""

from dailybackup.integrations.fastapi import (
    setup_dailybackup_plugin,
    register_dailybackup_routes,
    dailybackup_lifespan,
    verify_api_key,
)

__all__ = [
    "setup_dailybackup_plugin",
    "register_dailybackup_routes",
    "dailybackup_lifespan",
    "verify_api_key",
]
