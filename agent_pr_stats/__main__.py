#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Module entrypoint for `agent_pr_stats`.

Usage:
  - `python3 -m agent_pr_stats octo/repo --from 2026-01-01 --to 2026-01-31`
"""

from __future__ import annotations

from .cli import _cli


if __name__ == "__main__":
    raise SystemExit(_cli())
