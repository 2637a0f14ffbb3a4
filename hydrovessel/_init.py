# Copyright (C) 2024 Collimator, Inc.
# SPDX-License-Identifier: AGPL-3.0-only
#
# This program is free software: you can redistribute it and/or modify it under
# the terms of the GNU Affero General Public License as published by the Free
# Software Foundation, version 3. This program is distributed in the hope that it
# will be useful, but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the GNU Affero General
# Public License for more details.  You should have received a copy of the GNU
# Affero General Public License along with this program. If not, see
# <https://www.gnu.org/licenses/>.

"""Set up logging and JAX float64 before the rest of the package is imported.

Environment variables:
    JAX_ENABLE_X64: "false" to keep JAX in single precision (not recommended).
    LOG_LEVEL: level of all hydrovessel loggers, INFO by default.
    LOG_LEVELS: per-logger levels, e.g. "hydrovessel.simulation:DEBUG,jax:WARNING".
"""

import os

# Must be set before jax is first imported.
os.environ.setdefault("JAX_ENABLE_X64", "true")

# pylint: disable=wrong-import-position
import jax  # noqa: E402

from . import logging  # noqa: E402

jax.config.update("jax_enable_x64", os.environ["JAX_ENABLE_X64"].lower() != "false")


def _parse_log_levels(levels: str) -> list[tuple[str, str]]:
    pairs = []
    for item in levels.split(","):
        pkg, _, level = item.strip().partition(":")
        if pkg and level:
            pairs.append((pkg, level.upper()))
    return pairs


logging.set_log_level(os.environ.get("LOG_LEVEL", "INFO").upper())
logging.set_stream_handler()

for _pkg, _level in _parse_log_levels(os.environ.get("LOG_LEVELS", "")):
    logging.set_log_level(_level, pkg=_pkg)
