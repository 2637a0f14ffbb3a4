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

import functools
import logging
from logging import CRITICAL, DEBUG, ERROR, INFO, WARNING

__all__ = [
    "logger",
    "set_log_level",
    "set_file_handler",
    "set_stream_handler",
    "unset_stream_handler",
    "logdata",
    "scope_logging",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

packages = [__package__]

__fmt = "%(name)s:%(levelname)s %(message)s"
__formatter = logging.Formatter(fmt=__fmt)
__stream_handler = logging.StreamHandler()
__stream_handler.setFormatter(__formatter)


def set_file_handler(file, formatter=None):
    """Send the records of all packages to `file` (truncated on open)."""
    if formatter is None:
        formatter = __formatter
    fh = logging.FileHandler(file, mode="w")
    fh.setFormatter(formatter)
    for package in packages:
        logging.getLogger(package).addHandler(fh)


def set_stream_handler(handler=None):
    """Attach `handler`, or the default stderr handler, to the package loggers."""
    for package in packages:
        logging.getLogger(package).addHandler(handler or __stream_handler)


def unset_stream_handler():
    """Detach the default stderr handler."""
    for package in packages:
        logging.getLogger(package).removeHandler(__stream_handler)


def set_log_level(level, pkg: str | None = None):
    """Set the threshold of the package loggers, or of the logger of `pkg` only.

    Args:
        level: Level name or number.
        pkg: If set, apply the log level only to the specified package, e.g.
            `hydrovessel.simulation` to only see event localization messages.
    """
    if pkg is not None:
        logging.getLogger(pkg).setLevel(level)
        return

    for package in packages:
        logging.getLogger(package).setLevel(level)


def scope_logging(func):
    """Log entry into and exit from `func` at DEBUG."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug("Entering %s", func.__qualname__)
        result = func(*args, **kwargs)
        logger.debug("Exiting %s", func.__qualname__)
        return result

    return wrapper


def _system_info(system) -> dict:
    if system is None or not getattr(system, "name", None):
        return {}
    return {"system": system.name, "system_id": system.system_id}


def logdata(*, system=None, **kwargs):
    """Attach structured fields to a log record:

    logger.info("message", **logdata(system=self, time=t))
    """
    extras = dict(kwargs)
    if system is not None:
        extras.update(_system_info(system))

    if len(extras) == 0:
        return {}

    return {"extra": {"extras": extras}}


logger = logging.getLogger(__package__)
