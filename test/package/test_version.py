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

import os
import re

import toml

from hydrovessel import __version__


def _pyproject_version() -> str:
    root = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "..")
    with open(os.path.join(root, "pyproject.toml"), "r", encoding="utf-8") as file:
        return toml.load(file)["project"]["version"]


def test_version_format():
    # major.minor.patch with an optional alphaN suffix
    assert re.fullmatch(r"\d+\.\d+\.\d+(\.alpha\d*)?", __version__), __version__


def test_version_matches_pyproject():
    assert _pyproject_version() == __version__
