# __init__.py -- Tests for bucketgit
# Copyright (C) 2026 bucketgit contributors
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# bucketgit is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""Tests for bucketgit."""

import os
import tempfile
from unittest import SkipTest, skipIf  # noqa: F401
from unittest import TestCase as _TestCase


class TestCase(_TestCase):
    """Base class for bucketgit tests.

    Points HOME at a nonexistent directory so the user's git configuration
    does not leak into tests.
    """

    def setUp(self) -> None:
        super().setUp()
        self._old_home = os.environ.get("HOME")
        os.environ["HOME"] = "/nonexistent"
        self.addCleanup(self._restore_home)

    def _restore_home(self) -> None:
        if self._old_home is not None:
            os.environ["HOME"] = self._old_home
        else:
            os.environ.pop("HOME", None)

    def make_temp_dir(self) -> str:
        """Create a temporary directory removed at the end of the test."""
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        return tmp.name
