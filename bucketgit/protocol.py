# protocol.py -- The git remote helper protocol
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

"""The git remote helper protocol.

Git starts ``git-remote-<scheme>`` and talks to it over stdin and stdout, one
command per line (see gitremote-helpers(7)). Typical sessions look like::

    capabilities          list
    list for-push         fetch <id> refs/heads/master
    push <src>:<dst>      <blank line>
    <blank line>

Responses go to stdout and must be flushed before the next command is read;
stderr is free for progress and diagnostics.
"""

import sys
from collections.abc import Callable
from typing import TextIO

from .errors import BucketGitError, InvalidArgument, ProtocolViolation
from .log_utils import ProgressReporter, getLogger, set_verbosity
from .objects import ObjectID
from .sync import SyncEngine

logger = getLogger(__name__)

CAPABILITIES = ["list", "push", "fetch", "option"]


class RemoteHelper:
    """Reads git's commands and runs them against a :class:`SyncEngine`."""

    def __init__(
        self,
        engine: SyncEngine,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        progress: ProgressReporter | None = None,
    ) -> None:
        self.engine = engine
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.progress = progress
        self.has_pushed = False
        self._handlers: dict[str, Callable[[list[str]], None]] = {
            "capabilities": self.handle_capabilities,
            "list": self.handle_list,
            "push": self.handle_push,
            "fetch": self.handle_fetch,
            "option": self.handle_option,
        }

    def _write(self, *lines: str) -> None:
        for line in lines:
            self.stdout.write(line + "\n")
        self.stdout.flush()

    def run(self) -> int:
        """Process commands until end of input.

        Returns: Process exit status; 0 after a clean end of input, 1 after a
            protocol violation or a fatal error
        """
        try:
            for line in self.stdin:
                self.handle_line(line.rstrip("\n"))
            if self.has_pushed:
                self.engine.finish()
        except BucketGitError as e:
            logger.error("%s", e)
            return 1
        return 0

    def handle_line(self, line: str) -> None:
        """Dispatch a single command line.

        Raises:
          ProtocolViolation: for commands the protocol does not define
        """
        if not line:
            # Terminates a batch of push or fetch commands.
            self._write("")
            return
        command, _, rest = line.partition(" ")
        handler = self._handlers.get(command)
        if handler is None:
            raise ProtocolViolation(line)
        handler(rest.split(" ") if rest else [])

    def handle_capabilities(self, args: list[str]) -> None:
        self._write(*CAPABILITIES, "")

    def handle_list(self, args: list[str]) -> None:
        # "list for-push" gets the same listing.
        if args and args != ["for-push"]:
            raise ProtocolViolation(" ".join(["list", *args]))
        lines = [ref.serialize() for ref in self.engine.list_refs()]
        self._write(*lines, "")

    def handle_push(self, args: list[str]) -> None:
        if len(args) != 1:
            raise ProtocolViolation(" ".join(["push", *args]))
        result = self.engine.push(args[0])
        self.has_pushed = True
        if not result.ok:
            logger.info("error: failed to push %s: %s", result.ref, result.error)
        self._write(result.serialize())

    def handle_fetch(self, args: list[str]) -> None:
        if len(args) < 1:
            raise ProtocolViolation("fetch")
        try:
            oid = ObjectID(args[0])
        except InvalidArgument:
            raise ProtocolViolation(" ".join(["fetch", *args])) from None
        self.engine.fetch(oid)

    def handle_option(self, args: list[str]) -> None:
        if len(args) != 2:
            self._write("unsupported")
            return
        name, value = args
        if name == "verbosity":
            try:
                verbosity = int(value)
            except ValueError:
                self._write(f"error invalid verbosity {value!r}")
                return
            set_verbosity(verbosity)
            self._write("ok")
        elif name == "progress":
            if value not in ("true", "false"):
                self._write(f"error invalid progress {value!r}")
                return
            if self.progress is not None:
                self.progress.enabled = value == "true"
            self._write("ok")
        else:
            self._write("unsupported")
