# git.py -- Access to the local repository through the git executable
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

"""Access to the local repository through the git executable.

Git runs the remote helper with ``GIT_DIR`` pointing at the repository being
pushed from or fetched into; every command here runs against that directory.
Objects are read and written with ``git cat-file`` and ``git hash-object``, so
whatever storage format the local repository uses is handled by git.
"""

import os
import shutil
import subprocess
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from typing import IO, Union

from .errors import GitCommandError, ObjectNotFound
from .log_utils import getLogger
from .objects import ObjectID, ObjectKind

logger = getLogger(__name__)

_DEFAULT_GIT = "git"


class LocalGit:
    """The local git repository, driven through the git executable."""

    def __init__(
        self,
        git_dir: str | None = None,
        cwd: str | None = None,
        git_path: str = _DEFAULT_GIT,
    ) -> None:
        """Initialize LocalGit.

        Args:
          git_dir: Repository directory; defaults to $GIT_DIR, then to git's
            own discovery from ``cwd``
          cwd: Working directory for git processes
          git_path: Path to the git executable
        """
        if git_dir is None:
            git_dir = os.environ.get("GIT_DIR")
        self.git_dir = git_dir
        self.cwd = cwd
        self.git_path = git_path

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.git_dir!r})"

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        if self.git_dir is not None:
            env["GIT_DIR"] = self.git_dir
        return env

    def _popen(self, args: Sequence[str], **popen_kwargs) -> subprocess.Popen:
        logger.debug("Running git %s", " ".join(args))
        try:
            return subprocess.Popen(
                [self.git_path, *args], env=self._env(), cwd=self.cwd, **popen_kwargs
            )
        except OSError as e:
            raise GitCommandError(args, -1, str(e).encode()) from e

    def run(
        self,
        args: Sequence[str],
        input: bytes | None = None,
        ok_returncodes: Iterable[int] = (0,),
    ) -> tuple[int, bytes]:
        """Run a git command and capture its output.

        Args:
          args: Arguments to git
          input: Data to send to stdin
          ok_returncodes: Exit statuses that are not errors
        Returns: Tuple with exit status and stdout contents
        Raises:
          GitCommandError: if git exits with any other status
        """
        p = self._popen(
            args,
            stdin=subprocess.PIPE if input is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        stdout, stderr = p.communicate(input=input)
        if p.returncode not in ok_returncodes:
            raise GitCommandError(args, p.returncode, stderr)
        return p.returncode, stdout

    def _succeeds(self, args: Sequence[str]) -> bool:
        p = self._popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        return p.wait() == 0

    def _first_line(self, args: Sequence[str]) -> str:
        _, stdout = self.run(args)
        return stdout.decode("utf-8").split("\n", 1)[0].strip()

    def get_config(self, name: str) -> str | None:
        """Return a git configuration value, or None if it is not set."""
        returncode, stdout = self.run(["config", "--get", name], ok_returncodes=(0, 1))
        if returncode == 1:
            return None
        return stdout.decode("utf-8").strip()

    def resolve_ref(self, name: str) -> ObjectID:
        """Return the id a ref or revision currently points at.

        Raises:
          ObjectNotFound: if the name does not resolve
        """
        returncode, stdout = self.run(
            ["rev-parse", "--verify", "--quiet", name], ok_returncodes=(0, 1)
        )
        if returncode != 0:
            raise ObjectNotFound(name, "unknown revision")
        return ObjectID(stdout.strip())

    def symbolic_ref(self, name: str) -> str | None:
        """Return the ref a symbolic ref points at, or None if it is detached."""
        returncode, stdout = self.run(
            ["symbolic-ref", "--quiet", name], ok_returncodes=(0, 1)
        )
        if returncode != 0:
            return None
        return stdout.decode("utf-8").strip()

    def object_exists(self, oid: ObjectID) -> bool:
        return self._succeeds(["cat-file", "-e", str(oid)])

    def history_exists(self, oid: ObjectID) -> bool:
        """Check that the object and everything reachable from it is present."""
        return self._succeeds(["rev-list", "--objects", str(oid)])

    def is_ancestor(self, ancestor: ObjectID, descendant: ObjectID) -> bool:
        """Return whether ``descendant`` can be fast-forwarded from ``ancestor``."""
        returncode, _ = self.run(
            ["merge-base", "--is-ancestor", str(ancestor), str(descendant)],
            ok_returncodes=(0, 1),
        )
        return returncode == 0

    def object_kind(self, oid: ObjectID) -> ObjectKind:
        return ObjectKind.from_name(self._first_line(["cat-file", "-t", str(oid)]))

    def object_size(self, oid: ObjectID) -> int:
        return int(self._first_line(["cat-file", "-s", str(oid)]))

    def read_object(self, oid: ObjectID, kind: ObjectKind | None = None) -> bytes:
        """Return the content of an object.

        Args:
          oid: Id of the object
          kind: Kind of the object; if None the pretty-printed form is
            returned instead of the raw content
        """
        _, stdout = self.run(
            ["cat-file", kind.value if kind is not None else "-p", str(oid)]
        )
        return stdout

    @contextmanager
    def open_object(self, oid: ObjectID, kind: ObjectKind) -> Iterator[IO[bytes]]:
        """Stream the raw content of an object without buffering it."""
        args = ["cat-file", kind.value, str(oid)]
        p = self._popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        assert p.stdout is not None
        try:
            yield p.stdout
            # Drain so git is not killed by SIGPIPE if the reader stopped early.
            while p.stdout.read(64 * 1024):
                pass
        finally:
            p.stdout.close()
            stderr = p.stderr.read() if p.stderr is not None else b""
            returncode = p.wait()
        if returncode != 0:
            raise GitCommandError(args, returncode, stderr)

    def write_object(
        self, kind: ObjectKind, content: Union[bytes, IO[bytes]]
    ) -> ObjectID:
        """Write an object to the local repository and return its id."""
        args = ["hash-object", "-w", "--stdin", "-t", kind.value]
        if isinstance(content, bytes):
            _, stdout = self.run(args, input=content)
            return ObjectID(stdout.strip())
        p = self._popen(
            args, stdin=subprocess.PIPE, stdout=subprocess.PIPE, stderr=subprocess.PIPE
        )
        assert p.stdin is not None and p.stdout is not None and p.stderr is not None
        try:
            shutil.copyfileobj(content, p.stdin)
            p.stdin.close()
        except BrokenPipeError:
            # git gave up early; its exit status and stderr say why.
            pass
        stdout = p.stdout.read()
        stderr = p.stderr.read()
        p.stdout.close()
        p.stderr.close()
        if p.wait() != 0:
            raise GitCommandError(args, p.returncode, stderr)
        return ObjectID(stdout.strip())

    def list_objects(self, ref: str, exclude: Iterable[ObjectID]) -> list[ObjectID]:
        """Return the objects reachable from ref minus those reachable from exclude.

        Excluded ids that are not present locally are ignored; git cannot
        walk history it does not have.
        """
        args = ["rev-list", "--objects", ref]
        for oid in sorted(exclude):
            if self.object_exists(oid):
                args.append("^" + str(oid))
        _, stdout = self.run(args)
        objects = []
        for line in stdout.decode("utf-8", "surrogateescape").splitlines():
            if line:
                objects.append(ObjectID(line.split(" ", 1)[0]))
        return objects
