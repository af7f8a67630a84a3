# refs.py -- Remote refs and the remote ref cache
# Copyright (C) 2008-2013 Jelmer Vernooij <jelmer@jelmer.uk>
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

"""Remote refs and the remote ref cache.

Refs are stored remotely as one file per ref, mirroring git's loose ref
layout: ``refs/heads/master`` holds ``"<id>\\n"``. The remote ``HEAD`` file
at the store root holds ``"ref: <target>\\n"``.
"""

from dataclasses import dataclass

from .errors import InvalidArgument, MalformedObject, RemoteFileNotFound
from .log_utils import getLogger
from .objects import ObjectID
from .storage import Storage

logger = getLogger(__name__)

HEADREF = "HEAD"
REFS_DIR = "refs"
SYMREF = "ref: "
BAD_REF_CHARS = set("\177 ~^:?*[")


def check_ref_format(refname: str) -> bool:
    """Check if a refname is correctly formatted.

    Implements the rules of git-check-ref-format[1].

    [1]
    http://www.kernel.org/pub/software/scm/git/docs/git-check-ref-format.html

    Args:
      refname: The refname to check
    Returns: True if refname is valid, False otherwise
    """
    # These could be combined into one big expression, but are listed
    # separately to parallel [1].
    if "/." in refname or refname.startswith("."):
        return False
    if "/" not in refname:
        return False
    if ".." in refname or "//" in refname:
        return False
    for c in refname:
        if ord(c) < 0o40 or c in BAD_REF_CHARS:
            return False
    if refname[-1] in "/.":
        return False
    if refname.endswith(".lock"):
        return False
    if "@{" in refname:
        return False
    if "\\" in refname:
        return False
    return True


def ref_path(name: str) -> str:
    """Return the remote path for a ref.

    Raises:
      InvalidArgument: if name is not a well-formed ref below refs/
    """
    if not name.startswith(REFS_DIR + "/") or not check_ref_format(name):
        raise InvalidArgument(f"Invalid ref name: {name}")
    return name


@dataclass(frozen=True)
class DirectReference:
    """A ref pointing at an object, e.g. refs/heads/master -> <id>."""

    oid: ObjectID
    name: str

    def serialize(self) -> str:
        """Return the line ``list`` prints for this ref."""
        return f"{self.oid} {self.name}"


@dataclass(frozen=True)
class SymbolicReference:
    """A ref pointing at another ref, e.g. HEAD -> refs/heads/master."""

    name: str
    target: str

    def serialize(self) -> str:
        """Return the line ``list`` prints for this ref."""
        return f"@{self.target} {self.name}"

    def as_file_contents(self) -> bytes:
        return (SYMREF + self.target + "\n").encode("utf-8")

    @classmethod
    def from_file_contents(cls, name: str, contents: bytes) -> "SymbolicReference":
        """Parse the contents of a symbolic ref file.

        Raises:
          MalformedObject: if the contents do not start with "ref: "
        """
        text = contents.decode("utf-8", "replace")
        if not text.startswith(SYMREF):
            raise MalformedObject(f"{name} is not a symbolic ref: {text[:60]!r}")
        return cls(name, text[len(SYMREF) :].strip())


def read_symbolic_ref(
    storage: Storage, name: str = HEADREF
) -> SymbolicReference | None:
    """Read a symbolic ref from the remote, or None if it does not exist."""
    logger.debug("Downloading symbolic ref: %s", name)
    try:
        contents = storage.download(name)
    except RemoteFileNotFound:
        return None
    return SymbolicReference.from_file_contents(name, contents)


def write_symbolic_ref(storage: Storage, name: str, target: str) -> None:
    """Point the remote symbolic ref ``name`` at ``target``."""
    logger.debug("Uploading symbolic ref: %s -> %s", name, target)
    storage.upload(name, SymbolicReference(name, target).as_file_contents())


def read_ref_value(contents: bytes) -> ObjectID:
    """Parse the contents of a remote ref file."""
    return ObjectID(contents.strip())


def ref_file_contents(oid: ObjectID) -> bytes:
    return (str(oid) + "\n").encode("ascii")


class RemoteRefCache:
    """Snapshot of the refs in the remote store.

    Filled once per session by :meth:`load`, then kept in step with the
    pushes and deletes made by this process. It is only touched from the
    protocol thread, never from transfer workers.
    """

    def __init__(self) -> None:
        self._refs: dict[str, ObjectID] = {}
        self.loaded = False
        self.was_empty = False

    def load(self, storage: Storage) -> None:
        """List and download every ref below refs/ in the remote store."""
        logger.debug("Getting remote refs...")
        refs = {}
        for path in storage.list(REFS_DIR):
            refs[path] = read_ref_value(storage.download(path))
        self._refs = refs
        if not self.loaded:
            # Only the first snapshot of a session decides about bootstrap.
            self.was_empty = not refs
            self.loaded = True
        if refs:
            logger.debug("%d refs found.", len(refs))
        else:
            logger.debug("No refs found, first push.")

    def references(self) -> list[DirectReference]:
        return [DirectReference(oid, name) for name, oid in sorted(self._refs.items())]

    def get(self, name: str) -> ObjectID | None:
        return self._refs.get(name)

    def __setitem__(self, name: str, oid: ObjectID) -> None:
        self._refs[name] = oid

    def pop(self, name: str, default: ObjectID | None = None) -> ObjectID | None:
        return self._refs.pop(name, default)

    def values(self) -> set[ObjectID]:
        return set(self._refs.values())
