# utils.py -- Test helpers for bucketgit
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

"""Test helpers for bucketgit.

:class:`MemoryGit` stands in for the local git repository. It stores real
object content under the ids git would give it, so everything the engine
uploads can be checked against :func:`bucketgit.objects.hash_object`.
"""

import binascii
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from io import BytesIO
from typing import IO, Union

from bucketgit.errors import GitCommandError, ObjectNotFound
from bucketgit.graph import S_IFGITLINK
from bucketgit.objects import EMPTY_TREE_ID, ObjectID, ObjectKind, hash_object

TREE_MODE = b"40000"
BLOB_MODE = b"100644"


class MemoryGit:
    """In-memory double for :class:`bucketgit.git.LocalGit`."""

    def __init__(self) -> None:
        self.objects: dict[ObjectID, tuple[ObjectKind, bytes]] = {}
        self.refs: dict[str, ObjectID] = {}
        self.symrefs: dict[str, str] = {}
        self.config: dict[str, str] = {}
        self.written: list[ObjectID] = []
        self._lock = threading.Lock()
        self._counter = 0

    # Building content

    def add_object(self, kind: ObjectKind, content: bytes) -> ObjectID:
        oid = hash_object(kind, content)
        with self._lock:
            self.objects[oid] = (kind, content)
        return oid

    def make_blob(self, data: bytes) -> ObjectID:
        return self.add_object(ObjectKind.BLOB, data)

    def make_tree(self, entries: Iterable[tuple[bytes, bytes, ObjectID]]) -> ObjectID:
        """Add a tree from ``(mode, name, id)`` entries."""
        content = b""
        for mode, name, oid in sorted(entries, key=lambda e: e[1]):
            content += mode + b" " + name + b"\0" + binascii.unhexlify(oid)
        return self.add_object(ObjectKind.TREE, content)

    def make_commit(
        self,
        tree: ObjectID,
        parents: Iterable[ObjectID] = (),
        message: str | None = None,
        ref: str | None = None,
    ) -> ObjectID:
        if message is None:
            self._counter += 1
            message = f"Commit {self._counter}"
        lines = [b"tree " + tree.encode("ascii")]
        for parent in parents:
            lines.append(b"parent " + parent.encode("ascii"))
        lines.append(b"author Test <test@example.com> 1700000000 +0000")
        lines.append(b"committer Test <test@example.com> 1700000000 +0000")
        content = b"\n".join(lines) + b"\n\n" + message.encode("utf-8") + b"\n"
        oid = self.add_object(ObjectKind.COMMIT, content)
        if ref is not None:
            self.refs[ref] = oid
        return oid

    def make_tag(self, target: ObjectID, name: str = "v1.0") -> ObjectID:
        kind = self.objects[target][0]
        content = (
            b"object " + target.encode("ascii") + b"\n"
            b"type " + kind.type_name + b"\n"
            b"tag " + name.encode("utf-8") + b"\n"
            b"tagger Test <test@example.com> 1700000000 +0000\n\n"
            b"Release\n"
        )
        return self.add_object(ObjectKind.TAG, content)

    def make_simple_commit(
        self, files: dict[bytes, bytes], parents: Iterable[ObjectID] = (), ref=None
    ) -> ObjectID:
        """Add a commit of a flat tree holding ``files``."""
        tree = self.make_tree(
            [(BLOB_MODE, name, self.make_blob(data)) for name, data in files.items()]
        )
        return self.make_commit(tree, parents, ref=ref)

    def set_head(self, target: str) -> None:
        self.symrefs["HEAD"] = target

    # Reading the object graph

    def _entries(self, content: bytes) -> Iterator[tuple[bytes, bytes, ObjectID]]:
        while content:
            header_end = content.index(b"\0")
            mode, name = content[:header_end].split(b" ", 1)
            sha = binascii.hexlify(content[header_end + 1 : header_end + 21])
            yield mode, name, ObjectID(sha)
            content = content[header_end + 21 :]

    def children(self, oid: ObjectID) -> list[ObjectID]:
        kind, content = self.objects[oid]
        if kind is ObjectKind.TREE:
            return [
                sha for mode, _, sha in self._entries(content) if mode != S_IFGITLINK
            ]
        if kind is ObjectKind.COMMIT:
            result = []
            for line in content.split(b"\n"):
                if not line:
                    break
                field, _, value = line.partition(b" ")
                if field in (b"tree", b"parent"):
                    result.append(ObjectID(value))
            return result
        if kind is ObjectKind.TAG:
            return [ObjectID(content.split(b"\n", 1)[0].split(b" ")[1])]
        return []

    def reachable(self, oid: ObjectID) -> set[ObjectID]:
        """Return ``oid`` and every object reachable from it that is present."""
        found: set[ObjectID] = set()
        todo = [oid]
        while todo:
            current = todo.pop()
            if current in found or current not in self.objects:
                continue
            found.add(current)
            todo.extend(self.children(current))
        return found

    # The LocalGit interface

    def _missing(self, args: list[str]) -> GitCommandError:
        return GitCommandError(args, 128, b"fatal: Not a valid object name")

    def get_config(self, name: str) -> str | None:
        return self.config.get(name)

    def resolve_ref(self, name: str) -> ObjectID:
        name = self.symrefs.get(name, name)
        if name in self.refs:
            return self.refs[name]
        try:
            oid = ObjectID(name)
        except ValueError:
            raise ObjectNotFound(name, "unknown revision") from None
        if oid not in self.objects:
            raise ObjectNotFound(name, "unknown revision")
        return oid

    def symbolic_ref(self, name: str) -> str | None:
        return self.symrefs.get(name)

    def object_exists(self, oid: ObjectID) -> bool:
        # Like git, report the empty tree as present even when it is not stored.
        return oid in self.objects or oid == EMPTY_TREE_ID

    def history_exists(self, oid: ObjectID) -> bool:
        todo = [oid]
        seen: set[ObjectID] = set()
        while todo:
            current = todo.pop()
            if current in seen:
                continue
            if current not in self.objects:
                if current == EMPTY_TREE_ID:
                    continue
                return False
            seen.add(current)
            todo.extend(self.children(current))
        return True

    def is_ancestor(self, ancestor: ObjectID, descendant: ObjectID) -> bool:
        todo = [descendant]
        seen: set[ObjectID] = set()
        while todo:
            current = todo.pop()
            if current == ancestor:
                return True
            if current in seen or current not in self.objects:
                continue
            seen.add(current)
            kind, _ = self.objects[current]
            if kind is ObjectKind.COMMIT:
                todo.extend(self.children(current)[1:])
        return False

    def object_kind(self, oid: ObjectID) -> ObjectKind:
        if oid not in self.objects:
            raise self._missing(["cat-file", "-t", oid])
        return self.objects[oid][0]

    def object_size(self, oid: ObjectID) -> int:
        if oid not in self.objects:
            raise self._missing(["cat-file", "-s", oid])
        return len(self.objects[oid][1])

    def read_object(self, oid: ObjectID, kind: ObjectKind | None = None) -> bytes:
        if oid not in self.objects:
            raise self._missing(["cat-file", "-p", oid])
        actual, content = self.objects[oid]
        if kind is None and actual is ObjectKind.TREE:
            return self.pretty_tree(content)
        return content

    def pretty_tree(self, content: bytes) -> bytes:
        lines = []
        for mode, name, sha in self._entries(content):
            if mode == TREE_MODE:
                kind = b"tree"
            elif mode == S_IFGITLINK:
                kind = b"commit"
            else:
                kind = b"blob"
            lines.append(
                mode.rjust(6, b"0") + b" " + kind + b" " + sha.encode("ascii")
                + b"\t" + name + b"\n"
            )
        return b"".join(lines)

    @contextmanager
    def open_object(self, oid: ObjectID, kind: ObjectKind) -> Iterator[IO[bytes]]:
        yield BytesIO(self.read_object(oid, kind))

    def write_object(
        self, kind: ObjectKind, content: Union[bytes, IO[bytes]]
    ) -> ObjectID:
        if not isinstance(content, bytes):
            content = content.read()
        oid = self.add_object(kind, content)
        with self._lock:
            self.written.append(oid)
        return oid

    def list_objects(self, ref: str, exclude: Iterable[ObjectID]) -> list[ObjectID]:
        wanted = self.reachable(self.resolve_ref(ref))
        for oid in exclude:
            if oid in self.objects:
                wanted -= self.reachable(oid)
        return sorted(wanted)
