# graph.py -- Find the objects an object refers to
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

"""Find the objects an object refers to.

The edges of the object graph are read from the pretty-printed form of an
object (what ``git cat-file -p`` prints): commit and tag headers are the same
as the raw object, trees are listed one entry per line as
``<mode> <kind> <id>\\t<name>``.
"""

from typing import Protocol

from .errors import MalformedObject, UnsupportedObjectKind
from .objects import ObjectID, ObjectKind

# Mode of a tree entry that points at a commit in another repository.
S_IFGITLINK = b"160000"

_TREE_HEADER = b"tree"
_PARENT_HEADER = b"parent"
_OBJECT_HEADER = b"object"


class ObjectReader(Protocol):
    """The part of the local git repository the resolver needs."""

    def object_kind(self, oid: ObjectID) -> ObjectKind: ...

    def read_object(self, oid: ObjectID, kind: ObjectKind | None = None) -> bytes: ...


def _header_value(line: bytes, field: bytes) -> ObjectID:
    words = line.split()
    if len(words) < 2 or words[0] != field:
        raise MalformedObject(f"Expected {field.decode()} header, got {line[:60]!r}")
    return ObjectID(words[1])


def _parse_commit(text: bytes) -> list[ObjectID]:
    lines = text.split(b"\n")
    refs = [_header_value(lines[0], _TREE_HEADER)]
    for line in lines[1:]:
        if not line.startswith(_PARENT_HEADER + b" "):
            break
        refs.append(_header_value(line, _PARENT_HEADER))
    return refs


def _parse_tag(text: bytes) -> list[ObjectID]:
    return [_header_value(text.split(b"\n", 1)[0], _OBJECT_HEADER)]


def _parse_tree(text: bytes) -> list[ObjectID]:
    refs = []
    for line in text.split(b"\n"):
        if not line.strip():
            continue
        words = line.split()
        if len(words) < 3:
            raise MalformedObject(f"Invalid tree entry: {line[:80]!r}")
        mode, kind, sha = words[:3]
        if mode == S_IFGITLINK and kind == b"commit":
            # Submodule: the commit lives in another repository.
            continue
        refs.append(ObjectID(sha))
    return refs


def parse_references(kind: ObjectKind, text: bytes) -> list[ObjectID]:
    """Parse the ids an object refers to directly.

    Args:
      kind: Kind of the object
      text: Pretty-printed object content
    Returns: Referenced ids, in the order they appear
    Raises:
      UnsupportedObjectKind: for anything but blob, tree, commit and tag
      MalformedObject: if the content does not have the expected layout
    """
    if not isinstance(kind, ObjectKind):
        raise UnsupportedObjectKind(kind)
    if kind is ObjectKind.BLOB:
        return []
    text = text.strip()
    if kind is ObjectKind.TREE:
        return _parse_tree(text)
    if not text:
        raise MalformedObject(f"Empty {kind.value} object")
    if kind is ObjectKind.COMMIT:
        return _parse_commit(text)
    if kind is ObjectKind.TAG:
        return _parse_tag(text)
    raise UnsupportedObjectKind(kind)


def referenced_ids(reader: ObjectReader, oid: ObjectID) -> set[ObjectID]:
    """Return the ids of the objects ``oid`` refers to directly.

    A commit refers to its tree and parents, a tag to its target and a tree to
    its entries, minus submodule entries. Blobs refer to nothing.
    """
    kind = reader.object_kind(oid)
    if kind is ObjectKind.BLOB:
        return set()
    return set(parse_references(kind, reader.read_object(oid)))
