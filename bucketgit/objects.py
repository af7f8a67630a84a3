# objects.py -- Object ids, object kinds and the loose object codec
# Copyright (C) 2007 James Westby <jw+debian@jameswestby.net>
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

"""Object ids, object kinds and the loose object codec.

Objects are stored remotely exactly the way git stores a loose object::

    deflate(b"<kind> <decimal size>" + b"\\0" + content)

so a file copied out of the remote store can be read by git directly.
"""

import hashlib
import re
import tempfile
import zlib
from collections.abc import Iterable, Iterator
from enum import Enum
from typing import IO

from .errors import InvalidArgument, MalformedObject, UnsupportedObjectKind

# Objects larger than this are encoded and decoded through temporary files.
LARGE_OBJECT_THRESHOLD = 100 * 1024 * 1024

# In-memory budget for a spooled temporary file before it hits the disk.
SPOOL_FILE_MAX_SIZE = 16 * 1024 * 1024

CHUNK_SIZE = 64 * 1024

# A header is "<kind> <size>"; anything longer than this is not a header.
_MAX_HEADER_LENGTH = 32

_HEXSHA_RE = re.compile(r"\A[0-9a-fA-F]{40}\Z")
_HEADER_RE = re.compile(rb"\A([a-z]+) ([0-9]+)\Z")


class ObjectID(str):
    """A 40 character hex SHA1 naming a git object.

    Compares and hashes like the plain (lowercase) string it wraps.
    """

    __slots__ = ()

    def __new__(cls, value: "str | bytes") -> "ObjectID":
        if isinstance(value, bytes):
            try:
                value = value.decode("ascii")
            except UnicodeDecodeError as e:
                raise InvalidArgument(f"Invalid object id: {value!r}") from e
        if isinstance(value, ObjectID):
            return value
        if not isinstance(value, str) or _HEXSHA_RE.match(value) is None:
            raise InvalidArgument(
                f"Object id must have a length of 40 hex characters: {value!r}"
            )
        return super().__new__(cls, value.lower())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r})"

    @property
    def path(self) -> str:
        """Relative path of this object in the remote store.

        The first two hex characters form an extra directory level, the same
        fan-out git uses for loose objects.
        """
        return f"objects/{self[:2]}/{self[2:]}"


EMPTY_TREE_ID = ObjectID("4b825dc642cb6eb9a060e54bf8d69288fbee4904")


class ObjectKind(Enum):
    """The four object kinds git knows about."""

    COMMIT = "commit"
    BLOB = "blob"
    TAG = "tag"
    TREE = "tree"

    @classmethod
    def from_name(cls, name: "str | bytes") -> "ObjectKind":
        """Look up a kind by its lowercase git name.

        Raises:
          UnsupportedObjectKind: if the name is not one of the four kinds
        """
        if isinstance(name, bytes):
            name = name.decode("ascii", "replace")
        try:
            return cls(name.strip())
        except ValueError:
            raise UnsupportedObjectKind(name) from None

    @property
    def type_name(self) -> bytes:
        return self.value.encode("ascii")


def object_header(kind: ObjectKind, size: int) -> bytes:
    """Return the loose object header for an object, including the NUL byte."""
    return kind.type_name + b" " + str(size).encode("ascii") + b"\0"


def hash_object(kind: ObjectKind, content: bytes) -> ObjectID:
    """Compute the id git assigns to an object with the given content."""
    sha = hashlib.sha1(object_header(kind, len(content)))
    sha.update(content)
    return ObjectID(sha.hexdigest())


def encode_object_chunks(
    kind: ObjectKind, size: int, chunks: Iterable[bytes]
) -> Iterator[bytes]:
    """Yield the compressed loose object encoding of a chunked content.

    Args:
      kind: Kind of the object
      size: Declared content size
      chunks: Raw content, in order
    """
    compobj = zlib.compressobj()
    yield compobj.compress(object_header(kind, size))
    for chunk in chunks:
        yield compobj.compress(chunk)
    yield compobj.flush()


def encode_object(kind: ObjectKind, size: int, content: bytes) -> bytes:
    """Encode an object in loose object format.

    This operation is the inverse of :func:`decode_object`.
    """
    return b"".join(encode_object_chunks(kind, size, [content]))


def _read_chunks(stream: IO[bytes]) -> Iterator[bytes]:
    while True:
        chunk = stream.read(CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


def encode_object_stream(
    kind: ObjectKind, size: int, stream: IO[bytes]
) -> "tempfile.SpooledTemporaryFile[bytes]":
    """Encode an object read from a stream into a spooled temporary file.

    The output is identical to :func:`encode_object` but the content never has
    to fit into memory. The returned file is positioned at its start; the
    caller is responsible for closing it.
    """
    f = tempfile.SpooledTemporaryFile(max_size=SPOOL_FILE_MAX_SIZE)
    try:
        for data in encode_object_chunks(kind, size, _read_chunks(stream)):
            f.write(data)
        f.seek(0)
    except BaseException:
        f.close()
        raise
    return f


def _parse_header(header: bytes) -> tuple[ObjectKind, int]:
    m = _HEADER_RE.match(header)
    if m is None:
        raise MalformedObject(f"Invalid object header: {header[:_MAX_HEADER_LENGTH]!r}")
    return ObjectKind.from_name(m.group(1)), int(m.group(2))


def decode_object(data: bytes) -> tuple[ObjectKind, bytes]:
    """Decode a loose object.

    This operation is the inverse of :func:`encode_object`.

    Returns: Tuple with object kind and raw content
    Raises:
      MalformedObject: if the data is not a valid loose object
      UnsupportedObjectKind: if the header names an unknown kind
    """
    try:
        text = zlib.decompress(data)
    except zlib.error as e:
        raise MalformedObject(f"Unable to inflate object: {e}") from e
    header_end = text.find(b"\0")
    if header_end == -1:
        raise MalformedObject("Missing separator between header and content")
    kind, size = _parse_header(text[:header_end])
    content = text[header_end + 1 :]
    if len(content) != size:
        raise MalformedObject(
            f"Object size mismatch: header says {size}, content has {len(content)}"
        )
    return kind, content


def decode_object_stream(
    stream: IO[bytes],
) -> tuple[ObjectKind, int, "tempfile.SpooledTemporaryFile[bytes]"]:
    """Decode a loose object read from a stream.

    The content is inflated into a spooled temporary file, so objects of any
    size can be decoded. The returned file is positioned at its start; the
    caller is responsible for closing it.

    Returns: Tuple with object kind, content size and content file
    """
    decomp = zlib.decompressobj()
    header = b""
    kind = None
    size = 0
    written = 0
    f = tempfile.SpooledTemporaryFile(max_size=SPOOL_FILE_MAX_SIZE)
    try:
        for chunk in _read_chunks(stream):
            try:
                text = decomp.decompress(chunk)
            except zlib.error as e:
                raise MalformedObject(f"Unable to inflate object: {e}") from e
            if kind is None:
                header += text
                header_end = header.find(b"\0")
                if header_end == -1:
                    if len(header) > _MAX_HEADER_LENGTH:
                        raise MalformedObject(
                            "Missing separator between header and content"
                        )
                    continue
                kind, size = _parse_header(header[:header_end])
                text = header[header_end + 1 :]
            f.write(text)
            written += len(text)
        try:
            tail = decomp.flush()
        except zlib.error as e:
            raise MalformedObject(f"Unable to inflate object: {e}") from e
        if kind is None:
            raise MalformedObject("Missing separator between header and content")
        if not decomp.eof:
            raise MalformedObject("Truncated object data")
        f.write(tail)
        written += len(tail)
        if written != size:
            raise MalformedObject(
                f"Object size mismatch: header says {size}, content has {written}"
            )
        f.seek(0)
    except BaseException:
        f.close()
        raise
    return kind, size, f
