# test_objects.py -- Tests for object ids and the loose object codec
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

"""Tests for object ids and the loose object codec."""

import zlib
from io import BytesIO
from unittest.mock import patch

from bucketgit.errors import InvalidArgument, MalformedObject, UnsupportedObjectKind
from bucketgit.objects import (
    EMPTY_TREE_ID,
    ObjectID,
    ObjectKind,
    decode_object,
    decode_object_stream,
    encode_object,
    encode_object_stream,
    hash_object,
    object_header,
)

from . import TestCase

HELLO_ID = "b6fc4c620b67d95f953a5c1c1230aaab5db5a1b0"


class ObjectIDTests(TestCase):
    def test_lowercases(self) -> None:
        oid = ObjectID(HELLO_ID.upper())
        self.assertEqual(HELLO_ID, oid)
        self.assertEqual(hash(HELLO_ID), hash(oid))

    def test_from_bytes(self) -> None:
        self.assertEqual(HELLO_ID, ObjectID(HELLO_ID.encode("ascii")))

    def test_invalid(self) -> None:
        for value in ["", "abc", HELLO_ID[:-1], HELLO_ID + "0", "g" * 40, b"\xff" * 40]:
            self.assertRaises(InvalidArgument, ObjectID, value)

    def test_invalid_is_value_error(self) -> None:
        self.assertRaises(ValueError, ObjectID, "nope")

    def test_path(self) -> None:
        self.assertEqual(
            "objects/b6/fc4c620b67d95f953a5c1c1230aaab5db5a1b0", ObjectID(HELLO_ID).path
        )

    def test_repr(self) -> None:
        self.assertEqual(f"ObjectID('{HELLO_ID}')", repr(ObjectID(HELLO_ID)))


class ObjectKindTests(TestCase):
    def test_from_name(self) -> None:
        self.assertIs(ObjectKind.COMMIT, ObjectKind.from_name("commit"))
        self.assertIs(ObjectKind.TREE, ObjectKind.from_name(b"tree\n"))

    def test_unsupported(self) -> None:
        self.assertRaises(UnsupportedObjectKind, ObjectKind.from_name, "ofs-delta")

    def test_type_name(self) -> None:
        self.assertEqual(b"blob", ObjectKind.BLOB.type_name)


class HashObjectTests(TestCase):
    def test_blob(self) -> None:
        # git hash-object on "hello\n"
        self.assertEqual(
            "ce013625030ba8dba906f756967f9e9ca394464a",
            hash_object(ObjectKind.BLOB, b"hello\n"),
        )

    def test_empty_tree(self) -> None:
        self.assertEqual(EMPTY_TREE_ID, hash_object(ObjectKind.TREE, b""))

    def test_header(self) -> None:
        self.assertEqual(b"commit 12\0", object_header(ObjectKind.COMMIT, 12))


class EncodeObjectTests(TestCase):
    def test_encode(self) -> None:
        encoded = encode_object(ObjectKind.BLOB, 6, b"hello\n")
        self.assertEqual(b"blob 6\0hello\n", zlib.decompress(encoded))

    def test_decode(self) -> None:
        data = zlib.compress(b"tree 0\0")
        self.assertEqual((ObjectKind.TREE, b""), decode_object(data))

    def test_decode_git_compatible(self) -> None:
        # What git writes with core.compression 9 must decode as well.
        data = zlib.compress(b"blob 3\0abc", 9)
        self.assertEqual((ObjectKind.BLOB, b"abc"), decode_object(data))

    def test_stream_matches_bytes(self) -> None:
        content = bytes(range(256)) * 1000
        with encode_object_stream(
            ObjectKind.BLOB, len(content), BytesIO(content)
        ) as f:
            streamed = f.read()
        self.assertEqual(
            encode_object(ObjectKind.BLOB, len(content), content), streamed
        )


class DecodeObjectTests(TestCase):
    def test_not_zlib(self) -> None:
        self.assertRaises(MalformedObject, decode_object, b"not compressed")

    def test_missing_separator(self) -> None:
        self.assertRaises(MalformedObject, decode_object, zlib.compress(b"blob 3abc"))

    def test_bad_header(self) -> None:
        self.assertRaises(MalformedObject, decode_object, zlib.compress(b"blob x\0a"))

    def test_unknown_kind(self) -> None:
        self.assertRaises(
            UnsupportedObjectKind, decode_object, zlib.compress(b"delta 1\0a")
        )

    def test_size_mismatch(self) -> None:
        self.assertRaises(
            MalformedObject, decode_object, zlib.compress(b"blob 10\0short")
        )


class DecodeObjectStreamTests(TestCase):
    def decode(self, data: bytes):
        kind, size, f = decode_object_stream(BytesIO(data))
        with f:
            return kind, size, f.read()

    def test_decode(self) -> None:
        content = b"x" * 200000
        data = encode_object(ObjectKind.BLOB, len(content), content)
        self.assertEqual((ObjectKind.BLOB, len(content), content), self.decode(data))

    def test_small_chunks(self) -> None:
        data = encode_object(ObjectKind.COMMIT, 5, b"hello")
        with patch("bucketgit.objects.CHUNK_SIZE", 1):
            self.assertEqual((ObjectKind.COMMIT, 5, b"hello"), self.decode(data))

    def test_empty_content(self) -> None:
        data = encode_object(ObjectKind.TREE, 0, b"")
        self.assertEqual((ObjectKind.TREE, 0, b""), self.decode(data))

    def test_truncated(self) -> None:
        data = encode_object(ObjectKind.BLOB, 5000, bytes(range(250)) * 20)
        self.assertRaises(MalformedObject, self.decode, data[: len(data) // 2])

    def test_size_mismatch(self) -> None:
        data = zlib.compress(b"blob 3\0abcdef")
        self.assertRaises(MalformedObject, self.decode, data)

    def test_missing_separator(self) -> None:
        data = zlib.compress(b"blob " + b"1" * 100)
        self.assertRaises(MalformedObject, self.decode, data)

    def test_not_zlib(self) -> None:
        self.assertRaises(MalformedObject, self.decode, b"garbage data")
