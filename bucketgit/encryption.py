# encryption.py -- Encrypting wrapper around another storage
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

"""Encrypting wrapper around another storage.

File contents are encrypted with AES-256 in GCM mode before they reach the
wrapped storage and decrypted after they come back. The stored layout is::

    nonce (12 bytes) || ciphertext || tag (16 bytes)

Paths are left in plain text: objects are named by their hash anyway.
"""

import base64
import binascii
import os
import tempfile
from typing import IO

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import InvalidArgument, StorageFailure
from .objects import CHUNK_SIZE, SPOOL_FILE_MAX_SIZE
from .storage import Content, Storage

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def generate_key() -> bytes:
    """Generate a new random AES-256 key."""
    return os.urandom(KEY_SIZE)


def encode_key(key: bytes) -> str:
    """Encode a key as URL-safe base64, for storing it in git config."""
    return base64.urlsafe_b64encode(key).decode("ascii")


def decode_key(encoded: str) -> bytes:
    """Decode a key written by :func:`encode_key`.

    Raises:
      InvalidArgument: if the text is not a base64 encoded 256 bit key
    """
    try:
        key = base64.urlsafe_b64decode(encoded.strip().encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise InvalidArgument(f"Invalid encryption key: {e}") from e
    if len(key) != KEY_SIZE:
        raise InvalidArgument(
            f"Invalid encryption key: expected {KEY_SIZE} bytes, got {len(key)}"
        )
    return key


def _chunks(content: Content):
    if isinstance(content, bytes):
        yield content
        return
    while True:
        chunk = content.read(CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


def encrypt(content: Content, key: bytes, out: IO[bytes]) -> None:
    """Encrypt content into ``out``."""
    nonce = os.urandom(NONCE_SIZE)
    encryptor = Cipher(algorithms.AES(key), modes.GCM(nonce)).encryptor()
    out.write(nonce)
    for chunk in _chunks(content):
        out.write(encryptor.update(chunk))
    out.write(encryptor.finalize())
    out.write(encryptor.tag)


def decrypt(source: IO[bytes], key: bytes, out: IO[bytes]) -> None:
    """Decrypt data written by :func:`encrypt` into ``out``.

    Raises:
      InvalidTag: if the data was modified or the key is wrong
      ValueError: if the data is too short to be encrypted content
    """
    nonce = source.read(NONCE_SIZE)
    if len(nonce) != NONCE_SIZE:
        raise ValueError("Encrypted content is truncated")
    decryptor = Cipher(algorithms.AES(key), modes.GCM(nonce)).decryptor()
    # The tag trails the ciphertext, so always hold back the last TAG_SIZE bytes.
    pending = b""
    while True:
        chunk = source.read(CHUNK_SIZE)
        if not chunk:
            break
        pending += chunk
        if len(pending) > TAG_SIZE:
            out.write(decryptor.update(pending[:-TAG_SIZE]))
            pending = pending[-TAG_SIZE:]
    if len(pending) != TAG_SIZE:
        raise ValueError("Encrypted content is truncated")
    out.write(decryptor.finalize_with_tag(pending))


class EncryptedStorage(Storage):
    """Storage that encrypts contents on their way to another storage."""

    def __init__(self, inner: Storage, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise InvalidArgument(f"Encryption key must be {KEY_SIZE} bytes")
        self.inner = inner
        self._key = key

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.inner!r})"

    def exists(self, path: str) -> bool:
        return self.inner.exists(path)

    def upload(self, path: str, content: Content) -> None:
        with tempfile.SpooledTemporaryFile(max_size=SPOOL_FILE_MAX_SIZE) as f:
            encrypt(content, self._key, f)
            f.seek(0)
            self.inner.upload(path, f)

    def _decrypt_to(self, path: str, out: IO[bytes]) -> None:
        with self.inner.download_stream(path) as source:
            try:
                decrypt(source, self._key, out)
            except (InvalidTag, ValueError) as e:
                raise StorageFailure(
                    "decrypt", path, str(e) or "authentication failed"
                ) from e

    def download(self, path: str) -> bytes:
        with tempfile.SpooledTemporaryFile(max_size=SPOOL_FILE_MAX_SIZE) as f:
            self._decrypt_to(path, f)
            f.seek(0)
            return f.read()

    def download_stream(self, path: str) -> IO[bytes]:
        f = tempfile.SpooledTemporaryFile(max_size=SPOOL_FILE_MAX_SIZE)
        try:
            self._decrypt_to(path, f)
            f.seek(0)
        except BaseException:
            f.close()
            raise
        return f

    def delete(self, path: str) -> None:
        self.inner.delete(path)

    def list(self, path: str) -> list[str]:
        return self.inner.list(path)
