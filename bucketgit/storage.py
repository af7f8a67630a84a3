# storage.py -- Storage backends for the remote store
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

"""Storage backends for the remote store.

A storage keeps opaque byte blobs under relative, slash separated paths. It
knows nothing about git; the layout (``objects/xx/yyyy``, ``refs/...``,
``HEAD``) is decided by the callers.
"""

import os
import posixpath
import shutil
import tempfile
import threading
from collections.abc import Iterator
from io import BytesIO
from typing import IO, Union

from .errors import InvalidArgument, RemoteFileNotFound, StorageFailure

Content = Union[bytes, IO[bytes]]


def normalize_path(path: str) -> str:
    """Check and normalize a relative storage path.

    Raises:
      InvalidArgument: for absolute paths or paths escaping the store
    """
    path = path.replace("\\", "/")
    if path.startswith("/"):
        raise InvalidArgument(f"Storage paths must be relative: {path}")
    parts = [p for p in path.split("/") if p not in ("", ".")]
    if not parts or ".." in parts:
        raise InvalidArgument(f"Invalid storage path: {path!r}")
    return "/".join(parts)


class Storage:
    """Common interface for all storage implementations."""

    def exists(self, path: str) -> bool:
        """Check whether a file exists at the given path."""
        raise NotImplementedError(self.exists)

    def upload(self, path: str, content: Content) -> None:
        """Store content at the given path, replacing what was there.

        Args:
          path: Relative path within the store
          content: Bytes, or a binary file positioned at the data to store
        """
        raise NotImplementedError(self.upload)

    def download(self, path: str) -> bytes:
        """Return the contents of the file at the given path.

        Raises:
          RemoteFileNotFound: if there is no such file
        """
        raise NotImplementedError(self.download)

    def download_stream(self, path: str) -> IO[bytes]:
        """Open the file at the given path for reading.

        Backends that can stream override this and return a
        :class:`DownloadStream`, which reports read errors as StorageFailure;
        the default reads the whole file into memory. The caller closes the
        returned file.
        """
        return BytesIO(self.download(path))

    def delete(self, path: str) -> None:
        """Delete the file at the given path.

        Raises:
          RemoteFileNotFound: if there is no such file
        """
        raise NotImplementedError(self.delete)

    def list(self, path: str) -> list[str]:
        """List all files below a directory, recursively.

        Returns: Sorted paths relative to the store root; empty if the
            directory does not exist
        """
        raise NotImplementedError(self.list)


class DownloadStream:
    """A remote file open for reading.

    Errors the underlying file raises while it is read are reported as
    :class:`StorageFailure` for the downloaded path.
    """

    def __init__(
        self,
        f: IO[bytes],
        path: str,
        errors: tuple[type[BaseException], ...] = (OSError,),
    ) -> None:
        self._file = f
        self.path = path
        self._errors = errors

    def read(self, size: int | None = None) -> bytes:
        try:
            if size is None or size < 0:
                return self._file.read()
            return self._file.read(size)
        except self._errors as e:
            raise StorageFailure("download", self.path, e) from e

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "DownloadStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def _read_content(content: Content) -> bytes:
    if isinstance(content, bytes):
        return content
    return content.read()


def ensure_dir_exists(dirname: str) -> None:
    """Ensure a directory exists, creating if necessary."""
    try:
        os.makedirs(dirname)
    except FileExistsError:
        pass


class LocalStorage(Storage):
    """Storage in a directory of the local file system."""

    def __init__(self, base_dir: str) -> None:
        self.base_dir = os.path.abspath(base_dir)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.base_dir!r})"

    def _fs_path(self, path: str) -> str:
        return os.path.join(self.base_dir, *normalize_path(path).split("/"))

    def exists(self, path: str) -> bool:
        return os.path.isfile(self._fs_path(path))

    def upload(self, path: str, content: Content) -> None:
        filename = self._fs_path(path)
        dirname = os.path.dirname(filename)
        try:
            ensure_dir_exists(dirname)
            # Write to a lock file and rename, so readers never see a partial file.
            fd, tmpname = tempfile.mkstemp(
                prefix=os.path.basename(filename) + ".", suffix=".lock", dir=dirname
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    if isinstance(content, bytes):
                        f.write(content)
                    else:
                        shutil.copyfileobj(content, f)
                os.replace(tmpname, filename)
            except BaseException:
                try:
                    os.remove(tmpname)
                except FileNotFoundError:
                    pass
                raise
        except OSError as e:
            raise StorageFailure("upload", path, e) from e

    def download(self, path: str) -> bytes:
        with self.download_stream(path) as f:
            return f.read()

    def download_stream(self, path: str) -> DownloadStream:
        try:
            return DownloadStream(open(self._fs_path(path), "rb"), path)
        except FileNotFoundError:
            raise RemoteFileNotFound("download", path) from None
        except OSError as e:
            raise StorageFailure("download", path, e) from e

    def delete(self, path: str) -> None:
        try:
            os.remove(self._fs_path(path))
        except FileNotFoundError:
            raise RemoteFileNotFound("delete", path) from None
        except OSError as e:
            raise StorageFailure("delete", path, e) from e

    def _walk(self, top: str) -> Iterator[str]:
        for dirpath, dirnames, filenames in os.walk(top):
            for name in filenames:
                if name.endswith(".lock"):
                    continue
                relpath = os.path.relpath(os.path.join(dirpath, name), self.base_dir)
                yield relpath.replace(os.sep, "/")

    def list(self, path: str) -> list[str]:
        top = self._fs_path(path)
        if not os.path.isdir(top):
            return []
        try:
            return sorted(self._walk(top))
        except OSError as e:
            raise StorageFailure("list", path, e) from e


class MemoryStorage(Storage):
    """Storage kept in a dictionary, for tests and dry runs."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self.files)} files)"

    def exists(self, path: str) -> bool:
        return normalize_path(path) in self.files

    def upload(self, path: str, content: Content) -> None:
        data = _read_content(content)
        with self._lock:
            self.files[normalize_path(path)] = data

    def download(self, path: str) -> bytes:
        try:
            return self.files[normalize_path(path)]
        except KeyError:
            raise RemoteFileNotFound("download", path) from None

    def delete(self, path: str) -> None:
        with self._lock:
            try:
                del self.files[normalize_path(path)]
            except KeyError:
                raise RemoteFileNotFound("delete", path) from None

    def list(self, path: str) -> list[str]:
        prefix = normalize_path(path) + "/"
        with self._lock:
            return sorted(p for p in self.files if p.startswith(prefix))


def join_key(prefix: str, path: str) -> str:
    """Join a key prefix (possibly empty) and a relative storage path."""
    path = normalize_path(path)
    if not prefix:
        return path
    return posixpath.join(prefix.strip("/"), path)
