# errors.py -- errors for bucketgit
# Copyright (C) 2007 James Westby <jw+debian@jameswestby.net>
# Copyright (C) 2009-2012 Jelmer Vernooij <jelmer@jelmer.uk>
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

"""bucketgit-related exception classes."""

from collections.abc import Sequence


class BucketGitError(Exception):
    """Base class for all errors raised by bucketgit."""


class InvalidArgument(BucketGitError, ValueError):
    """A ref name, object id or URL is malformed."""


class ObjectNotFound(BucketGitError):
    """A required object is not present in the local repository."""

    def __init__(self, sha: str, extra: str | None = None) -> None:
        """Initialize an ObjectNotFound exception.

        Args:
            sha: Hex id of the missing object.
            extra: Optional hint appended to the message.
        """
        self.sha = sha
        message = f"Object not found: {sha}"
        if extra is not None:
            message += f", {extra}"
        super().__init__(message)


class NotFastForward(BucketGitError):
    """A ref update is not a fast-forward and was not forced."""

    def __init__(self, ref: str, old: str, new: str) -> None:
        """Initialize a NotFastForward exception.

        Args:
            ref: Name of the ref being updated.
            old: Current remote value.
            new: Proposed new value.
        """
        self.ref = ref
        self.old = old
        self.new = new
        super().__init__("non-fast forward, fetch first")


class HashMismatch(BucketGitError):
    """The id computed for downloaded content differs from the requested id."""

    def __init__(self, expected: str, got: str, extra: str | None = None) -> None:
        """Initialize a HashMismatch exception.

        Args:
            expected: The id that was requested.
            got: The id computed from the downloaded content.
            extra: Optional additional error information.
        """
        self.expected = expected
        self.got = got
        self.extra = extra
        message = f"Hash mismatch: Expected {expected}, got {got}"
        if extra is not None:
            message += f"; {extra}"
        super().__init__(message)


class MalformedObject(BucketGitError):
    """Wire bytes do not parse as a loose object."""


class UnsupportedObjectKind(BucketGitError):
    """An object is not a blob, tree, commit or tag."""

    def __init__(self, kind: object) -> None:
        """Initialize an UnsupportedObjectKind exception.

        Args:
            kind: The offending kind, as found.
        """
        if isinstance(kind, bytes):
            kind = kind.decode("ascii", "replace")
        self.kind = kind
        super().__init__(f"Unsupported object kind: {kind}")


class StorageFailure(BucketGitError):
    """An operation on the remote storage failed."""

    def __init__(
        self, operation: str, path: str, cause: BaseException | str | None = None
    ) -> None:
        """Initialize a StorageFailure.

        Args:
            operation: Name of the storage operation, e.g. "upload".
            path: Relative path the operation was applied to.
            cause: Underlying error or description.
        """
        self.operation = operation
        self.path = path
        self.cause = cause
        message = f"Storage {operation} failed for {path}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class RemoteFileNotFound(StorageFailure, KeyError):
    """A path does not exist in the remote storage."""

    def __init__(self, operation: str, path: str) -> None:
        """Initialize a RemoteFileNotFound exception.

        Args:
            operation: Name of the storage operation.
            path: The missing relative path.
        """
        StorageFailure.__init__(self, operation, path, "file not found")

    def __str__(self) -> str:
        """Return the message rather than KeyError's quoted repr."""
        return self.args[0]


class GitCommandError(BucketGitError):
    """Running the local git executable failed."""

    def __init__(
        self, args: Sequence[str], returncode: int, stderr: bytes | None = None
    ) -> None:
        """Initialize a GitCommandError.

        Args:
            args: The git arguments that were run.
            returncode: Exit status of the git process.
            stderr: Captured standard error, if any.
        """
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr
        message = f"git {' '.join(args)} exited with status {returncode}"
        if stderr:
            message += ": " + stderr.decode("utf-8", "replace").strip()
        super().__init__(message)


class ProtocolViolation(BucketGitError):
    """Git sent a line the remote helper protocol does not allow."""

    def __init__(self, line: str) -> None:
        """Initialize a ProtocolViolation.

        Args:
            line: The offending input line.
        """
        self.line = line
        super().__init__(f"Unexpected command: {line}")
