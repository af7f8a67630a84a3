# sync.py -- Synchronize a local repository with a remote store
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

"""Synchronize a local repository with a remote store.

Pushing uploads every object reachable from the pushed ref that the remote
does not have yet, and only then moves the remote ref, after checking that
the move is a fast-forward. Fetching walks the object graph down from the
requested id and downloads whatever is missing locally; it can be
interrupted and rerun at any point.

All session state (the remote ref snapshot, the refs pushed so far, the
bootstrap HEAD) lives on the :class:`SyncEngine` and is only touched from the
protocol loop. Transfer workers read and write objects, nothing else.
"""

from dataclasses import dataclass
from typing import IO, Protocol, Union

from .errors import (
    BucketGitError,
    HashMismatch,
    InvalidArgument,
    NotFastForward,
    ObjectNotFound,
)
from .graph import referenced_ids
from .log_utils import getLogger
from .objects import (
    EMPTY_TREE_ID,
    LARGE_OBJECT_THRESHOLD,
    ObjectID,
    ObjectKind,
    decode_object_stream,
    encode_object,
    encode_object_stream,
)
from .refs import (
    HEADREF,
    DirectReference,
    RemoteRefCache,
    SymbolicReference,
    read_symbolic_ref,
    ref_file_contents,
    ref_path,
    write_symbolic_ref,
)
from .storage import Storage
from .transfer import TransferScheduler

logger = getLogger(__name__)


class LocalRepository(Protocol):
    """What the engine needs from the local git repository."""

    def resolve_ref(self, name: str) -> ObjectID: ...

    def symbolic_ref(self, name: str) -> str | None: ...

    def object_exists(self, oid: ObjectID) -> bool: ...

    def history_exists(self, oid: ObjectID) -> bool: ...

    def is_ancestor(self, ancestor: ObjectID, descendant: ObjectID) -> bool: ...

    def object_kind(self, oid: ObjectID) -> ObjectKind: ...

    def object_size(self, oid: ObjectID) -> int: ...

    def read_object(self, oid: ObjectID, kind: ObjectKind | None = None) -> bytes: ...

    def open_object(self, oid: ObjectID, kind: ObjectKind): ...

    def write_object(
        self, kind: ObjectKind, content: Union[bytes, IO[bytes]]
    ) -> ObjectID: ...

    def list_objects(self, ref: str, exclude) -> list[ObjectID]: ...


@dataclass(frozen=True)
class PushResult:
    """Outcome of one push directive."""

    ref: str
    error: BucketGitError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def serialize(self) -> str:
        """Return the status line git expects for this ref."""
        if self.error is None:
            return f"ok {self.ref}"
        message = " ".join(str(self.error).split())
        return f"error {self.ref} {message}"


@dataclass(frozen=True)
class PushSpec:
    """A parsed ``<src>:<dst>`` push directive."""

    src: str
    dst: str
    force: bool = False

    @property
    def is_delete(self) -> bool:
        return not self.src

    @classmethod
    def parse(cls, refspec: str) -> "PushSpec":
        """Parse ``[+]<src>:<dst>``; an empty src means delete dst."""
        force = refspec.startswith("+")
        if force:
            refspec = refspec[1:]
        src, sep, dst = refspec.partition(":")
        if not sep or not dst:
            raise InvalidArgument(f"Invalid push refspec: {refspec!r}")
        return cls(src, dst, force)


class SyncEngine:
    """Pushes to and fetches from a remote store."""

    def __init__(
        self,
        git: LocalRepository,
        storage: Storage,
        scheduler: TransferScheduler | None = None,
    ) -> None:
        self.git = git
        self.storage = storage
        self.scheduler = scheduler if scheduler is not None else TransferScheduler()
        self.remote_refs = RemoteRefCache()
        # Values pushed during this session, keyed by remote ref name.
        self.pushed: dict[str, ObjectID] = {}
        # Ids whose whole history is known to be present locally.
        self.fetched: set[ObjectID] = set()
        self.first_push = False
        self.pending_head: str | None = None
        self.uploaded = 0

    def close(self) -> None:
        self.scheduler.close()

    def _load_refs(self) -> None:
        first = not self.remote_refs.loaded
        self.remote_refs.load(self.storage)
        if first:
            self.first_push = self.remote_refs.was_empty

    def list_refs(self) -> list[Union[DirectReference, SymbolicReference]]:
        """Return the remote refs and the remote HEAD, if there is one.

        Refreshes the remote ref snapshot. The first snapshot of the session
        decides whether this session is a first push.
        """
        self._load_refs()
        refs: list[Union[DirectReference, SymbolicReference]] = list(
            self.remote_refs.references()
        )
        head = read_symbolic_ref(self.storage, HEADREF)
        if head is not None:
            refs.append(head)
        return refs

    # Pushing

    def push(self, refspec: str) -> PushResult:
        """Execute one push directive, ``[+]<src>:<dst>`` or ``:<dst>``.

        Errors concerning this ref are returned in the result, so the other
        refs of a batch can still be pushed.
        """
        try:
            spec = PushSpec.parse(refspec)
        except InvalidArgument as e:
            return PushResult(refspec.rpartition(":")[2], e)
        if spec.is_delete:
            return self.delete(spec.dst)
        result = self.update(spec.src, spec.dst, spec.force)
        if result.ok and self.first_push:
            if self.pending_head is None or spec.src == self.git.symbolic_ref(HEADREF):
                self.pending_head = spec.dst
        return result

    def delete(self, ref: str) -> PushResult:
        """Delete a ref from the remote.

        The branch the remote HEAD points at can never be deleted.
        """
        try:
            path = ref_path(ref)
            head = read_symbolic_ref(self.storage, HEADREF)
            if head is not None and head.target == ref:
                raise InvalidArgument("Cannot delete the current branch.")
            logger.debug("Deleting ref: %s", ref)
            self.storage.delete(path)
        except BucketGitError as e:
            logger.debug("Deleting %s failed: %s", ref, e)
            return PushResult(ref, e)
        self.remote_refs.pop(ref)
        self.pushed.pop(ref, None)
        return PushResult(ref)

    def update(self, src: str, dst: str, force: bool = False) -> PushResult:
        """Upload the objects for ``src`` and point the remote ``dst`` at it."""
        logger.debug("Pushing from %s to %s...", src, dst)
        try:
            ref_path(dst)
            if not self.remote_refs.loaded:
                self._load_refs()
            excludes = self.remote_refs.values() | set(self.pushed.values())
            objects = self.git.list_objects(src, excludes)
            logger.debug(
                "Found %d objects, excluding %d remote refs.",
                len(objects),
                len(excludes),
            )
            self.scheduler.run(objects, self._upload_missing, "Pushing objects")
            new = self.git.resolve_ref(src)
            self._write_remote_ref(dst, new, force)
        except BucketGitError as e:
            logger.debug("Pushing %s failed: %s", dst, e)
            return PushResult(dst, e)
        self.remote_refs[dst] = new
        self.pushed[dst] = new
        return PushResult(dst)

    def _write_remote_ref(self, ref: str, new: ObjectID, force: bool) -> None:
        old = self.remote_refs.get(ref)
        if not force and old is not None and old != new:
            if not self.git.object_exists(old):
                raise ObjectNotFound(old, "fetch first")
            if not self.git.is_ancestor(old, new):
                raise NotFastForward(ref, old, new)
        logger.debug("Uploading ref: %s", ref)
        self.storage.upload(ref_path(ref), ref_file_contents(new))

    def _upload_missing(self, oid: ObjectID) -> None:
        # Objects may already be there from an interrupted earlier push.
        if self.storage.exists(oid.path):
            logger.debug("Object already exists: %s", oid)
            return
        self.upload_object(oid)

    def upload_object(self, oid: ObjectID) -> None:
        """Encode a local object and upload it, replacing any remote copy."""
        logger.debug("Uploading object: %s", oid)
        kind = self.git.object_kind(oid)
        size = self.git.object_size(oid)
        if size > LARGE_OBJECT_THRESHOLD:
            logger.debug("Using large file handling: %s (%d bytes)", oid, size)
            with self.git.open_object(oid, kind) as stream:
                encoded = encode_object_stream(kind, size, stream)
            with encoded:
                self.storage.upload(oid.path, encoded)
        else:
            content = self.git.read_object(oid, kind)
            self.storage.upload(oid.path, encode_object(kind, size, content))
        self.uploaded += 1

    def finish(self) -> None:
        """End the session: point the remote HEAD at the bootstrap branch.

        Only a session that found the remote without refs sets HEAD, once,
        after all of its pushes, so HEAD reflects the final state of a
        multi-ref push.
        """
        if self.first_push and self.pending_head is not None:
            write_symbolic_ref(self.storage, HEADREF, self.pending_head)
            self.first_push = False
            self.pending_head = None

    # Fetching

    def fetch(self, oid: ObjectID) -> int:
        """Make ``oid`` and everything it refers to present locally.

        Returns: Number of objects visited
        Raises:
          HashMismatch: if downloaded content does not match its id
          StorageFailure: if the remote store fails
        """
        return self.scheduler.traverse(
            [oid], self._fetch_object, self.fetched, "Fetching objects"
        )

    def _fetch_object(self, oid: ObjectID) -> set[ObjectID]:
        if self.git.object_exists(oid):
            if oid == EMPTY_TREE_ID:
                # git reports the empty tree as present even when it is not
                # stored, and fsck complains about the missing object.
                self.git.write_object(ObjectKind.TREE, b"")
            if self.git.history_exists(oid):
                return set()
            # Only left behind by an interrupted fetch; resume below it.
            return referenced_ids(self.git, oid)
        self.download_object(oid)
        return referenced_ids(self.git, oid)

    def download_object(self, oid: ObjectID) -> None:
        """Download an object and write it to the local repository."""
        logger.debug("Downloading object: %s", oid)
        with self.storage.download_stream(oid.path) as stream:
            kind, size, content = decode_object_stream(stream)
        with content:
            computed = self.git.write_object(kind, content)
        if computed != oid:
            raise HashMismatch(oid, computed, f"{oid.path} is corrupt")
