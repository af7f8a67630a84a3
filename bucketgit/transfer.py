# transfer.py -- Concurrent object transfers
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

"""Concurrent object transfers.

Uploads and downloads block on the network or on git subprocesses, so they
run on a fixed size gevent thread pool. The protocol loop stays on the main
greenlet and reacts to items as they complete; workers never touch ref
state.
"""

import os
from collections.abc import Callable, Iterable
from typing import Any

import gevent
from gevent.event import AsyncResult
from gevent.threadpool import ThreadPool

from .log_utils import ProgressCallback, getLogger
from .objects import ObjectID

logger = getLogger(__name__)

DEFAULT_CONCURRENCY = 8


def _capture(
    func: Callable[[ObjectID], Any], item: ObjectID
) -> tuple[Any, Exception | None]:
    # Runs on a worker thread. Exceptions are returned, not raised, so that
    # the hub does not print a traceback for them.
    try:
        return func(item), None
    except Exception as e:
        return None, e


def _outcome(result: AsyncResult) -> tuple[Any, BaseException | None]:
    """Return the value and the error of a finished work item."""
    if not result.successful():
        return None, result.exception
    return result.value


def default_concurrency() -> int:
    """Return the pool size, honouring BUCKETGIT_CONCURRENCY."""
    value = os.environ.get("BUCKETGIT_CONCURRENCY")
    if value:
        try:
            size = int(value)
        except ValueError:
            logger.warning("Ignoring invalid BUCKETGIT_CONCURRENCY: %r", value)
        else:
            if size > 0:
                return size
            logger.warning("Ignoring invalid BUCKETGIT_CONCURRENCY: %r", value)
    return DEFAULT_CONCURRENCY


class TransferScheduler:
    """Runs transfer work items on a bounded pool of worker threads."""

    def __init__(
        self,
        concurrency: int | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        """Initialize TransferScheduler.

        Args:
          concurrency: Number of worker threads (default 8)
          progress: Called with (label, completed, total) after each item
        """
        if concurrency is None:
            concurrency = default_concurrency()
        self.concurrency = concurrency
        self.progress = progress
        self._pool = ThreadPool(concurrency)
        logger.debug("Using %d threads.", concurrency)

    def close(self) -> None:
        self._pool.kill()

    def _report(self, label: str, done: int, total: int) -> None:
        if self.progress is not None:
            self.progress(label, done, total)

    def run(
        self,
        items: Iterable[ObjectID],
        work: Callable[[ObjectID], object],
        label: str = "Transferring objects",
    ) -> int:
        """Run ``work`` for every item and wait until all have finished.

        Items are independent and run in no particular order. If any item
        fails, the rest still run to completion (so their work is kept) and
        the first failure is raised afterwards.

        Returns: Number of items run
        """
        pending = {self._pool.spawn(_capture, work, item) for item in items}
        total = len(pending)
        done = 0
        failure: BaseException | None = None
        while pending:
            for result in gevent.wait(list(pending), count=1):
                pending.discard(result)
                _, error = _outcome(result)
                if error is not None:
                    if failure is None:
                        failure = error
                    continue
                done += 1
                self._report(label, done, done + len(pending))
        if failure is not None:
            raise failure
        return total

    def traverse(
        self,
        roots: Iterable[ObjectID],
        visit: Callable[[ObjectID], Iterable[ObjectID]],
        seen: set[ObjectID],
        label: str = "Fetching objects",
    ) -> int:
        """Walk a graph of ids, visiting each id at most once.

        ``visit`` runs on a worker and returns the ids the visited id leads
        to; these are scheduled as soon as it completes, while other visits
        are still in flight. ``seen`` holds ids whose whole subgraph was
        walked earlier; they are skipped, and the ids of this walk are added
        to it once the walk has completed. It is only touched on the calling
        greenlet.

        On failure no new visits are started, in-flight visits finish and
        the first failure is raised. ``seen`` is left alone then, so a retry
        walks the graph again; visits are expected to be cheap for work that
        was already done.

        Returns: Number of ids visited by this walk
        """
        pending: dict[AsyncResult, ObjectID] = {}
        visited: set[ObjectID] = set()
        failure: BaseException | None = None

        def schedule(oid: ObjectID) -> None:
            if oid in seen or oid in visited:
                return
            visited.add(oid)
            pending[self._pool.spawn(_capture, visit, oid)] = oid

        for oid in roots:
            schedule(oid)

        done = 0
        while pending:
            for result in gevent.wait(list(pending), count=1):
                del pending[result]
                value, error = _outcome(result)
                if error is not None:
                    if failure is None:
                        failure = error
                    continue
                done += 1
                if failure is None:
                    for ref in value or ():
                        schedule(ref)
                self._report(label, done, done + len(pending))
        if failure is not None:
            raise failure
        seen.update(visited)
        return done
