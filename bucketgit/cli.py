# cli.py -- Entry points of the git remote helpers
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

"""Entry points of the git remote helpers.

Git runs ``git-remote-<scheme> <remote-name> <url>`` for URLs of the form
``<scheme>://...``, so each supported scheme gets its own executable. All of
them end up in :func:`main`.
"""

import argparse
import signal
import sys
import types
from collections.abc import Sequence

from .config import create_storage, parse_url
from .encryption import encode_key, generate_key
from .errors import BucketGitError
from .git import LocalGit
from .log_utils import ProgressReporter, default_logging_config, getLogger
from .objects import ObjectID
from .protocol import RemoteHelper
from .sync import SyncEngine
from .transfer import TransferScheduler

logger = getLogger(__name__)


class _UsageError(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise _UsageError(message)


def signal_int(signal: int, frame: types.FrameType | None) -> None:
    """Handle interrupt signal by exiting.

    Args:
        signal: Signal number
        frame: Current stack frame
    """
    sys.exit(1)


def _make_parser(prog: str) -> _ArgumentParser:
    parser = _ArgumentParser(
        prog=prog, description="git remote helper for bucket backed remotes"
    )
    parser.add_argument(
        "--generate-key",
        action="store_true",
        help="Print a new encryption key for s3.encryptionkey and exit",
    )
    parser.add_argument(
        "--upload-object",
        metavar="ID",
        help="Upload a single local object, replacing the remote copy",
    )
    parser.add_argument("remote", nargs="?", help="Name of the remote")
    parser.add_argument("url", nargs="?", help="URL of the remote")
    return parser


def main(argv: Sequence[str] | None = None, scheme: str | None = None) -> int:
    """Run a remote helper.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])
        scheme: URL scheme this executable serves; None accepts any

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]
    prog = f"git-remote-{scheme}" if scheme else "bucketgit"
    parser = _make_parser(prog)
    try:
        args = parser.parse_args(argv)
        if not args.generate_key and args.remote is None:
            raise _UsageError("the remote URL is required")
    except _UsageError as e:
        parser.print_usage(sys.stderr)
        sys.stderr.write(f"{prog}: error: {e}\n")
        return 1

    if args.generate_key:
        sys.stdout.write(encode_key(generate_key()) + "\n")
        return 0

    default_logging_config()

    # With a single argument git passes only the URL.
    url_text = args.url if args.url is not None else args.remote
    try:
        url = parse_url(url_text)
        if scheme is not None and url.scheme != scheme:
            logger.error("%s cannot handle %s URLs.", prog, url.scheme)
            return 1
        git = LocalGit()
        storage = create_storage(url, git)
    except BucketGitError as e:
        logger.error("%s", e)
        return 1
    logger.debug("Using %r for %s", storage, url)

    progress = ProgressReporter()
    engine = SyncEngine(git, storage, TransferScheduler(progress=progress))
    try:
        if args.upload_object is not None:
            engine.upload_object(ObjectID(args.upload_object))
            return 0
        return RemoteHelper(engine, sys.stdin, sys.stdout, progress).run()
    except BucketGitError as e:
        logger.error("%s", e)
        return 1
    finally:
        engine.close()


def _run(scheme: str | None) -> None:
    signal.signal(signal.SIGINT, signal_int)
    sys.exit(main(scheme=scheme))


def _main() -> None:
    _run(None)


def main_local() -> None:
    _run("local")


def main_s3() -> None:
    _run("s3")


def main_s3enc() -> None:
    _run("s3enc")


if __name__ == "__main__":
    _main()
