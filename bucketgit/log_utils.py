# log_utils.py -- Logging utilities for bucketgit
# Copyright (C) 2010 Google, Inc.
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

"""Logging utilities for bucketgit.

The remote helper talks to git over stdout, so every diagnostic goes to
stderr through the ``bucketgit`` logger. When bucketgit is used as a library
the logger carries a null handler and stays silent.

Git controls the amount of output with ``option verbosity <n>``; see
:func:`set_verbosity`. ``GIT_TRACE`` adds a debug trace the same way it
does for git itself.
"""

import logging
import os
import sys
from collections.abc import Callable
from typing import TextIO

getLogger = logging.getLogger


class _NullHandler(logging.Handler):
    """No-op logging handler to avoid unexpected logging warnings."""

    def emit(self, record: logging.LogRecord) -> None:
        pass


_NULL_HANDLER = _NullHandler()
_BUCKETGIT_LOGGER = getLogger("bucketgit")
_BUCKETGIT_LOGGER.addHandler(_NULL_HANDLER)

DEFAULT_VERBOSITY = 1

_stderr_handler: logging.Handler | None = None
_trace_handler: logging.Handler | None = None
_verbosity = DEFAULT_VERBOSITY


def _get_trace_target() -> str | int | None:
    """Get the trace target from GIT_TRACE environment variable.

    Returns:
        - None if tracing is disabled
        - 2 for stderr output (values "1", "2", "true")
        - int (3-9) for file descriptor
        - str for file path (absolute paths or directories)
    """
    trace_value = os.environ.get("GIT_TRACE", "")

    if not trace_value or trace_value.lower() in ("0", "false"):
        return None

    if trace_value.lower() in ("1", "2", "true"):
        return 2

    try:
        fd = int(trace_value)
        if 3 <= fd <= 9:
            return fd
    except ValueError:
        pass

    if os.path.isabs(trace_value):
        return trace_value

    return None


def _open_trace_handler() -> logging.Handler | None:
    """Build a handler for the GIT_TRACE target, if tracing is enabled."""
    trace_target = _get_trace_target()
    if trace_target is None:
        return None

    if trace_target == 2:
        return logging.StreamHandler(sys.stderr)

    if isinstance(trace_target, int):
        try:
            return logging.StreamHandler(os.fdopen(trace_target, "w", buffering=1))
        except OSError as e:
            sys.stderr.write(
                f"Warning: Failed to open GIT_TRACE fd {trace_target}: {e}\n"
            )
            return None

    if os.path.isdir(trace_target):
        # For directories, create a file per process
        filename = os.path.join(trace_target, f"trace.{os.getpid()}")
    else:
        filename = trace_target
    try:
        return logging.FileHandler(filename, mode="a")
    except OSError as e:
        sys.stderr.write(
            f"Warning: Failed to open GIT_TRACE file {trace_target}: {e}\n"
        )
        return None


def default_logging_config(stream: TextIO | None = None) -> None:
    """Set up the bucketgit logger for use by an executable.

    Messages go to ``stream`` (stderr by default) without decoration, the way
    git prints remote output. If GIT_TRACE is set, a timestamped debug trace
    is written to its target as well.
    """
    global _stderr_handler, _trace_handler

    remove_null_handler()
    for handler in (_stderr_handler, _trace_handler):
        if handler is not None:
            _BUCKETGIT_LOGGER.removeHandler(handler)

    _stderr_handler = logging.StreamHandler(
        stream if stream is not None else sys.stderr
    )
    _stderr_handler.setFormatter(logging.Formatter("%(message)s"))
    _BUCKETGIT_LOGGER.addHandler(_stderr_handler)
    _BUCKETGIT_LOGGER.propagate = False

    _trace_handler = _open_trace_handler()
    if _trace_handler is not None:
        _trace_handler.setFormatter(
            logging.Formatter("%(asctime)s %(name)s %(levelname)s: %(message)s")
        )
        _trace_handler.setLevel(logging.DEBUG)
        _BUCKETGIT_LOGGER.addHandler(_trace_handler)

    set_verbosity(DEFAULT_VERBOSITY)


def remove_null_handler() -> None:
    """Remove the null handler from the bucketgit logger.

    If a caller wants to set up logging using something other than
    default_logging_config, calling this function first is a minor
    optimization to avoid the overhead of using the _NullHandler.
    """
    _BUCKETGIT_LOGGER.removeHandler(_NULL_HANDLER)


def verbosity_to_level(verbosity: int) -> int:
    """Map a git verbosity value onto a logging level.

    0 is quiet (errors and warnings only), 1 is git's default and anything
    higher was requested with ``-v``.
    """
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def get_verbosity() -> int:
    """Return the verbosity most recently set by git."""
    return _verbosity


def set_verbosity(verbosity: int) -> None:
    """Apply ``option verbosity`` to the bucketgit logger.

    With GIT_TRACE active the logger itself stays at DEBUG and only the
    stderr handler follows the requested verbosity.
    """
    global _verbosity

    _verbosity = verbosity
    level = verbosity_to_level(verbosity)
    if _stderr_handler is not None:
        _stderr_handler.setLevel(level)
    if _trace_handler is not None:
        _BUCKETGIT_LOGGER.setLevel(logging.DEBUG)
    else:
        _BUCKETGIT_LOGGER.setLevel(level)


def format_progress(done: int, total: int) -> str:
    """Format a progress fraction as ``"<pct>% (<done>/<total>)"``."""
    percent = 100 if total == 0 else done * 100 // total
    return f"{percent}% ({done}/{total})"


ProgressCallback = Callable[[str, int, int], None]


class ProgressReporter:
    """Writes transfer progress to stderr, the way git prints it.

    Intermediate updates end in a carriage return so the terminal line is
    rewritten in place; :meth:`done` terminates the line. Nothing is written
    at verbosity 0 or once git has sent ``option progress false``.
    """

    def __init__(self, stream: TextIO | None = None, enabled: bool = True) -> None:
        self.stream = stream if stream is not None else sys.stderr
        self.enabled = enabled

    def _write(self, text: str) -> None:
        if not self.enabled or get_verbosity() < 1:
            return
        self.stream.write(text)
        self.stream.flush()

    def __call__(self, label: str, done: int, total: int) -> None:
        if done >= total:
            self.done(label, done, total)
        else:
            self._write(f"{label}: {format_progress(done, total)}\r")

    def done(self, label: str, done: int, total: int) -> None:
        self._write(f"{label}: {format_progress(done, total)}, done.\n")
