# utils.py -- Utilities for running the real git executable in tests
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

"""Utilities for running the real git executable in tests."""

import os
import subprocess

from .. import SkipTest, TestCase

_DEFAULT_GIT = "git"

_GIT_ENV = {
    "GIT_AUTHOR_NAME": "Test Author",
    "GIT_AUTHOR_EMAIL": "author@example.com",
    "GIT_AUTHOR_DATE": "1700000000 +0000",
    "GIT_COMMITTER_NAME": "Test Committer",
    "GIT_COMMITTER_EMAIL": "committer@example.com",
    "GIT_COMMITTER_DATE": "1700000000 +0000",
    "GIT_CONFIG_NOSYSTEM": "1",
}


def git_env(**extra: str) -> dict[str, str]:
    """Return an environment for git with a fixed identity and no user config."""
    env = dict(os.environ)
    env.pop("GIT_DIR", None)
    env.update(_GIT_ENV)
    env.update(extra)
    return env


def git_version(git_path: str = _DEFAULT_GIT) -> tuple[int, ...] | None:
    """Attempt to determine the version of git currently installed.

    Args:
      git_path: Path to the git executable; defaults to the version in
        the system path.
    Returns: A tuple of ints of the form (major, minor, point), or None if no
        git installation was found.
    """
    try:
        _, output = run_git(["--version"], git_path=git_path, capture_stdout=True)
    except OSError:
        return None
    version_prefix = b"git version "
    if not output.startswith(version_prefix):
        return None
    nums = output[len(version_prefix) :].split(b".")[:3]
    return tuple(int(x) for x in nums if x.strip().isdigit())


def require_git_version(
    required_version: tuple[int, ...], git_path: str = _DEFAULT_GIT
) -> None:
    """Require git version >= version, or skip the calling test."""
    found_version = git_version(git_path=git_path)
    if found_version is None:
        raise SkipTest("Test requires git, which was not found")
    if found_version < required_version:
        required = ".".join(map(str, required_version))
        found = ".".join(map(str, found_version))
        raise SkipTest(f"Test requires git >= {required}, found {found}")


def run_git(
    args: list[str],
    git_path: str = _DEFAULT_GIT,
    input: bytes | None = None,
    capture_stdout: bool = False,
    **popen_kwargs,
) -> tuple[int, bytes | None]:
    """Run a git command.

    Input is piped from the input parameter and output is sent to the standard
    streams, unless capture_stdout is set.

    Args:
      args: A list of args to the git command.
      git_path: Path to to the git executable.
      input: Input data to be sent to stdin.
      capture_stdout: Whether to capture and return stdout.
      popen_kwargs: Additional kwargs for subprocess.Popen;
        stdin/stdout args are ignored.
    Returns: A tuple of (returncode, stdout contents). If capture_stdout is
        False, None will be returned as stdout contents.
    Raises:
      OSError: if the git executable was not found.
    """
    popen_kwargs.setdefault("env", git_env())
    popen_kwargs["stdin"] = subprocess.PIPE
    if capture_stdout:
        popen_kwargs["stdout"] = subprocess.PIPE
    else:
        popen_kwargs.pop("stdout", None)
    p = subprocess.Popen([git_path, *args], **popen_kwargs)
    stdout, _ = p.communicate(input=input)
    return (p.returncode, stdout)


def run_git_or_fail(
    args: list[str],
    git_path: str = _DEFAULT_GIT,
    input: bytes | None = None,
    **popen_kwargs,
) -> bytes:
    """Run a git command, capture stdout/stderr, and fail if git fails."""
    popen_kwargs["stderr"] = subprocess.STDOUT
    returncode, stdout = run_git(
        args, git_path=git_path, input=input, capture_stdout=True, **popen_kwargs
    )
    if returncode != 0:
        raise AssertionError(
            f"git with args {args!r} failed with {returncode}: {stdout!r}"
        )
    assert stdout is not None
    return stdout


class CompatTestCase(TestCase):
    """Test case that requires git for compatibility checks.

    Subclasses can change the git version required by overriding
    min_git_version.
    """

    min_git_version: tuple[int, ...] = (2, 28, 0)

    def setUp(self) -> None:
        super().setUp()
        require_git_version(self.min_git_version)

    def init_repo(self, bare: bool = False) -> str:
        """Create a new repository in a temporary directory."""
        path = self.make_temp_dir()
        args = ["init", "--quiet", "-b", "master"]
        if bare:
            args.append("--bare")
        run_git_or_fail([*args, path])
        return path

    def commit_files(self, repo: str, files: dict[str, bytes], message: str) -> str:
        """Write files into a working tree and commit them, returning the id."""
        for name, data in files.items():
            path = os.path.join(repo, name)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        run_git_or_fail(["add", "--all"], cwd=repo)
        run_git_or_fail(["commit", "--quiet", "-m", message], cwd=repo)
        return run_git_or_fail(["rev-parse", "HEAD"], cwd=repo).decode().strip()
