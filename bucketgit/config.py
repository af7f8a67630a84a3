# config.py -- Remote URLs and backend configuration
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

"""Remote URLs and backend configuration.

A remote is addressed by a URL whose scheme names the backend:

* ``local:///abs/path`` -- a directory on the local filesystem
* ``s3://bucket[/prefix]`` -- an S3 bucket
* ``s3enc://bucket[/prefix]`` -- an S3 bucket with encrypted contents

Credentials and other backend settings are read from the ``s3.*`` keys of
the local repository's git configuration.
"""

import os
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlsplit

from .errors import InvalidArgument
from .log_utils import getLogger
from .storage import LocalStorage, Storage

logger = getLogger(__name__)

SCHEMES = ("local", "s3", "s3enc")

ACCESS_KEY_ID_KEY = "s3.accesskeyid"
SECRET_KEY_KEY = "s3.secretkey"
REGION_KEY = "s3.region"
ENDPOINT_URL_KEY = "s3.endpointurl"
ENCRYPTION_KEY_KEY = "s3.encryptionkey"


class ConfigSource(Protocol):
    def get_config(self, name: str) -> str | None: ...


@dataclass(frozen=True)
class RemoteURL:
    """A parsed remote URL.

    For ``local`` URLs ``location`` is the directory; for the S3 schemes it
    is the bucket name and ``prefix`` the key prefix within it.
    """

    scheme: str
    location: str
    prefix: str = ""

    def __str__(self) -> str:
        if self.scheme == "local":
            return f"local://{self.location}"
        if self.prefix:
            return f"{self.scheme}://{self.location}/{self.prefix}"
        return f"{self.scheme}://{self.location}"


def parse_url(url: str) -> RemoteURL:
    """Parse a remote URL.

    Raises:
      InvalidArgument: if the scheme is unknown or the URL incomplete
    """
    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme not in SCHEMES:
        raise InvalidArgument(f"Unsupported remote URL: {url!r}")
    if scheme == "local":
        if parts.netloc:
            raise InvalidArgument(
                f"Local remote URLs must have an absolute path: {url!r}"
            )
        path = parts.path
        if not path or not os.path.isabs(path):
            raise InvalidArgument(
                f"Local remote URLs must have an absolute path: {url!r}"
            )
        return RemoteURL(scheme, path)
    if not parts.netloc:
        raise InvalidArgument(f"Missing bucket name in remote URL: {url!r}")
    return RemoteURL(scheme, parts.netloc, parts.path.strip("/"))


@dataclass(frozen=True)
class S3Config:
    """Settings for an S3 backed remote."""

    bucket: str
    prefix: str = ""
    region: str | None = None
    access_key_id: str | None = None
    secret_key: str | None = None
    endpoint_url: str | None = None
    encryption_key: str | None = None

    @classmethod
    def from_git(cls, git: ConfigSource, url: RemoteURL) -> "S3Config":
        """Read the ``s3.*`` settings from git configuration."""
        config = cls(
            bucket=url.location,
            prefix=url.prefix,
            region=git.get_config(REGION_KEY),
            access_key_id=git.get_config(ACCESS_KEY_ID_KEY),
            secret_key=git.get_config(SECRET_KEY_KEY),
            endpoint_url=git.get_config(ENDPOINT_URL_KEY),
            encryption_key=git.get_config(ENCRYPTION_KEY_KEY),
        )
        if bool(config.access_key_id) != bool(config.secret_key):
            logger.warning(
                "Only one of %s and %s is set; using the default credentials.",
                ACCESS_KEY_ID_KEY,
                SECRET_KEY_KEY,
            )
        return config


def create_storage(url: RemoteURL, git: ConfigSource) -> Storage:
    """Create the storage backend for a remote URL.

    Raises:
      InvalidArgument: if the configuration for the backend is incomplete
    """
    if url.scheme == "local":
        return LocalStorage(url.location)
    # boto3 is only imported for S3 remotes.
    from .cloud.s3 import S3Storage

    config = S3Config.from_git(git, url)
    storage: Storage = S3Storage.from_config(config)
    if url.scheme == "s3enc":
        from .encryption import EncryptedStorage, decode_key

        if not config.encryption_key:
            raise InvalidArgument(
                f"Missing encryption key; set {ENCRYPTION_KEY_KEY} in git config "
                "(generate one with --generate-key)"
            )
        storage = EncryptedStorage(storage, decode_key(config.encryption_key))
    return storage
