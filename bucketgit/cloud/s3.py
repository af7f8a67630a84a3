# s3.py -- Storage of the remote store in an S3 bucket
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

"""Storage of the remote store in an S3 bucket."""

from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import RemoteFileNotFound, StorageFailure
from ..storage import Content, DownloadStream, Storage, join_key

if TYPE_CHECKING:
    from ..config import S3Config

_NOT_FOUND_CODES = frozenset(["404", "NoSuchKey", "NotFound"])


def _is_not_found(e: ClientError) -> bool:
    return e.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES


def create_client(config: "S3Config") -> Any:
    """Create a boto3 S3 client for the given configuration.

    Explicit credentials from git config win; without them boto3 falls back
    to its default credential chain (environment, profile, instance role).
    """
    import boto3

    kwargs: dict[str, Any] = {}
    if config.region:
        kwargs["region_name"] = config.region
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    if config.access_key_id and config.secret_key:
        kwargs["aws_access_key_id"] = config.access_key_id
        kwargs["aws_secret_access_key"] = config.secret_key
    return boto3.client("s3", **kwargs)


class S3Storage(Storage):
    """Storage implementation that uses an S3 bucket."""

    def __init__(self, client: Any, bucket: str, prefix: str = "") -> None:
        """Initialize S3 storage.

        Args:
            client: boto3 S3 client
            bucket: Name of the bucket
            prefix: Optional key prefix within the bucket
        """
        self.client = client
        self.bucket = bucket
        self.prefix = prefix.strip("/")

    def __repr__(self) -> str:
        """Return string representation of S3Storage."""
        return f"{type(self).__name__}({self.bucket!r}, prefix={self.prefix!r})"

    @classmethod
    def from_config(cls, config: "S3Config") -> "S3Storage":
        return cls(create_client(config), config.bucket, config.prefix)

    def _key(self, path: str) -> str:
        return join_key(self.prefix, path)

    def exists(self, path: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=self._key(path))
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise StorageFailure("exists", path, e) from e
        except BotoCoreError as e:
            raise StorageFailure("exists", path, e) from e
        return True

    def upload(self, path: str, content: Content) -> None:
        key = self._key(path)
        try:
            if isinstance(content, bytes):
                self.client.put_object(Bucket=self.bucket, Key=key, Body=content)
            else:
                self.client.upload_fileobj(content, self.bucket, key)
        except (ClientError, BotoCoreError) as e:
            raise StorageFailure("upload", path, e) from e

    def download_stream(self, path: str) -> DownloadStream:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self._key(path))
        except ClientError as e:
            if _is_not_found(e):
                raise RemoteFileNotFound("download", path) from e
            raise StorageFailure("download", path, e) from e
        except BotoCoreError as e:
            raise StorageFailure("download", path, e) from e
        return DownloadStream(response["Body"], path, (ClientError, BotoCoreError))

    def download(self, path: str) -> bytes:
        with self.download_stream(path) as body:
            return body.read()

    def delete(self, path: str) -> None:
        # S3 deletes are idempotent, so check first to report missing refs.
        if not self.exists(path):
            raise RemoteFileNotFound("delete", path)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=self._key(path))
        except (ClientError, BotoCoreError) as e:
            raise StorageFailure("delete", path, e) from e

    def list(self, path: str) -> list[str]:
        key_prefix = self._key(path) + "/"
        strip = len(self.prefix) + 1 if self.prefix else 0
        paths = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=key_prefix):
                for obj in page.get("Contents", []):
                    paths.append(obj["Key"][strip:])
        except (ClientError, BotoCoreError) as e:
            raise StorageFailure("list", path, e) from e
        return sorted(paths)
