#!/usr/bin/python3
# Setup file for bucketgit
# Copyright (C) 2026 bucketgit contributors
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

import re

from setuptools import setup

with open("bucketgit/__init__.py") as f:
    version = ".".join(
        re.search(r"__version__ = \((\d+), (\d+), (\d+)\)", f.read()).groups()
    )

tests_require: list[str] = []


setup(
    name="bucketgit",
    version=version,
    description="git remote helpers that keep a repository in a storage bucket",
    license="Apache-2.0 OR GPL-2.0-or-later",
    python_requires=">=3.10",
    packages=["bucketgit", "bucketgit.cloud"],
    install_requires=[
        "gevent",
        "boto3",
        "botocore",
        "cryptography",
    ],
    extras_require={"test": tests_require},
    entry_points={
        "console_scripts": [
            "git-remote-local=bucketgit.cli:main_local",
            "git-remote-s3=bucketgit.cli:main_s3",
            "git-remote-s3enc=bucketgit.cli:main_s3enc",
        ],
    },
)
