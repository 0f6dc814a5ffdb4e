# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Image reference parsing.
Splits references like 'nginx:latest' or 'ghcr.io/org/app:1.4' into name, tag
and digest so the tag can be judged as pinned or generic.
"""

from typing import Optional
from dataclasses import dataclass

GENERIC_TAGS = frozenset({"latest", "stable", "edge", "main", "master"})


@dataclass
class ImageReference:
    """
    Parsed image reference.

    Examples:
        - nginx -> name 'nginx', tag 'latest'
        - localhost:5000/app:v1 -> name 'localhost:5000/app', tag 'v1'
        - ghcr.io/org/app@sha256:abc123 -> name 'ghcr.io/org/app', digest 'sha256:abc123'
    """

    name: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse an image reference string.

        Args:
            reference: Image reference string (e.g., 'nginx:latest', 'myuser/myimage:v1')

        Returns:
            Parsed ImageReference object. The tag defaults to 'latest' only
            when neither a tag nor a digest is given.
        """
        reference = reference.strip()
        if not reference:
            raise ValueError("Empty image reference")

        digest = None
        if "@" in reference:
            reference, digest = reference.rsplit("@", 1)

        # A colon followed by a slash belongs to a registry port, not a tag
        tag = None
        last_colon = reference.rfind(":")
        if last_colon != -1:
            after_colon = reference[last_colon + 1:]
            if "/" not in after_colon:
                tag = after_colon
                reference = reference[:last_colon]

        if not tag and not digest:
            tag = cls.DEFAULT_TAG

        return cls(name=reference, tag=tag, digest=digest)

    @property
    def version_tag(self) -> str:
        """The part of the reference that names a version: tag, else digest."""
        return self.tag or self.digest or self.DEFAULT_TAG


def is_generic_tag(tag: str) -> bool:
    return tag in GENERIC_TAGS
