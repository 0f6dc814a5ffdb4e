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
Resolution of human-meaningful versions for images tagged 'latest' and friends.
"""
import json
import logging
from typing import Dict, List, Optional

from .image_reference import is_generic_tag
from ..RUNNERS.command_runner import CommandRunner
from ..exceptions import CommandTimeoutError

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 5.0
PROBE_LINES = 3

OCI_VERSION_LABEL = "org.opencontainers.image.version"
INFORMAL_VERSION_LABELS = ("version", "VERSION")


def parse_version_output(output: str) -> Optional[str]:
    """
    Extracts a version from the output of ``<image> --version``.

    A ``version:`` labelled line wins; otherwise the first token that, after
    dropping a leading v/V, starts with a digit and contains a dot.
    Only the first few lines are inspected.
    """
    lines = output.strip().splitlines()
    for line in lines[:PROBE_LINES]:
        line = line.strip()
        if "version:" in line.lower():
            value = line.split(":", 1)[1].strip()
            if value:
                return value
        for token in line.split():
            if token[:1] in ("v", "V"):
                token = token[1:]
            if token[:1].isdigit() and "." in token:
                return token
    return None


def version_from_labels(labels: Optional[Dict[str, str]], tag: str) -> Optional[str]:
    """
    Picks a version from image config labels.

    The OCI label is only trusted when it says something the tag does not.
    """
    if not labels:
        return None
    oci = labels.get(OCI_VERSION_LABEL)
    if oci and oci != tag:
        return oci
    for key in INFORMAL_VERSION_LABELS:
        if labels.get(key):
            return labels[key]
    return None


class VersionResolver:
    """
    Determines the version an image actually runs.
    Pinned tags are returned as-is; generic tags are probed.
    """

    def __init__(self, runner: Optional[CommandRunner] = None, probe_timeout: float = PROBE_TIMEOUT):
        """
        Initialize the resolver.

        Args:
            runner: Command runner used for docker invocations.
            probe_timeout: Seconds allowed for ``docker run <image> --version``.
        """
        self.runner = runner or CommandRunner()
        self.probe_timeout = probe_timeout

    async def resolve(self, image: str, tag: str) -> str:
        """
        Resolve the version of ``image``.

        Args:
            image: Full image reference as used by the project.
            tag: The tag taken from the reference.

        Returns:
            A version string; the tag itself when nothing better is found.
            Probe failures never propagate.
        """
        if not is_generic_tag(tag):
            return tag

        version = await self._probe_run(image)
        if version:
            return version

        version = version_from_labels(await self._inspect_labels(image), tag)
        if version:
            return version

        return tag

    async def _probe_run(self, image: str) -> Optional[str]:
        args: List[str] = ["docker", "run", "--rm", image, "--version"]
        try:
            result = await self.runner.run(args, timeout=self.probe_timeout)
        except CommandTimeoutError:
            logger.debug("version probe of %s timed out", image)
            return None
        if not result.ok:
            return None
        return parse_version_output(result.stdout)

    async def _inspect_labels(self, image: str) -> Optional[Dict[str, str]]:
        args = ["docker", "image", "inspect", image, "--format", "{{json .Config.Labels}}"]
        try:
            result = await self.runner.run(args, timeout=self.probe_timeout)
        except CommandTimeoutError:
            return None
        if not result.ok:
            return None
        try:
            labels = json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.debug("unparseable labels for %s: %r", image, result.stdout)
            return None
        return labels if isinstance(labels, dict) else None
