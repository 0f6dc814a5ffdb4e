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
Image enumeration and update detection for compose projects.
"""
import logging
from typing import List, Optional

import yaml

from ..MODELS.project import ImageInfo, NOT_PULLED, TIMEOUT, Project
from ..PARSERS.compose_parser import ComposeParser
from ..PARSERS.error_sanitizer import describe_failure
from ..REGISTRY.image_reference import ImageReference
from ..REGISTRY.version_resolver import VersionResolver
from ..RUNNERS.command_runner import CommandRunner
from .update_executor import PULL_TIMEOUT
from ..exceptions import ComposeCommandError, CommandTimeoutError

logger = logging.getLogger(__name__)

COMPOSE_PROJECT_LABEL = "com.docker.compose.project"
NEWER_SUFFIX = " (newer)"


def version_tag(image: str) -> str:
    """Tag of an image reference, 'latest' when it has none."""
    try:
        return ImageReference.parse(image).version_tag
    except ValueError:
        return ImageReference.DEFAULT_TAG


class VersionChecker:
    """
    Fills a project's per-image version information.
    """

    def __init__(self,
                 runner: Optional[CommandRunner] = None,
                 resolver: Optional[VersionResolver] = None,
                 pull_timeout: float = PULL_TIMEOUT):
        """
        Initializes the version checker.

        :param runner: Command runner used for docker and compose invocations.
        :param resolver: Resolver turning generic tags into versions.
        :param pull_timeout: Seconds allowed for pulling a single image.
        """
        self.runner = runner or CommandRunner()
        self.resolver = resolver or VersionResolver(self.runner)
        self.pull_timeout = pull_timeout

    async def list_images(self, project: Project) -> List[str]:
        """
        Lists the images of a project and stores them on it.

        Asks compose to render the configuration; if neither client can,
        the compose file is read directly.

        :raises ComposeCommandError: If no source yields the image list.
        """
        result = await self.runner.compose(project.path, "config", "--images")
        if result.ok:
            images = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        else:
            images = self._images_from_file(project, result.output)

        project.images = images
        return images

    def _images_from_file(self, project: Project, tool_output: str) -> List[str]:
        logger.debug("compose config failed for %s, reading %s", project.name, project.compose_file)
        try:
            return ComposeParser.for_project(project.path).images(project.compose_file)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.debug("cannot read %s: %s", project.compose_file, e)
            raise ComposeCommandError("list images", describe_failure(tool_output, str(e))) from e

    async def local_image_id(self, image: str) -> str:
        """ID of the local copy of ``image``, '' if it has not been pulled."""
        result = await self.runner.run(["docker", "images", image, "--format", "{{.ID}}"])
        if not result.ok:
            return ""
        lines = result.stdout.strip().splitlines()
        return lines[0].strip() if lines else ""

    async def update_image_info(self, project: Project) -> None:
        """
        Checks every image of ``project`` for a newer version in its registry.

        Each image is pulled (quietly, with a timeout) and its local ID compared
        before and after. Images never pulled are reported as 'not pulled';
        pulls that time out are reported as 'timeout' and do not count as
        updates.

        :raises ComposeCommandError: If the project's images cannot be listed.
        """
        images = await self.list_images(project)
        project.image_info = {}

        for image in images:
            project.set_image_info(await self._check_image(project, image))

        project.recompute_has_updates()

    async def _check_image(self, project: Project, image: str) -> ImageInfo:
        tag = version_tag(image)

        current_id = await self.local_image_id(image)
        if not current_id:
            return ImageInfo(name=image, current_version=tag, latest_version=NOT_PULLED, has_update=True)

        current_version = await self.resolver.resolve(image, tag)

        try:
            pulled = await self.runner.run(
                ["docker", "pull", "--quiet", image],
                cwd=project.path,
                timeout=self.pull_timeout,
            )
        except CommandTimeoutError:
            logger.warning("pulling %s timed out", image)
            return ImageInfo(name=image, current_version=current_version, latest_version=TIMEOUT)

        latest_id = await self.local_image_id(image) if pulled.ok else ""
        has_update = bool(latest_id) and latest_id != current_id
        latest_version = current_version + NEWER_SUFFIX if has_update else current_version
        return ImageInfo(
            name=image,
            current_version=current_version,
            latest_version=latest_version,
            has_update=has_update,
        )

    async def load_running_image_info(self, project: Project) -> None:
        """
        Records the versions of the images the project's containers run now.

        Nothing is pulled, so no update is reported.

        :raises ComposeCommandError: If docker cannot list the containers.
        """
        label = f"label={COMPOSE_PROJECT_LABEL}={project.name}"
        result = await self.runner.run(["docker", "ps", "--filter", label, "--format", "{{.Image}}"])
        if not result.ok:
            raise ComposeCommandError("list containers", describe_failure(result.output, "docker ps failed"))

        for image in result.stdout.splitlines():
            image = image.strip()
            if not image:
                continue
            version = await self.resolver.resolve(image, version_tag(image))
            project.set_image_info(ImageInfo(name=image, current_version=version, latest_version=version))
