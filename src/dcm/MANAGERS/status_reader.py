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
Running state of compose projects.
"""
import logging
import os
from typing import List, Optional

from ..MODELS.project import Project
from ..RUNNERS.command_runner import CommandRunner
from ..exceptions import CommandTimeoutError, StatusError

logger = logging.getLogger(__name__)

STATUS_TIMEOUT = 30.0


def _nonempty_lines(text: str) -> List[str]:
    return [line for line in text.strip().splitlines() if line.strip()]


class StatusReader:
    """
    Reads how many containers of a project are running.
    """
    def __init__(self, runner: Optional[CommandRunner] = None, timeout: float = STATUS_TIMEOUT):
        """
        Initializes the status reader.

        :param runner: Command runner used for compose invocations.
        :param timeout: Seconds allowed per compose query.
        """
        self.runner = runner or CommandRunner()
        self.timeout = timeout

    async def refresh_status(self, project: Project) -> None:
        """
        Updates ``project.status`` and ``project.running_containers`` in place.

        Compose failures are reported as 'stopped'; a project is never marked
        broken just because it is not running.

        :param project: The project to query.
        :raises StatusError: If the project directory no longer exists.
        """
        if not os.path.isdir(project.path):
            raise StatusError(f"project directory does not exist: {project.path}")

        containers = await self._query(project, "ps", "--quiet")
        if containers is None:
            logger.warning("could not query containers of %s, assuming stopped", project.name)
            project.set_running(0)
            return
        if not containers:
            project.set_running(0)
            return

        running = await self._query(project, "ps", "--services", "--filter", "status=running")
        project.set_running(len(running or []))

    async def _query(self, project: Project, *args: str) -> Optional[List[str]]:
        """Non-empty output lines of a compose query, None if both clients failed."""
        try:
            result = await self.runner.compose(project.path, *args, timeout=self.timeout)
        except CommandTimeoutError as e:
            logger.warning("%s: %s", project.name, e)
            return None
        if not result.ok:
            return None
        return _nonempty_lines(result.stdout)
