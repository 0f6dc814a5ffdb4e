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
Pull, recreate and lifecycle operations on compose projects.
"""
import logging
from typing import Optional

from ..MODELS.project import Project
from ..PARSERS.error_sanitizer import describe_failure
from ..RUNNERS.command_runner import CommandResult, CommandRunner
from .status_reader import StatusReader
from ..exceptions import ComposeCommandError, CommandTimeoutError, StatusError

logger = logging.getLogger(__name__)

PULL_TIMEOUT = 120.0


class UpdateExecutor:
    """
    Runs compose operations for one project at a time.

    Every operation tries the modern compose client first and the legacy
    one second; only the second failure is reported.
    """

    def __init__(self,
                 runner: Optional[CommandRunner] = None,
                 status_reader: Optional[StatusReader] = None,
                 pull_timeout: float = PULL_TIMEOUT):
        """
        Initializes the executor.

        :param runner: Command runner used for compose invocations.
        :param status_reader: Reader used to refresh status after an operation.
        :param pull_timeout: Seconds allowed for pulling a project's images.
        """
        self.runner = runner or CommandRunner()
        self.status_reader = status_reader or StatusReader(self.runner)
        self.pull_timeout = pull_timeout

    async def _compose(self,
                       operation: str,
                       project: Project,
                       *args: str,
                       timeout: Optional[float] = None) -> CommandResult:
        result = await self.runner.compose(project.path, *args, timeout=timeout)
        if not result.ok:
            detail = describe_failure(result.output, f"exit status {result.returncode}")
            logger.debug("%s of %s failed: %s", operation, project.name, result.output)
            raise ComposeCommandError(operation, detail)
        return result

    async def start(self, project: Project) -> None:
        """Starts the project's containers in the background."""
        await self._compose("start", project, "up", "-d")
        await self.status_reader.refresh_status(project)

    async def stop(self, project: Project) -> None:
        """Stops and removes the project's containers."""
        await self._compose("stop", project, "down")
        project.set_running(0)

    async def restart(self, project: Project) -> None:
        await self._compose("restart", project, "restart")
        await self.status_reader.refresh_status(project)

    async def pull_only(self, project: Project) -> None:
        """
        Pulls the latest images without touching running containers.

        :raises ComposeCommandError: If both compose clients fail to pull.
        :raises CommandTimeoutError: If the pull exceeds the pull timeout.
        """
        await self._compose("pull", project, "pull", timeout=self.pull_timeout)
        await self._refresh_after_update(project)

    async def pull_and_recreate(self, project: Project) -> None:
        """
        Pulls the latest images and recreates all containers from them.

        Orphan removal in between is best effort. On success the project's
        update flags are cleared and its timestamp refreshed.

        :raises ComposeCommandError: If the pull or the recreate fails.
        :raises CommandTimeoutError: If the pull exceeds the pull timeout.
        """
        await self._compose("pull", project, "pull", timeout=self.pull_timeout)
        await self._remove_orphans(project)
        await self._compose("recreate", project, "up", "-d", "--force-recreate", "--remove-orphans")

        project.clear_updates()
        project.touch()
        await self._refresh_after_update(project)

    async def _refresh_after_update(self, project: Project) -> None:
        # A directory that vanished after a successful update reads as stopped.
        try:
            await self.status_reader.refresh_status(project)
        except StatusError as e:
            logger.warning("cannot refresh status of %s: %s", project.name, e)
            project.set_running(0)

    async def _remove_orphans(self, project: Project) -> None:
        # Stale orphans make the legacy client fail recreation with
        # KeyError: 'ContainerConfig'.
        try:
            result = await self.runner.compose(project.path, "down", "--remove-orphans")
        except CommandTimeoutError as e:
            logger.debug("orphan removal for %s timed out: %s", project.name, e)
            return
        if not result.ok:
            logger.debug("orphan removal for %s failed, continuing", project.name)
