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
Coordination of update batches and version-check sweeps over many projects.
"""
import asyncio
import logging
from typing import AsyncIterator, Callable, Collection, Iterable, List, Optional, Sequence

from ..MODELS.project import Project
from ..MODELS.update_batch import CheckResult, UpdateBatch, UpdateMode, UpdateResult, UpdateState
from ..REGISTRY.cache_store import CacheStore
from .update_executor import UpdateExecutor
from .version_checker import VersionChecker
from ..exceptions import CacheError, CommandTimeoutError, DcmError

logger = logging.getLogger(__name__)

OK_MESSAGE = "OK"
TIMEOUT_MESSAGE = "timeout"


class UpdateOrchestrator:
    """
    Drives the update executor and version checker across the project list.

    Parallel batches launch one task per selected project at once. Version
    checks run strictly one project after another so that registries and
    ``docker run --version`` probes are not flooded.
    """
    def __init__(self,
                 projects: Sequence[Project],
                 executor: Optional[UpdateExecutor] = None,
                 checker: Optional[VersionChecker] = None,
                 cache: Optional[CacheStore] = None):
        """
        Initializes the orchestrator.

        :param projects: Projects addressed by their index in this sequence.
        :param executor: Executor for pull and recreate operations.
        :param checker: Checker filling per-image version information.
        :param cache: Cache store saved after a full version sweep.
        """
        self.projects = projects
        self.executor = executor or UpdateExecutor()
        self.checker = checker or VersionChecker(self.executor.runner)
        self.cache = cache

    async def run_updates(self,
                          selected: Iterable[int],
                          mode: UpdateMode = UpdateMode.PULL,
                          restart: Collection[int] = (),
                          on_complete: Optional[Callable[[UpdateResult], None]] = None) -> UpdateBatch:
        """
        Updates all selected projects concurrently.

        In PULL mode every project is only pulled. In RESTART mode projects in
        ``restart`` are pulled and recreated, the others only pulled. A failing
        project never stops the others.

        :param selected: Indices of the projects to update. Unknown indices are ignored.
        :param mode: Batch mode.
        :param restart: Indices to recreate in RESTART mode.
        :param on_complete: Called with each result as soon as it is available.
        :return: The finished batch.
        """
        batch = UpdateBatch(i for i in selected if 0 <= i < len(self.projects))
        restart = set(restart)

        tasks = []
        for index in batch.selected:
            recreate = mode == UpdateMode.RESTART and index in restart
            batch.mark_updating(index)
            tasks.append(asyncio.ensure_future(self._update_one(index, recreate)))

        for next_done in asyncio.as_completed(tasks):
            result = await next_done
            batch.record(result)
            if on_complete:
                on_complete(result)

        return batch

    async def _update_one(self, index: int, recreate: bool) -> UpdateResult:
        project = self.projects[index]
        try:
            if recreate:
                await self.executor.pull_and_recreate(project)
            else:
                await self.executor.pull_only(project)
        except CommandTimeoutError as e:
            logger.warning("update of %s timed out: %s", project.name, e)
            return UpdateResult(index=index, project_name=project.name, state=UpdateState.FAILED,
                                message=TIMEOUT_MESSAGE, timed_out=True)
        except DcmError as e:
            return UpdateResult(index=index, project_name=project.name, state=UpdateState.FAILED,
                                message=str(e))
        except Exception as e:
            # One broken project must still yield its result.
            logger.exception("unexpected error updating %s", project.name)
            return UpdateResult(index=index, project_name=project.name, state=UpdateState.FAILED,
                                message=f"{type(e).__name__}: {e}")
        return UpdateResult(index=index, project_name=project.name, state=UpdateState.SUCCESS,
                            message=OK_MESSAGE)

    async def iter_version_checks(self) -> AsyncIterator[CheckResult]:
        """
        Checks the projects' images one project at a time.

        The next project is only started once the caller has received the
        previous result.
        """
        total = len(self.projects)
        for index, project in enumerate(self.projects):
            try:
                await self.checker.update_image_info(project)
            except DcmError as e:
                logger.warning("checking %s failed: %s", project.name, e)
                yield CheckResult(index=index, total=total, project_name=project.name, error=str(e))
                continue
            updates = sum(1 for info in project.image_info.values() if info.has_update)
            yield CheckResult(index=index, total=total, project_name=project.name, updates_available=updates)

    async def check_all(self,
                        on_progress: Optional[Callable[[CheckResult], None]] = None) -> List[CheckResult]:
        """
        Runs a full version sweep and saves the cache once it is complete.

        A failed save is logged; the in-memory projects stay authoritative.

        :param on_progress: Called after each project.
        :return: One result per project, in project order.
        """
        results = []
        async for result in self.iter_version_checks():
            results.append(result)
            if on_progress:
                on_progress(result)
        self.save_cache()
        return results

    def save_cache(self) -> Optional[str]:
        """
        Persists the projects if a cache is configured.

        :return: A warning message if the save failed, else None.
        """
        if self.cache is None:
            return None
        try:
            self.cache.save(self.projects)
        except CacheError as e:
            logger.warning("failed to save cache: %s", e)
            return str(e)
        return None
