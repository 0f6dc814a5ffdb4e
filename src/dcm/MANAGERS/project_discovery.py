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
Discovery of compose projects below a directory.
"""
import logging
import os
from typing import Iterable, Iterator, List, Optional, Tuple

from ..MODELS.project import Project
from .status_reader import StatusReader
from ..exceptions import DiscoveryError, ProjectsNotFoundError, StatusError

logger = logging.getLogger(__name__)

COMPOSE_FILE_NAMES = (
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
)
DEFAULT_MAX_DEPTH = 10

# Files named like this belong to internal tooling, not to real projects.
EXCLUDED_MARKER = "control"


class ProjectDiscovery:
    """
    Walks a directory tree and builds a Project for every compose file found.
    """
    def __init__(self,
                 status_reader: Optional[StatusReader] = None,
                 compose_file_names: Iterable[str] = COMPOSE_FILE_NAMES):
        """
        Initializes project discovery.

        :param status_reader: Reader used to resolve each project's running state.
        :param compose_file_names: Accepted compose file names (exact match).
        """
        self.status_reader = status_reader or StatusReader()
        self.compose_file_names = frozenset(compose_file_names)

    def is_compose_file(self, name: str) -> bool:
        return name in self.compose_file_names and EXCLUDED_MARKER not in name

    def find_compose_files(self, root: str, max_depth: int = DEFAULT_MAX_DEPTH) -> Iterator[Tuple[str, str]]:
        """
        Yields ``(project_dir, compose_file)`` pairs in sorted walk order.

        Depth counts path components below ``root``: entries directly in the
        root are at depth 1. Directories deeper than ``max_depth`` are pruned
        and never listed. Unreadable directories are skipped.

        :raises DiscoveryError: If ``root`` itself cannot be read.
        """
        try:
            os.scandir(root).close()
        except OSError as e:
            raise DiscoveryError(f"failed to search for projects: {e}") from e

        root = os.path.abspath(root)
        for dirpath, dirnames, filenames in os.walk(root):
            rel = os.path.relpath(dirpath, root)
            depth = 0 if rel == os.curdir else len(rel.split(os.sep))

            # Children of this directory sit at depth + 1
            if depth + 1 >= max_depth:
                dirnames[:] = []
            else:
                dirnames.sort()

            if depth + 1 > max_depth:
                continue
            for name in sorted(filenames):
                if self.is_compose_file(name):
                    yield dirpath, os.path.join(dirpath, name)

    async def discover(self, root: str, max_depth: int = DEFAULT_MAX_DEPTH) -> List[Project]:
        """
        Finds all compose projects below ``root`` and resolves their status.

        :param root: Directory to search.
        :param max_depth: Maximum depth of a compose file below ``root``.
        :return: Projects in walk order.
        :raises DiscoveryError: If the walk cannot start.
        :raises ProjectsNotFoundError: If no project was found.
        """
        projects: List[Project] = []
        for project_dir, compose_file in self.find_compose_files(root, max_depth):
            project = Project(
                name=os.path.basename(project_dir),
                path=project_dir,
                compose_file=compose_file,
            )
            try:
                await self.status_reader.refresh_status(project)
            except StatusError as e:
                logger.warning("skipping %s: %s", compose_file, e)
                continue
            projects.append(project)

        if not projects:
            raise ProjectsNotFoundError(root)
        logger.debug("discovered %d projects below %s", len(projects), root)
        return projects
