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
Persistent cache of discovered projects and their image information.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from ..MODELS.project import Project
from ..exceptions import CacheError, CacheUnusableError

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(hours=1)

_PROJECT_LIST = TypeAdapter(List[Project])


class CacheStore:
    """
    Stores the project collection as an indented JSON array.

    The file's modification time is the staleness clock: there is no
    version or timestamp inside the file.
    """

    def __init__(self, cache_file: str):
        """
        Initialize the cache store.

        Args:
            cache_file: Path of the JSON cache file.
        """
        self.cache_file = Path(cache_file)

    def save(self, projects: Sequence[Project]) -> None:
        """
        Write all projects to the cache file, replacing its content.

        Raises:
            CacheError: If the directory cannot be created or the file written.
        """
        data = _PROJECT_LIST.dump_json(list(projects), indent=2)
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, 'wb') as f:
                f.write(data)
        except OSError as e:
            raise CacheError(f"failed to write cache file {self.cache_file}: {e}") from e
        logger.debug("saved %d projects to %s", len(projects), self.cache_file)

    def age(self, now: Optional[datetime] = None) -> timedelta:
        """
        Time since the cache file was last written.

        Raises:
            CacheUnusableError: If the file does not exist.
        """
        try:
            mtime = self.cache_file.stat().st_mtime
        except OSError as e:
            raise CacheUnusableError("cache file not found") from e
        now = now or datetime.now(timezone.utc)
        return now - datetime.fromtimestamp(mtime, timezone.utc)

    def load(self, max_age: timedelta = DEFAULT_MAX_AGE, now: Optional[datetime] = None) -> List[Project]:
        """
        Load the cached projects.

        A cache whose age is equal to or greater than ``max_age`` is expired.

        Args:
            max_age: Staleness window.
            now: Reference time, defaults to the current time.

        Returns:
            The cached projects.

        Raises:
            CacheUnusableError: If the file is missing, expired, unreadable
                or malformed. Callers rediscover projects in that case.
        """
        if self.age(now) >= max_age:
            raise CacheUnusableError("cache expired")

        try:
            with open(self.cache_file, 'rb') as f:
                data = f.read()
        except OSError as e:
            raise CacheUnusableError(f"failed to read cache: {e}") from e

        try:
            return _PROJECT_LIST.validate_json(data)
        except ValidationError as e:
            raise CacheUnusableError(f"failed to parse cache: {e.error_count()} errors") from e


def resolve_cache_file(system_dir: str, user_dir: str, file_name: str = "cache.json") -> str:
    """
    Picks the system-wide cache when it is writable, the user cache otherwise.

    Raises:
        CacheError: If the user cache directory cannot be created either.
    """
    try:
        os.makedirs(system_dir, exist_ok=True)
        probe = os.path.join(system_dir, ".test")
        with open(probe, 'w'):
            pass
        os.remove(probe)
        return os.path.join(system_dir, file_name)
    except OSError:
        logger.debug("system cache %s not writable, using %s", system_dir, user_dir)

    try:
        os.makedirs(user_dir, exist_ok=True)
    except OSError as e:
        raise CacheError(f"failed to create cache directory {user_dir}: {e}") from e
    return os.path.join(user_dir, file_name)
