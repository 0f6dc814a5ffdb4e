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
Runtime configuration read from the environment and an optional .env file.
"""
import os
from datetime import timedelta
from typing import Dict, List, Mapping, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel

from ..MANAGERS.project_discovery import COMPOSE_FILE_NAMES, DEFAULT_MAX_DEPTH
from ..REGISTRY.cache_store import resolve_cache_file

SYSTEM_CACHE_DIR = "/var/cache/docker-compose-manager"
USER_CACHE_DIR = os.path.join("~", ".cache", "docker-compose-manager")

ENV_PREFIX = "DCM_"


class Settings(BaseModel):
    """
    Engine settings. Every field can be overridden by a ``DCM_<FIELD>``
    environment variable, e.g. ``DCM_SEARCH_DIR``.
    """
    search_dir: str = "/home/dockeruser/docker"
    max_depth: int = DEFAULT_MAX_DEPTH
    cache_max_age: float = 3600.0
    cache_file: Optional[str] = None
    probe_timeout: float = 5.0
    pull_timeout: float = 120.0
    compose_file_names: List[str] = list(COMPOSE_FILE_NAMES)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = None) -> "Settings":
        """
        Builds settings from ``DCM_*`` variables.

        :param environ: Variables to read; defaults to ``os.environ`` after
            loading ``dotenv_path`` (or a .env found from the working directory).
        :param dotenv_path: Explicit .env file to load.
        """
        if environ is None:
            load_dotenv(dotenv_path or find_dotenv(usecwd=True))
            environ = os.environ

        values: Dict[str, object] = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                continue
            values[name] = raw.split(",") if name == "compose_file_names" else raw
        return cls(**values)

    @property
    def max_age(self) -> timedelta:
        return timedelta(seconds=self.cache_max_age)

    def resolve_cache_file(self) -> str:
        """
        Path of the cache file: the configured one, else the system cache
        if writable, else the per-user cache.

        :raises CacheError: If no cache directory can be created.
        """
        if self.cache_file:
            return os.path.expanduser(self.cache_file)
        return resolve_cache_file(SYSTEM_CACHE_DIR, os.path.expanduser(USER_CACHE_DIR))
