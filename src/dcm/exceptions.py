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
Exception hierarchy for the compose manager engine.
"""
from typing import Optional, Sequence


class DcmError(Exception):
    """Base class for all engine errors."""


class DiscoveryError(DcmError):
    """The project tree could not be walked."""


class ProjectsNotFoundError(DiscoveryError):
    """The walk finished without locating a single compose project."""

    def __init__(self, root: str):
        super().__init__(f"no docker-compose projects found in {root}")
        self.root = root


class StatusError(DcmError):
    """The status of a project cannot be determined at all."""


class ComposeCommandError(DcmError):
    """
    A compose or docker command failed.

    The message is always a single line of the form
    ``"<operation> failed: <detail>"``.
    """

    def __init__(self, operation: str, detail: str):
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


class CommandTimeoutError(DcmError):
    """An external command exceeded its time budget and was killed."""

    def __init__(self, args: Sequence[str], timeout: Optional[float]):
        super().__init__(f"'{' '.join(args)}' timed out after {timeout}s")
        self.args_list = list(args)
        self.timeout = timeout


class CacheError(DcmError):
    """The cache file cannot be written or its directory cannot be created."""


class CacheUnusableError(CacheError):
    """The cache file is missing, unreadable, malformed or expired."""
