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
Execution of docker and compose commands with timeouts and client fallback.
"""
import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from ..exceptions import CommandTimeoutError

logger = logging.getLogger(__name__)

MODERN_COMPOSE: Tuple[str, ...] = ("docker", "compose")
LEGACY_COMPOSE: Tuple[str, ...] = ("docker-compose",)

# Exit codes reported when the command cannot be started, as a shell would.
COMMAND_NOT_EXECUTABLE = 126
COMMAND_NOT_FOUND = 127


@dataclass
class CommandResult:
    """Captured outcome of one external command."""

    args: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, in that order."""
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr


class CommandRunner:
    """
    Runs external commands on the event loop without blocking it.
    """

    async def run(self,
                  args: Sequence[str],
                  cwd: Optional[str] = None,
                  timeout: Optional[float] = None) -> CommandResult:
        """
        Runs a command and captures its output.

        Args:
            args (Sequence[str]): Command and arguments to execute.
            cwd (Optional[str]): Directory to run the command in.
            timeout (Optional[float]): Seconds before the process is killed.

        Returns:
            CommandResult: Exit code and decoded output. A missing executable
            is reported as exit code 127, any other failure to start the
            process (e.g. an unusable ``cwd``) as 126, rather than raised.

        Raises:
            CommandTimeoutError: If the command ran longer than ``timeout``.
        """
        args = tuple(args)
        logger.debug("running %s (cwd=%s)", " ".join(args), cwd)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            return CommandResult(args, COMMAND_NOT_FOUND, "", str(e))
        except OSError as e:
            logger.debug("cannot start %s: %s", args[0], e)
            return CommandResult(args, COMMAND_NOT_EXECUTABLE, "", str(e))

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
        except asyncio.TimeoutError:
            _kill(process)
            await process.wait()
            raise CommandTimeoutError(args, timeout) from None
        except asyncio.CancelledError:
            _kill(process)
            raise

        return CommandResult(
            args,
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def run_with_fallback(self,
                                primary: Sequence[str],
                                legacy: Sequence[str],
                                cwd: Optional[str] = None,
                                timeout: Optional[float] = None) -> CommandResult:
        """
        Runs ``primary`` and, if it fails, ``legacy``.

        The legacy result is returned as-is when the primary command fails,
        so callers inspect a single result. A timeout of the primary command
        is raised immediately: the tool was found and was working.
        """
        result = await self.run(primary, cwd=cwd, timeout=timeout)
        if result.ok:
            return result
        logger.debug("'%s' exited with %d, retrying with '%s'",
                     " ".join(primary), result.returncode, " ".join(legacy))
        return await self.run(legacy, cwd=cwd, timeout=timeout)

    async def compose(self,
                      project_dir: str,
                      *compose_args: str,
                      timeout: Optional[float] = None) -> CommandResult:
        """
        Runs a compose subcommand in ``project_dir`` with the modern client,
        falling back to the standalone legacy client.
        """
        return await self.run_with_fallback(
            MODERN_COMPOSE + compose_args,
            LEGACY_COMPOSE + compose_args,
            cwd=project_dir,
            timeout=timeout,
        )


def _kill(process: asyncio.subprocess.Process) -> None:
    # The child may exit between the timeout and the kill.
    with contextlib.suppress(ProcessLookupError):
        process.kill()
