"""
Shared fixtures: a scripted command runner and project factories.
"""
import asyncio
from dataclasses import dataclass
from typing import List, Optional, Tuple

import pytest

from dcm.MODELS.project import Project
from dcm.RUNNERS.command_runner import COMMAND_NOT_FOUND, CommandResult, CommandRunner
from dcm.exceptions import CommandTimeoutError


@dataclass
class ScriptedResponse:
    args: Tuple[str, ...]
    cwd: Optional[str]
    prefix: bool
    returncode: int
    stdout: str
    stderr: str
    timeout: bool
    delay: float

    def matches(self, args, cwd) -> bool:
        if self.cwd is not None and self.cwd != cwd:
            return False
        if self.prefix:
            return args[:len(self.args)] == self.args
        return args == self.args


class FakeRunner(CommandRunner):
    """
    Replaces subprocesses with scripted results. Unscripted commands behave
    like a missing executable. Later scripts take precedence.
    """

    def __init__(self):
        self.calls: List[Tuple[Tuple[str, ...], Optional[str], Optional[float]]] = []
        self._responses: List[ScriptedResponse] = []

    def on(self, *args, cwd=None, prefix=False, returncode=0, stdout="", stderr="", timeout=False, delay=0.0):
        self._responses.insert(0, ScriptedResponse(tuple(args), cwd, prefix, returncode, stdout, stderr, timeout, delay))
        return self

    def fail(self, *args, **kwargs):
        kwargs.setdefault("returncode", 1)
        return self.on(*args, **kwargs)

    async def run(self, args, cwd=None, timeout=None):
        args = tuple(args)
        self.calls.append((args, cwd, timeout))
        for response in self._responses:
            if response.matches(args, cwd):
                if response.delay:
                    await asyncio.sleep(response.delay)
                if response.timeout:
                    raise CommandTimeoutError(args, timeout)
                return CommandResult(args, response.returncode, response.stdout, response.stderr)
        return CommandResult(args, COMMAND_NOT_FOUND, "", f"{args[0]}: command not found")

    def commands(self) -> List[Tuple[str, ...]]:
        return [call[0] for call in self.calls]

    def ran(self, *args) -> bool:
        return tuple(args) in self.commands()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def make_project(tmp_path):
    """Creates a project directory with a compose file and returns its Project."""
    def factory(name="app", compose_name="docker-compose.yml", content="services: {}\n", **fields):
        project_dir = tmp_path / name
        project_dir.mkdir(parents=True, exist_ok=True)
        compose_file = project_dir / compose_name
        compose_file.write_text(content)
        return Project(name=name, path=str(project_dir), compose_file=str(compose_file), **fields)
    return factory
