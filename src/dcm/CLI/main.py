"""
Command Line Interface for DCM.
"""
import asyncio
import logging
import os
import sys
from typing import List, Optional, Sequence

import click

from ..MANAGERS.project_discovery import ProjectDiscovery
from ..MANAGERS.status_reader import StatusReader
from ..MANAGERS.update_executor import UpdateExecutor
from ..MANAGERS.update_orchestrator import UpdateOrchestrator
from ..MANAGERS.version_checker import VersionChecker
from ..MODELS.project import Project
from ..MODELS.update_batch import UpdateMode
from ..REGISTRY.cache_store import CacheStore
from ..REGISTRY.version_resolver import VersionResolver
from ..RUNNERS.command_runner import CommandRunner
from ..UTILS import formatting
from ..UTILS.settings import Settings
from ..exceptions import CacheError, CacheUnusableError, DcmError, DiscoveryError

logger = logging.getLogger(__name__)


class Engine:
    """
    The engine components wired together for one CLI invocation.
    """
    def __init__(self, settings: Settings, cache_file: str, runner: Optional[CommandRunner] = None):
        self.settings = settings
        self.runner = runner or CommandRunner()
        self.status_reader = StatusReader(self.runner)
        self.discovery = ProjectDiscovery(self.status_reader, settings.compose_file_names)
        self.executor = UpdateExecutor(self.runner, self.status_reader, pull_timeout=settings.pull_timeout)
        self.checker = VersionChecker(
            self.runner,
            VersionResolver(self.runner, probe_timeout=settings.probe_timeout),
            pull_timeout=settings.pull_timeout,
        )
        self.cache = CacheStore(cache_file)

    def load_projects(self, directory: str, use_cache: bool = True) -> List[Project]:
        """
        Returns cached projects, or rediscovers and caches them if the cache is unusable.

        :raises DiscoveryError: If discovery fails.
        """
        if use_cache:
            try:
                return self.cache.load(self.settings.max_age)
            except CacheUnusableError as e:
                logger.debug("cache unusable: %s", e)

        click.echo("🔍 Scanning for Docker Compose projects...")
        click.echo(f"   Directory: {directory}")
        projects = asyncio.run(self.discovery.discover(directory, self.settings.max_depth))
        click.echo(f"✓ Found {len(projects)} projects")
        self.save(projects)
        return projects

    def save(self, projects: Sequence[Project]) -> None:
        try:
            self.cache.save(projects)
        except CacheError as e:
            click.echo(f"Warning: failed to save cache: {e}", err=True)

    def orchestrator(self, projects: Sequence[Project]) -> UpdateOrchestrator:
        return UpdateOrchestrator(projects, self.executor, self.checker, self.cache)


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _index_of(projects: Sequence[Project], name: str) -> int:
    for i, project in enumerate(projects):
        if project.name == name:
            return i
    _fail(f"unknown project: {name}")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@click.command()
@click.argument('directory', required=False)
@click.option('--list', '-l', 'list_mode', is_flag=True, help='List all projects and their status (non-interactive)')
@click.option('--update-cache', is_flag=True, help='Update cache with latest image versions (for cron)')
@click.option('--update', 'update_names', multiple=True, metavar='NAME', help='Update a project (repeatable)')
@click.option('--all-updates', is_flag=True, help='Update every project with available updates')
@click.option('--pull-only', is_flag=True, help='Only pull images, never recreate containers')
@click.option('--recreate', 'recreate_names', multiple=True, metavar='NAME',
              help='Recreate only these of the updated projects; the others are only pulled')
@click.option('--start', 'start_name', metavar='NAME', help='Start a project')
@click.option('--stop', 'stop_name', metavar='NAME', help='Stop a project')
@click.option('--restart', 'restart_name', metavar='NAME', help='Restart a project')
@click.option('--no-cache', is_flag=True, help='Ignore the cache and rescan the directory')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(directory, list_mode, update_cache, update_names, all_updates, pull_only, recreate_names,
        start_name, stop_name, restart_name, no_cache, verbose):
    """
    DCM - Docker Compose Manager.

    Finds Docker Compose projects below DIRECTORY, shows their status and
    image versions, and pulls or recreates them.
    """
    _configure_logging(verbose)
    settings = Settings.from_env()
    directory = directory or settings.search_dir

    if not os.path.isdir(directory):
        _fail(f"directory does not exist: {directory}")

    try:
        cache_file = settings.resolve_cache_file()
    except CacheError as e:
        _fail(str(e))

    engine = Engine(settings, cache_file)
    try:
        projects = engine.load_projects(directory, use_cache=not no_cache)
    except DiscoveryError as e:
        _fail(str(e))

    if update_cache:
        _run_update_cache(engine, projects)
    elif start_name or stop_name or restart_name:
        _run_lifecycle(engine, projects, start_name, stop_name, restart_name)
    elif update_names or all_updates:
        _run_updates(engine, projects, update_names, all_updates, pull_only, recreate_names)
    elif list_mode:
        click.echo(formatting.render_project_list(projects))
    else:
        asyncio.run(_load_running_images(engine, projects))
        click.echo(formatting.render_project_list(projects, details=True))
        click.echo(f"Cache: {engine.cache.cache_file} (oldest entry {formatting.cache_age(projects)})")


async def _load_running_images(engine: Engine, projects: List[Project]) -> None:
    """Fills in the running images of projects that have no cached version info."""
    for project in projects:
        if not project.is_running or project.image_info:
            continue
        try:
            await engine.checker.load_running_image_info(project)
        except DcmError as e:
            logger.warning("cannot read running images of %s: %s", project.name, e)


def _run_update_cache(engine: Engine, projects: List[Project]) -> None:
    click.echo("🔍 Checking for updates...")
    click.echo(f"Cache location: {engine.cache.cache_file}")
    click.echo(f"Found {len(projects)} projects\n")

    async def sweep():
        async for result in engine.orchestrator(projects).iter_version_checks():
            click.echo(formatting.check_result_line(result))
            engine.save(projects)

    asyncio.run(sweep())
    click.echo(f"\n✓ Cache updated successfully: {engine.cache.cache_file}")


def _run_lifecycle(engine: Engine, projects: List[Project], start_name, stop_name, restart_name) -> None:
    if start_name:
        operation, name, action = "started", start_name, engine.executor.start
    elif stop_name:
        operation, name, action = "stopped", stop_name, engine.executor.stop
    else:
        operation, name, action = "restarted", restart_name, engine.executor.restart

    project = projects[_index_of(projects, name)]
    try:
        asyncio.run(action(project))
    except DcmError as e:
        engine.save(projects)
        _fail(str(e))
    engine.save(projects)
    click.echo(f"Successfully {operation} {project.name}")


def _run_updates(engine: Engine, projects: List[Project], update_names, all_updates, pull_only, recreate_names) -> None:
    if all_updates:
        selected = {i for i, p in enumerate(projects) if p.has_updates}
    else:
        selected = {_index_of(projects, name) for name in update_names}
    if not selected:
        click.echo("Nothing to update.")
        return

    mode = UpdateMode.PULL if pull_only else UpdateMode.RESTART
    restart = {_index_of(projects, name) for name in recreate_names} if recreate_names else selected

    click.echo(f"Updating {len(selected)} project(s)...")
    batch = asyncio.run(engine.orchestrator(projects).run_updates(
        selected, mode, restart,
        on_complete=lambda result: click.echo(formatting.update_result_line(result)),
    ))
    engine.save(projects)

    click.echo(f"\n{batch.completed}/{batch.total} completed, {len(batch.failures())} failed")
    if batch.failures():
        sys.exit(1)


def main():
    """
    Main entry point for the CLI.
    """
    cli()


if __name__ == '__main__':
    main()
