"""
Unit tests for image enumeration and update detection.
"""
import asyncio

import pytest

from dcm.MANAGERS.version_checker import VersionChecker, version_tag
from dcm.exceptions import ComposeCommandError

CONFIG_IMAGES = ("docker", "compose", "config", "--images")


def image_id(runner, image, value):
    """Scripts the local image ID reported for one image."""
    runner.on("docker", "images", image, "--format", "{{.ID}}", stdout=f"{value}\n")


def check(runner, project, **kwargs):
    asyncio.run(VersionChecker(runner, **kwargs).update_image_info(project))


class SequencedIds:
    """Returns a different image ID before and after the pull."""

    def __init__(self, runner, image, before, after):
        runner.on("docker", "images", image, "--format", "{{.ID}}", stdout=f"{before}\n")
        self.runner = runner
        self.image = image
        self.after = after

    def on_pull(self):
        self.runner.on("docker", "images", self.image, "--format", "{{.ID}}", stdout=f"{self.after}\n")


def test_version_tag():
    assert version_tag("postgres:15") == "15"
    assert version_tag("nginx") == "latest"
    assert version_tag("localhost:5000/app") == "latest"


def test_list_images(runner, make_project):
    project = make_project()
    runner.on(*CONFIG_IMAGES, stdout="nginx:1.25\npostgres:15\n\n")
    images = asyncio.run(VersionChecker(runner).list_images(project))
    assert images == ["nginx:1.25", "postgres:15"]
    assert project.images == images


def test_list_images_reads_compose_file_when_clients_fail(runner, make_project):
    project = make_project(content=(
        "services:\n"
        "  web:\n"
        "    image: nginx:${NGINX_TAG:-1.25}\n"
        "  worker:\n"
        "    build: .\n"
    ))
    images = asyncio.run(VersionChecker(runner).list_images(project))
    assert images == ["nginx:1.25"]


def test_list_images_failure(runner, make_project):
    project = make_project(content="services: [unclosed\n")
    with pytest.raises(ComposeCommandError, match="^list images failed: "):
        asyncio.run(VersionChecker(runner).list_images(project))


def test_list_images_undecodable_compose_file(runner, make_project):
    project = make_project()
    with open(project.compose_file, "wb") as f:
        f.write(b"services:\n  app:\n    image: \xff\xfe\n")
    with pytest.raises(ComposeCommandError, match="^list images failed: "):
        asyncio.run(VersionChecker(runner).list_images(project))


def test_image_not_pulled(runner, make_project):
    project = make_project()
    runner.on(*CONFIG_IMAGES, stdout="redis:7\n")
    runner.on("docker", "images", "redis:7", "--format", "{{.ID}}", stdout="")

    check(runner, project)

    info = project.image_info["redis:7"]
    assert info.current_version == "7"
    assert info.latest_version == "not pulled"
    assert info.has_update is True
    assert project.has_updates is True
    assert not any(cmd[:2] == ("docker", "pull") for cmd in runner.commands())


def test_up_to_date_image(runner, make_project):
    project = make_project()
    runner.on(*CONFIG_IMAGES, stdout="postgres:15\n")
    image_id(runner, "postgres:15", "abc")
    runner.on("docker", "pull", "--quiet", "postgres:15", stdout="docker.io/library/postgres:15\n")

    check(runner, project)

    info = project.image_info["postgres:15"]
    assert (info.current_version, info.latest_version, info.has_update) == ("15", "15", False)
    assert project.has_updates is False


def test_newer_image_available(runner, make_project):
    project = make_project()
    runner.on(*CONFIG_IMAGES, stdout="app:latest\n")
    ids = SequencedIds(runner, "app:latest", "old", "new")
    runner.on("docker", "run", "--rm", "app:latest", "--version", stdout="app v1.4.0\n")

    original_run = runner.run

    async def run(args, cwd=None, timeout=None):
        result = await original_run(args, cwd=cwd, timeout=timeout)
        if tuple(args[:2]) == ("docker", "pull"):
            ids.on_pull()
        return result

    runner.run = run
    runner.on("docker", "pull", "--quiet", "app:latest")

    check(runner, project)

    info = project.image_info["app:latest"]
    assert info.current_version == "1.4.0"
    assert info.latest_version == "1.4.0 (newer)"
    assert info.has_update is True
    assert project.has_updates is True


def test_pull_timeout_is_a_sentinel(runner, make_project):
    project = make_project()
    runner.on(*CONFIG_IMAGES, stdout="slow:2.0\nfast:1.0\n")
    image_id(runner, "slow:2.0", "s1")
    image_id(runner, "fast:1.0", "f1")
    runner.on("docker", "pull", "--quiet", "slow:2.0", timeout=True)
    runner.on("docker", "pull", "--quiet", "fast:1.0")

    check(runner, project, pull_timeout=7)

    slow = project.image_info["slow:2.0"]
    assert slow.latest_version == "timeout"
    assert slow.has_update is False
    assert project.image_info["fast:1.0"].latest_version == "1.0"
    assert (("docker", "pull", "--quiet", "slow:2.0"), project.path, 7) in runner.calls


def test_stale_image_info_is_replaced(runner, make_project):
    project = make_project()
    runner.on(*CONFIG_IMAGES, stdout="first:1\n")
    runner.on("docker", "images", "first:1", "--format", "{{.ID}}", stdout="")
    check(runner, project)

    runner.on(*CONFIG_IMAGES, stdout="second:2\n")
    runner.on("docker", "images", "second:2", "--format", "{{.ID}}", stdout="")
    check(runner, project)

    assert project.images == ["second:2"]
    assert list(project.image_info) == ["second:2"]


def test_running_image_info(runner, make_project):
    project = make_project(name="blog")
    runner.on("docker", "ps", "--filter", "label=com.docker.compose.project=blog", "--format", "{{.Image}}",
              stdout="ghost:5.8\nmysql:latest\n")
    runner.on("docker", "run", "--rm", "mysql:latest", "--version", stdout="mysqld  Ver 8.4.0 for Linux\n")

    asyncio.run(VersionChecker(runner).load_running_image_info(project))

    assert project.images == ["ghost:5.8", "mysql:latest"]
    assert project.image_info["ghost:5.8"].current_version == "5.8"
    assert project.image_info["mysql:latest"].current_version == "8.4.0"
    assert project.has_updates is False


def test_running_image_info_failure(runner, make_project):
    project = make_project()
    with pytest.raises(ComposeCommandError):
        asyncio.run(VersionChecker(runner).load_running_image_info(project))
