"""
Unit tests for the project models.
"""
import pytest
from pydantic import ValidationError

from dcm.MODELS.project import ImageInfo, Project


def project(**fields):
    return Project(name="web", path="/srv/web", compose_file="/srv/web/compose.yml", **fields)


def test_defaults():
    p = project()
    assert p.status == "stopped"
    assert p.running_containers == 0
    assert not p.is_running
    assert p.last_updated.tzinfo is not None


@pytest.mark.parametrize("count,status", [(0, "stopped"), (1, "running:1"), (12, "running:12"), (-3, "stopped")])
def test_set_running_keeps_status_consistent(count, status):
    p = project()
    p.set_running(count)
    assert p.status == status
    assert p.running_containers == max(count, 0)


@pytest.mark.parametrize("status,count", [("running:2", 0), ("stopped", 1), ("running:1", 2), ("up", 0)])
def test_inconsistent_status_rejected(status, count):
    with pytest.raises(ValidationError):
        project(status=status, running_containers=count)


def test_set_image_info_tracks_images_and_aggregate():
    p = project(images=["nginx:latest"])
    p.set_image_info(ImageInfo(name="nginx:latest", current_version="1.25"))
    assert p.images == ["nginx:latest"]
    assert p.has_updates is False

    p.set_image_info(ImageInfo(name="redis:7", current_version="7", latest_version="not pulled", has_update=True))
    assert p.images == ["nginx:latest", "redis:7"]
    assert p.has_updates is True


def test_clear_updates():
    p = project()
    p.set_image_info(ImageInfo(name="app:1", current_version="1", latest_version="1 (newer)", has_update=True))
    p.clear_updates()
    assert p.has_updates is False
    assert p.image_info["app:1"].latest_version == "1"
    assert p.recompute_has_updates() is False
