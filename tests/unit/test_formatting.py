"""
Unit tests for the formatting helpers.
"""
from datetime import datetime, timezone

from dcm.MODELS.project import ImageInfo, Project
from dcm.MODELS.update_batch import CheckResult, UpdateResult, UpdateState
from dcm.UTILS import formatting


def projects():
    web = Project(name="web", path="/srv/web", compose_file="/srv/web/compose.yml",
                  last_updated=datetime(2026, 5, 2, 10, 0, tzinfo=timezone.utc))
    web.set_running(3)
    web.set_image_info(ImageInfo(name="nginx:latest", current_version="1.25.3",
                                 latest_version="1.25.3 (newer)", has_update=True))
    db = Project(name="db", path="/srv/db", compose_file="/srv/db/compose.yml",
                 last_updated=datetime(2026, 5, 1, 8, 30, tzinfo=timezone.utc))
    return [web, db]


def test_status_display():
    web, db = projects()
    assert formatting.status_display(web) == "Running (3)"
    assert formatting.status_display(db) == "Stopped"


def test_project_list():
    text = formatting.render_project_list(projects())
    assert " 1. web" in text
    assert "Running (3)" in text
    assert " 2. db" in text
    assert "Path: /srv/db" in text
    assert "Total: 2 projects" in text
    assert "nginx:latest" not in text


def test_project_list_with_details():
    text = formatting.render_project_list(projects(), details=True)
    assert "* nginx:latest: 1.25.3 -> 1.25.3 (newer)" in text


def test_cache_age_uses_oldest_project():
    oldest = datetime(2026, 5, 1, 8, 30, tzinfo=timezone.utc).astimezone().strftime("%Y-%m-%d %H:%M")
    assert formatting.cache_age(projects()) == oldest
    assert formatting.cache_age([]) == "unknown"


def test_result_lines():
    ok = UpdateResult(index=0, project_name="web", state=UpdateState.SUCCESS, message="OK")
    bad = UpdateResult(index=1, project_name="db", state=UpdateState.FAILED, message="pull failed: x")
    assert formatting.update_result_line(ok) == "✓ web: OK"
    assert formatting.update_result_line(bad) == "✗ db: pull failed: x"

    assert formatting.check_result_line(CheckResult(index=0, total=2, project_name="web")).endswith("✓ up to date")
    assert "2 update(s) available" in formatting.check_result_line(
        CheckResult(index=1, total=2, project_name="db", updates_available=2))
    assert formatting.check_result_line(
        CheckResult(index=1, total=2, project_name="db", error="boom")).startswith("[2/2] db")
