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
Stateless text formatting of projects, images and update results.
"""
from typing import Sequence

from jinja2 import Template

from ..MODELS.project import Project
from ..MODELS.update_batch import CheckResult, UpdateResult

DATE_FORMAT = "%Y-%m-%d %H:%M"

PROJECT_LIST_TEMPLATE = Template(
    """
Docker Compose Projects:
========================
{% for p in projects -%}
{{ "%2d" | format(loop.index) }}. {{ "%-20s" | format(p.name) }}  {{ status(p) }}
    Path: {{ p.path }}
{% if details -%}
{% for image in p.images if image in p.image_info -%}
{% set info = p.image_info[image] -%}
    {{ "*" if info.has_update else "-" }} {{ image }}: {{ info.current_version }}{% if info.latest_version != info.current_version %} -> {{ info.latest_version }}{% endif %}
{% endfor -%}
{% endif -%}
{% endfor %}
Total: {{ projects | length }} projects
""",
    keep_trailing_newline=True,
)


def status_display(project: Project) -> str:
    if project.is_running:
        return f"Running ({project.running_containers})"
    return "Stopped"


def cache_age(projects: Sequence[Project]) -> str:
    """Timestamp of the least recently updated project, 'unknown' if none."""
    if not projects:
        return "unknown"
    oldest = min(p.last_updated for p in projects)
    return oldest.astimezone().strftime(DATE_FORMAT)


def render_project_list(projects: Sequence[Project], details: bool = False) -> str:
    """
    Renders the project listing.

    :param projects: Projects to list, numbered from 1.
    :param details: Also list each project's known image versions.
    """
    return PROJECT_LIST_TEMPLATE.render(projects=projects, status=status_display, details=details)


def update_result_line(result: UpdateResult) -> str:
    mark = "✓" if result.success else "✗"
    return f"{mark} {result.project_name}: {result.message}"


def check_result_line(result: CheckResult) -> str:
    prefix = f"[{result.index + 1}/{result.total}] {result.project_name:<20} "
    if result.error:
        return prefix + f"❌ error: {result.error}"
    if result.updates_available:
        return prefix + f"✓ {result.updates_available} update(s) available"
    return prefix + "✓ up to date"
