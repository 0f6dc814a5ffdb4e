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
Parser for the image references declared in docker-compose.yml files.
Used when neither compose client is able to render the project configuration.
"""
import os
from typing import Dict, List, Optional

import yaml
from dotenv import dotenv_values

from ..UTILS.string_interpolation import EnvironmentInterpolator


class ComposeParser:
    """
    Reads service images from a compose file.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None):
        """
        Initializes the parser with an optional environment context for interpolation.

        :param context: A dictionary of environment variables for interpolation.
        """
        self.context = context if context is not None else dict(os.environ)

    @classmethod
    def for_project(cls, project_dir: str) -> "ComposeParser":
        """
        Builds a parser whose context is the process environment overlaid
        with the project's .env file, as compose itself does.

        :param project_dir: Directory holding the compose file.
        """
        context = dict(os.environ)
        env_file = os.path.join(project_dir, ".env")
        if os.path.isfile(env_file):
            context.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        return cls(context)

    def images(self, compose_path: str) -> List[str]:
        """
        Parses a compose file from a path and lists its service images.

        :param compose_path: Path to the compose file.
        :return: Image references in service declaration order, without duplicates.
        :raises UnicodeDecodeError: If the file is not valid UTF-8.
        """
        with open(compose_path, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.images_from_string(content)

    def images_from_string(self, content: str) -> List[str]:
        """
        Lists the service images of compose YAML content.

        :param content: YAML content of the compose file.
        :return: Image references; services built locally without an image are skipped.
        :raises yaml.YAMLError: If the content is not valid YAML.
        """
        content = EnvironmentInterpolator.interpolate(content, self.context)
        data = yaml.safe_load(content) or {}
        services = data.get('services') if isinstance(data, dict) else None

        images: List[str] = []
        for spec in (services or {}).values():
            if not isinstance(spec, dict):
                continue
            image = str(spec.get('image') or '').strip()
            if image and image not in images:
                images.append(image)
        return images
