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
Reduction of noisy compose/docker output to a single human-relevant line.
"""
import re
from typing import List, Optional

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")

PROGRESS_MARKERS = ("Pulling", "Downloaded", "Digest:", "Status:", "Waiting", "Extracting")
RERAISE_MARKERS = ("raise error_to_reraise", "raise err from")
ERROR_KEYWORDS = ("Error", "error", "failed", "cannot")


def strip_terminal_codes(text: str) -> str:
    """
    Removes carriage returns and ANSI escape sequences left by progress bars.
    """
    return ANSI_ESCAPE.sub("", text.replace("\r", ""))


def _is_noise(line: str) -> bool:
    if any(marker in line for marker in PROGRESS_MARKERS):
        return True
    if line.startswith("Traceback") or line.startswith("File "):
        return True
    if any(marker in line for marker in RERAISE_MARKERS):
        return True
    return "line " in line and ".py" in line


def _exception_line(line: str) -> str:
    """'docker.errors.APIError: boom' -> 'APIError: boom'"""
    kind, _, message = line.partition(":")
    kind = kind.strip().rsplit(".", 1)[-1]
    return f"{kind}: {message.strip()}"


def sanitize_output(output: str) -> Optional[str]:
    """
    Picks the single most relevant line from a tool's output.

    Preference order: the first ``Error:``/``Exception:`` line (qualifier
    reduced to its last dotted component), else the last line carrying an
    error keyword, else the last non-empty line.

    :param output: Raw combined output of the failed command.
    :return: One line, or None if the output was empty.
    """
    lines: List[str] = strip_terminal_codes(output).strip().splitlines()
    chosen = None

    for raw in lines:
        line = raw.strip()
        if not line or _is_noise(line):
            continue
        if "Error:" in line or "Exception:" in line:
            chosen = _exception_line(line)
            break
        if any(keyword in line for keyword in ERROR_KEYWORDS):
            chosen = line

    if chosen is None:
        for raw in reversed(lines):
            if raw.strip():
                chosen = raw.strip()
                break

    if chosen and "docker" in chosen:
        # Drop a leading command echo such as "docker compose pull: Error ..."
        for keyword in ("Error", "error"):
            idx = chosen.find(keyword)
            if idx != -1:
                chosen = chosen[idx:]
                break

    return chosen


def describe_failure(output: str, fallback: str) -> str:
    """
    Sanitized detail for an error message, or ``fallback`` for silent failures.
    """
    return sanitize_output(output) or fallback
