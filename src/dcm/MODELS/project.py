"""
Models for compose projects and the version information of their images.
"""
from datetime import datetime, timezone
from typing import List, Dict
from pydantic import BaseModel, Field, model_validator

STATUS_STOPPED = "stopped"
STATUS_RUNNING_PREFIX = "running:"

NOT_PULLED = "not pulled"
TIMEOUT = "timeout"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImageInfo(BaseModel):
    """
    Version record for a single image of a project.

    ``latest_version`` may hold the sentinels ``"not pulled"`` or ``"timeout"``.
    """
    name: str
    current_version: str = ""
    latest_version: str = ""
    has_update: bool = False


class Project(BaseModel):
    """
    A compose-managed application found on disk.
    """
    name: str
    path: str
    compose_file: str

    # Runtime state
    status: str = STATUS_STOPPED
    running_containers: int = 0

    # Images
    images: List[str] = []
    image_info: Dict[str, ImageInfo] = {}
    has_updates: bool = False

    last_updated: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_status(self) -> "Project":
        expected = (
            f"{STATUS_RUNNING_PREFIX}{self.running_containers}"
            if self.running_containers > 0
            else STATUS_STOPPED
        )
        if self.status != expected:
            raise ValueError(
                f"status {self.status!r} disagrees with "
                f"{self.running_containers} running containers"
            )
        return self

    @property
    def is_running(self) -> bool:
        return self.status.startswith(STATUS_RUNNING_PREFIX)

    def set_running(self, count: int) -> None:
        """Set the running container count and the matching status tag."""
        count = max(count, 0)
        self.running_containers = count
        self.status = f"{STATUS_RUNNING_PREFIX}{count}" if count else STATUS_STOPPED

    def set_image_info(self, info: ImageInfo) -> None:
        """Record version info for an image, keeping ``images`` and ``has_updates`` in step."""
        if info.name not in self.images:
            self.images.append(info.name)
        self.image_info[info.name] = info
        self.recompute_has_updates()

    def recompute_has_updates(self) -> bool:
        self.has_updates = any(i.has_update for i in self.image_info.values())
        return self.has_updates

    def clear_updates(self) -> None:
        """Mark every image as current, e.g. after containers were recreated."""
        for info in self.image_info.values():
            info.has_update = False
            info.latest_version = info.current_version
        self.has_updates = False

    def touch(self) -> None:
        self.last_updated = utcnow()
