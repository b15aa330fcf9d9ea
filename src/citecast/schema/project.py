from typing import Optional
from sqlmodel import Field

from .base import UUIDMixin, TimestampMixin


class Project(UUIDMixin, TimestampMixin, table=True):
    """
    Top-level container: owns sources, jobs, generation runs and one context profile.
    """
    __tablename__ = "projects"

    name: str
    description: Optional[str] = None

    # Opaque user identifier, also the rate limit bucket key
    owner_id: str = Field(index=True)
