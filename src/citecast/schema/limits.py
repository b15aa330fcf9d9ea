from datetime import datetime
from sqlmodel import SQLModel, Field

from .base import utc_now


class RateLimitState(SQLModel, table=True):
    """Token bucket per user. Refilled lazily on every consume."""
    __tablename__ = "rate_limits"

    user_id: str = Field(primary_key=True)
    tokens: float = 100.0
    max_tokens: float = 100.0
    refill_rate: float = 10.0  # tokens per minute
    last_refill: datetime = Field(default_factory=utc_now)
