"""
Token bucket rate limiting for expensive project actions.

Buckets are persisted per user in rate_limits and refilled lazily on read.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from citecast.core.logging import get_logger
from citecast.schema import RateLimitState, utc_now

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS = 100.0
DEFAULT_REFILL_RATE = 10.0  # tokens per minute


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: float
    reset_at: datetime

    def minutes_until_reset(self, now: Optional[datetime] = None) -> int:
        seconds = (self.reset_at - (now or utc_now())).total_seconds()
        return max(1, math.ceil(seconds / 60))


def _refilled(state: RateLimitState, now: datetime) -> float:
    minutes = max(0.0, (now - state.last_refill).total_seconds() / 60)
    return min(state.max_tokens, state.tokens + minutes * state.refill_rate)


class RateLimiter:
    def __init__(self, engine: Engine, max_tokens: float = DEFAULT_MAX_TOKENS, refill_rate: float = DEFAULT_REFILL_RATE):
        self.engine = engine
        self.max_tokens = max_tokens
        self.refill_rate = refill_rate

    def _new_state(self, user_id: str, now: datetime) -> RateLimitState:
        return RateLimitState(
            user_id=user_id,
            tokens=self.max_tokens,
            max_tokens=self.max_tokens,
            refill_rate=self.refill_rate,
            last_refill=now,
        )

    def consume(self, user_id: str, cost: float = 1, now: Optional[datetime] = None) -> RateLimitResult:
        """Take cost tokens from the user's bucket if it holds enough."""
        now = now or utc_now()
        with Session(self.engine, expire_on_commit=False) as session:
            query = select(RateLimitState).where(RateLimitState.user_id == user_id)
            if self.engine.dialect.name == "postgresql":
                query = query.with_for_update()
            state = session.exec(query).first()
            if state is None:
                state = self._new_state(user_id, now)

            available = _refilled(state, now)
            if available < cost:
                shortfall = cost - available
                reset_at = now + timedelta(minutes=math.ceil(shortfall / state.refill_rate))
                logger.info("rate_limit_exceeded", user_id=user_id, cost=cost, remaining=available)
                return RateLimitResult(allowed=False, remaining=available, reset_at=reset_at)

            state.tokens = available - cost
            state.last_refill = now
            session.add(state)
            session.commit()

        return RateLimitResult(allowed=True, remaining=available - cost, reset_at=now + timedelta(minutes=1))

    def status(self, user_id: str, now: Optional[datetime] = None) -> RateLimitResult:
        now = now or utc_now()
        with Session(self.engine) as session:
            state = session.get(RateLimitState, user_id)
            if state is None:
                return RateLimitResult(allowed=True, remaining=self.max_tokens, reset_at=now)
            available = _refilled(state, now)
        return RateLimitResult(allowed=available > 0, remaining=available, reset_at=now + timedelta(minutes=1))
