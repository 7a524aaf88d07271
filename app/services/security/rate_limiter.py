"""
In-memory rate limiting service for CoolCare.

Fixed-window counters keyed by (identity, limit class). Each limit class has
its own window length and request budget:

- API: general API traffic
- LOGIN: login attempts
- UPLOAD: photo/file uploads
- CONTACT: contact form submissions

The counter table lives for the lifetime of the owning RateLimiter instance
and is guarded by a single mutex, so concurrent checks for the same key never
lose an increment. Windows expire passively: a stale window is replaced the
next time its key is checked, and an opportunistic sweep evicts idle keys.
"""

import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple, Union

from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.core.exceptions import ValidationError
from app.core.logging import get_logger

logger = get_logger(__name__)


class LimitClass(str, Enum):
    """Request categories with their own rate limit configuration."""
    API = "api"
    LOGIN = "login"
    UPLOAD = "upload"
    CONTACT = "contact"


@dataclass(frozen=True)
class RateLimitRule:
    """Budget for one limit class."""
    max_requests: int
    window_seconds: int

    def __post_init__(self):
        if self.max_requests < 1:
            raise ValidationError("max_requests must be positive", field="max_requests")
        if self.window_seconds < 1:
            raise ValidationError("window_seconds must be positive", field="window_seconds")

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)


def default_rules() -> Dict[LimitClass, RateLimitRule]:
    """Rules from application settings."""
    config = settings.get_rate_limit_config()
    return {
        limit_class: RateLimitRule(**config[limit_class.value])
        for limit_class in LimitClass
    }


class RateLimitResult:
    """Result of rate limit check."""

    def __init__(
        self,
        allowed: bool,
        limit: int,
        remaining: int,
        reset_time: Optional[datetime],
        retry_after: Optional[int] = None,
    ):
        self.allowed = allowed
        self.limit = limit
        self.remaining = remaining
        self.reset_time = reset_time
        self.retry_after = retry_after

    def __repr__(self) -> str:
        return (
            f"RateLimitResult(allowed={self.allowed}, limit={self.limit}, "
            f"remaining={self.remaining}, retry_after={self.retry_after})"
        )

    def to_dict(self) -> Dict:
        """Convert to dictionary format."""
        return {
            "allowed": self.allowed,
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_time": self.reset_time.isoformat() if self.reset_time else None,
            "retry_after": self.retry_after,
        }

    def headers(self) -> Dict[str, str]:
        """HTTP headers describing this decision."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
        }
        if self.reset_time is not None:
            headers["X-RateLimit-Reset"] = str(int(self.reset_time.timestamp()))
        if not self.allowed and self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


@dataclass
class _Window:
    count: int
    window_start: datetime


class RateLimiter:
    """
    Fixed-window rate limiter with an explicitly owned counter table.

    Create one per process (the application keeps it on ``app.state``) or
    one per test for isolation.
    """

    def __init__(
        self,
        rules: Optional[Mapping[LimitClass, RateLimitRule]] = None,
        clock: Optional[Clock] = None,
        strict: Optional[bool] = None,
        sweep_interval_seconds: Optional[int] = None,
        idle_multiplier: Optional[int] = None,
    ):
        """
        Initialize rate limiter.

        Args:
            rules: Per-class budgets; missing classes fall back to settings
            clock: Time source
            strict: Raise on unknown limit classes instead of denying
            sweep_interval_seconds: Minimum spacing between idle-key sweeps
            idle_multiplier: Evict keys idle for this many windows
        """
        self.rules: Dict[LimitClass, RateLimitRule] = default_rules()
        if rules:
            self.rules.update(rules)
        self.clock = clock if clock is not None else system_clock
        self.strict = settings.rate_limit_strict if strict is None else strict
        self.sweep_interval = timedelta(
            seconds=sweep_interval_seconds or settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS
        )
        self.idle_multiplier = idle_multiplier or settings.RATE_LIMIT_IDLE_MULTIPLIER

        self._windows: Dict[Tuple[str, LimitClass], _Window] = {}
        self._lock = threading.Lock()
        self._last_sweep = self.clock.now()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _resolve(self, limit_class: Union[LimitClass, str]) -> Optional[LimitClass]:
        try:
            resolved = LimitClass(limit_class)
        except ValueError:
            resolved = None

        if resolved is None or resolved not in self.rules:
            if self.strict:
                raise ValidationError(
                    f"Unknown rate limit class: {limit_class!r}",
                    field="limit_class",
                )
            logger.error("Unknown rate limit class, denying request", limit_class=str(limit_class))
            return None
        return resolved

    def check(
        self,
        identity: str,
        limit_class: Union[LimitClass, str],
    ) -> RateLimitResult:
        """
        Count one request and decide whether it is allowed.

        The request that would push the counter past ``max_requests`` is
        rejected and not counted.

        Args:
            identity: Caller identity, usually the client IP
            limit_class: Request category

        Returns:
            RateLimitResult with the decision
        """
        resolved = self._resolve(limit_class)
        if resolved is None:
            return RateLimitResult(allowed=False, limit=0, remaining=0, reset_time=None)

        rule = self.rules[resolved]
        key = (identity, resolved)
        now = self.clock.now()

        with self._lock:
            record = self._windows.get(key)
            if record is None or now >= record.window_start + rule.window:
                record = _Window(count=0, window_start=now)
                self._windows[key] = record

            reset_time = record.window_start + rule.window

            if record.count >= rule.max_requests:
                retry_after = math.ceil((reset_time - now).total_seconds())
                result = RateLimitResult(
                    allowed=False,
                    limit=rule.max_requests,
                    remaining=0,
                    reset_time=reset_time,
                    retry_after=max(retry_after, 1),
                )
            else:
                record.count += 1
                result = RateLimitResult(
                    allowed=True,
                    limit=rule.max_requests,
                    remaining=rule.max_requests - record.count,
                    reset_time=reset_time,
                )

            if now - self._last_sweep >= self.sweep_interval:
                self._sweep_locked(now)

        if not result.allowed:
            logger.warning(
                "Rate limit exceeded",
                identity=identity,
                limit_class=resolved.value,
                limit=rule.max_requests,
                retry_after=result.retry_after,
            )

        return result

    def peek(
        self,
        identity: str,
        limit_class: Union[LimitClass, str],
    ) -> RateLimitResult:
        """
        Get current rate limit status without consuming a request.

        Args:
            identity: Caller identity
            limit_class: Request category

        Returns:
            RateLimitResult describing what the next check would see
        """
        resolved = self._resolve(limit_class)
        if resolved is None:
            return RateLimitResult(allowed=False, limit=0, remaining=0, reset_time=None)

        rule = self.rules[resolved]
        now = self.clock.now()

        with self._lock:
            record = self._windows.get((identity, resolved))
            if record is None or now >= record.window_start + rule.window:
                return RateLimitResult(
                    allowed=True,
                    limit=rule.max_requests,
                    remaining=rule.max_requests,
                    reset_time=now + rule.window,
                )
            reset_time = record.window_start + rule.window
            exhausted = record.count >= rule.max_requests
            return RateLimitResult(
                allowed=not exhausted,
                limit=rule.max_requests,
                remaining=max(0, rule.max_requests - record.count),
                reset_time=reset_time,
                retry_after=max(math.ceil((reset_time - now).total_seconds()), 1) if exhausted else None,
            )

    def reset(
        self,
        identity: str,
        limit_class: Optional[Union[LimitClass, str]] = None,
    ) -> int:
        """
        Forget counters for an identity.

        Args:
            identity: Caller identity
            limit_class: Only this class; every class when omitted

        Returns:
            Number of counters removed
        """
        if limit_class is not None:
            classes = [self._resolve(limit_class)]
        else:
            classes = list(LimitClass)

        removed = 0
        with self._lock:
            for resolved in classes:
                if resolved is not None and self._windows.pop((identity, resolved), None):
                    removed += 1

        logger.info("Reset rate limit", identity=identity, removed=removed)
        return removed

    def sweep(self) -> int:
        """
        Evict counters whose window ended long ago.

        Returns:
            Number of counters evicted
        """
        with self._lock:
            return self._sweep_locked(self.clock.now())

    def _sweep_locked(self, now: datetime) -> int:
        stale = [
            key
            for key, record in self._windows.items()
            if now - record.window_start >= self.rules[key[1]].window * self.idle_multiplier
        ]
        for key in stale:
            del self._windows[key]
        self._last_sweep = now

        if stale:
            logger.debug("Evicted idle rate limit windows", count=len(stale))
        return len(stale)
