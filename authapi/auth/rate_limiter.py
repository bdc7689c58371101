"""
Fixed-window rate limiting.

Each policy allows at most max_attempts calls per client key within a window.
The window starts with the first call from that key and resets wholesale
when it elapses. Counters for different policies are independent, so a
client blocked on login can still reach the rest of the API.

Counters live in a bounded map ordered by window start. When the map fills
up, expired counters at the front are dropped, and a full sweep for expired
counters runs at most once per SWEEP_INTERVAL_SECONDS. If the map is still
full, the oldest counter is evicted. Eviction resets that client's budget,
which is the price of bounded memory when an attacker rotates source
addresses.
"""
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Tuple

from authapi.config import DEFAULT_RATE_LIMIT_MAX_KEYS
from authapi.errors import RateLimitError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

# Minimum spacing between full scans for expired counters when at capacity
SWEEP_INTERVAL_SECONDS = 60.0


class PolicyId(str, Enum):
    LOGIN = "login"
    REGISTER = "register"
    SENSITIVE = "sensitive"
    API = "api"


@dataclass(frozen=True)
class RateLimitPolicy:
    window_seconds: float
    max_attempts: int
    message: str

    @property
    def description(self) -> str:
        minutes = int(self.window_seconds // 60)
        return f"{self.max_attempts} requests per {minutes} minutes"


DEFAULT_POLICIES: Dict[PolicyId, RateLimitPolicy] = {
    PolicyId.LOGIN: RateLimitPolicy(
        window_seconds=15 * 60,
        max_attempts=5,
        message="Too many login attempts from this IP, please try again after 15 minutes",
    ),
    PolicyId.REGISTER: RateLimitPolicy(
        window_seconds=60 * 60,
        max_attempts=3,
        message="Too many registration attempts from this IP, please try again after 1 hour",
    ),
    PolicyId.SENSITIVE: RateLimitPolicy(
        window_seconds=60 * 60,
        max_attempts=10,
        message="Too many requests to sensitive endpoints, please try again after 1 hour",
    ),
    PolicyId.API: RateLimitPolicy(
        window_seconds=15 * 60,
        max_attempts=100,
        message="Too many requests from this IP, please try again after 15 minutes",
    ),
}


@dataclass
class RateLimitCounter:
    key: str
    window_start: float
    count: int = 0


@dataclass(frozen=True)
class RateLimitStatus:
    """Budget left after an accepted call."""
    limit: int
    remaining: int
    reset_after: float


class RateLimiter:
    """
    In-process fixed-window limiter.

    Args:
        policies: Policy table, defaults to DEFAULT_POLICIES
        clock: Monotonic time source in seconds
        max_keys: Upper bound on tracked (policy, key) counters
    """

    def __init__(
        self,
        policies: Optional[Mapping[PolicyId, RateLimitPolicy]] = None,
        clock: Optional[Clock] = None,
        max_keys: int = DEFAULT_RATE_LIMIT_MAX_KEYS,
    ):
        if max_keys < 1:
            raise ValueError("max_keys must be at least 1")
        self.policies: Dict[PolicyId, RateLimitPolicy] = dict(policies or DEFAULT_POLICIES)
        self.max_keys = max_keys
        self._clock = clock or time.monotonic
        self._counters: "OrderedDict[Tuple[PolicyId, str], RateLimitCounter]" = OrderedDict()
        self._lock = threading.Lock()
        self._next_sweep = float("-inf")

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)

    def policy(self, policy_id: PolicyId) -> RateLimitPolicy:
        try:
            return self.policies[policy_id]
        except KeyError:
            raise ValueError(f"Unknown rate limit policy: {policy_id}") from None

    def check_and_increment(self, policy_id: PolicyId, key: str) -> RateLimitStatus:
        """
        Count one attempt for key under a policy.

        Args:
            policy_id: Which policy to charge
            key: Client identity, usually the source address

        Returns:
            Remaining budget in the current window

        Raises:
            RateLimitError: If the window's budget is already spent. The
                counter is left unchanged.
        """
        policy = self.policy(policy_id)
        with self._lock:
            now = self._clock()
            counter = self._current_counter(policy_id, policy, key, now)
            reset_after = counter.window_start + policy.window_seconds - now

            if counter.count >= policy.max_attempts:
                raise RateLimitError(
                    policy=policy_id.value,
                    retry_after=reset_after,
                    message=policy.message,
                )

            counter.count += 1
            return RateLimitStatus(
                limit=policy.max_attempts,
                remaining=policy.max_attempts - counter.count,
                reset_after=reset_after,
            )

    def peek(self, policy_id: PolicyId, key: str) -> RateLimitStatus:
        """Report the budget for key without charging an attempt."""
        policy = self.policy(policy_id)
        with self._lock:
            now = self._clock()
            counter = self._counters.get((policy_id, key))
            if counter is None or self._expired(policy, counter, now):
                return RateLimitStatus(policy.max_attempts, policy.max_attempts, policy.window_seconds)
            return RateLimitStatus(
                limit=policy.max_attempts,
                remaining=max(0, policy.max_attempts - counter.count),
                reset_after=counter.window_start + policy.window_seconds - now,
            )

    def reset(self, policy_id: Optional[PolicyId] = None, key: Optional[str] = None) -> None:
        """Drop counters matching policy and/or key; both None clears everything."""
        with self._lock:
            if policy_id is None and key is None:
                self._counters.clear()
                return
            for slot in list(self._counters):
                if (policy_id is None or slot[0] == policy_id) and (key is None or slot[1] == key):
                    del self._counters[slot]

    @staticmethod
    def _expired(policy: RateLimitPolicy, counter: RateLimitCounter, now: float) -> bool:
        return now - counter.window_start >= policy.window_seconds

    # Callers must hold self._lock
    def _current_counter(
        self, policy_id: PolicyId, policy: RateLimitPolicy, key: str, now: float
    ) -> RateLimitCounter:
        slot = (policy_id, key)
        counter = self._counters.get(slot)
        if counter is not None and not self._expired(policy, counter, now):
            return counter

        if counter is not None:
            del self._counters[slot]
        elif len(self._counters) >= self.max_keys:
            self._make_room(now)

        counter = RateLimitCounter(key=key, window_start=now)
        self._counters[slot] = counter
        return counter

    def _make_room(self, now: float) -> None:
        # Counters are ordered by window start, so expired ones cluster at the front
        while self._counters:
            slot, counter = next(iter(self._counters.items()))
            if not self._expired(self.policies[slot[0]], counter, now):
                break
            del self._counters[slot]

        if len(self._counters) >= self.max_keys and now >= self._next_sweep:
            self._sweep_expired(now)
            self._next_sweep = now + SWEEP_INTERVAL_SECONDS

        while len(self._counters) >= self.max_keys:
            (policy_id, key), _ = self._counters.popitem(last=False)
            logger.warning(
                "Rate limiter at capacity (%d keys); evicted live counter %s/%s",
                self.max_keys, policy_id.value, key,
            )

    def _sweep_expired(self, now: float) -> None:
        """Drop every expired counter. Linear in the number of tracked keys."""
        expired = [
            slot for slot, counter in self._counters.items()
            if self._expired(self.policies[slot[0]], counter, now)
        ]
        for slot in expired:
            del self._counters[slot]
