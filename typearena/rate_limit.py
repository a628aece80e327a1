"""
Rate limiting implementation using in-memory tracking
Guards code redemption and result submission against brute-force and floods
"""

import logging
import time
from collections import defaultdict
from typing import Dict, Tuple

logger = logging.getLogger(__name__)

REDEEM = "REDEEM"
SUBMIT = "SUBMIT"


class RateLimiter:
    """
    Per-client and per-action rate limiter
    Tracks requests in memory with automatic cleanup
    """

    def __init__(
        self,
        max_per_minute: int = 120,
        max_per_second: int = 10,
        block_duration: int = 60,
    ):
        """
        Args:
            max_per_minute: Max requests per client per minute
            max_per_second: Max requests per client per second
            block_duration: How long to block after limit (seconds)
        """
        self.max_per_minute = max_per_minute
        self.max_per_second = max_per_second
        self.block_duration = block_duration

        # { client_key: { 'requests': [timestamp, ...], 'blocked_until': time } }
        self.request_history: Dict[str, Dict] = defaultdict(
            lambda: {"requests": [], "blocked_until": 0}
        )
        # { client_key: { action: [timestamp, ...] } }
        self.action_history: Dict[str, Dict[str, list]] = defaultdict(lambda: defaultdict(list))
        self.action_limits: Dict[str, int] = {}

    def set_action_limit(self, action: str, max_per_minute: int):
        self.action_limits[action] = max_per_minute

    def reset_all(self):
        """Reset all rate limiting data (for testing)"""
        self.request_history = defaultdict(lambda: {"requests": [], "blocked_until": 0})
        self.action_history = defaultdict(lambda: defaultdict(list))

    def is_blocked(self, client_key: str) -> bool:
        blocked_until = self.request_history[client_key]["blocked_until"]
        if blocked_until > time.time():
            logger.warning("Client %s is rate-limited until %s", client_key, blocked_until)
            return True
        return False

    def check_rate_limit(self, client_key: str, action: str) -> Tuple[bool, str]:
        """
        Returns:
            Tuple[bool, str]: (is_allowed, reason); reason is empty when allowed
        """
        current_time = time.time()

        if self.is_blocked(client_key):
            return False, "Client is rate-limited. Try again later."

        history = self.request_history[client_key]
        requests = history["requests"]
        requests[:] = [ts for ts in requests if current_time - ts < 60]

        recent_requests = [ts for ts in requests if current_time - ts < 1]
        if len(recent_requests) >= self.max_per_second:
            history["blocked_until"] = current_time + self.block_duration
            logger.warning(
                "Client %s exceeded per-second limit (%s req/sec)", client_key, self.max_per_second
            )
            return False, "Rate limit exceeded (too many requests per second)"

        if len(requests) >= self.max_per_minute:
            history["blocked_until"] = current_time + self.block_duration
            logger.warning(
                "Client %s exceeded per-minute limit (%s req/min)", client_key, self.max_per_minute
            )
            return False, "Rate limit exceeded (too many requests per minute)"

        action_limit = self.action_limits.get(action, 999)
        action_requests = self.action_history[client_key][action]
        action_requests[:] = [ts for ts in action_requests if current_time - ts < 60]

        if len(action_requests) >= action_limit:
            logger.warning(
                "Client %s exceeded %s limit (%s per minute)", client_key, action, action_limit
            )
            return False, f"Rate limit exceeded for {action}"

        requests.append(current_time)
        action_requests.append(current_time)
        return True, ""

    def cleanup_old_data(self, max_age_seconds: int = 300):
        """Remove old data to prevent memory buildup (call periodically)"""
        current_time = time.time()
        cutoff_time = current_time - max_age_seconds

        stale = []
        for client_key, history in self.request_history.items():
            history["requests"][:] = [ts for ts in history["requests"] if ts > cutoff_time]
            if not history["requests"] and history["blocked_until"] < current_time:
                stale.append(client_key)
        for client_key in stale:
            del self.request_history[client_key]

        stale = []
        for client_key, actions in self.action_history.items():
            for action in list(actions):
                actions[action] = [ts for ts in actions[action] if ts > cutoff_time]
                if not actions[action]:
                    del actions[action]
            if not actions:
                stale.append(client_key)
        for client_key in stale:
            del self.action_history[client_key]


_rate_limiter = None


def get_rate_limiter() -> RateLimiter:
    """Get or create global rate limiter"""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(max_per_minute=120, max_per_second=10, block_duration=60)
        # Code guessing is the attack worth slowing down.
        _rate_limiter.set_action_limit(REDEEM, 20)
        _rate_limiter.set_action_limit(SUBMIT, 30)
    return _rate_limiter


def check_rate_limit(client_key: str, action: str) -> Tuple[bool, str]:
    return get_rate_limiter().check_rate_limit(client_key, action)


def cleanup_rate_limit_data():
    """Cleanup old rate limiting data (call periodically, e.g., every 5 minutes)"""
    get_rate_limiter().cleanup_old_data()


__all__ = [
    "REDEEM",
    "SUBMIT",
    "RateLimiter",
    "get_rate_limiter",
    "check_rate_limit",
    "cleanup_rate_limit_data",
]
