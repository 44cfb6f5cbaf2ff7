"""
Cooldown tracking - prevents duplicate rapid attendance marks per identity
"""
import logging
import threading
import time
from typing import Dict, Optional

from campus.core.config import settings
from campus.models.domain import CooldownCheck

logger = logging.getLogger(__name__)


class CooldownTracker:
    """
    Process-local cooldown map: identity -> timestamp of last accepted mark.

    Lives for the lifetime of the process and is empty after a restart.
    check_and_mark holds the lock across the check and the update, so
    concurrent recognition loops cannot both accept the same identity.
    """

    def __init__(self, window_seconds: Optional[float] = None):
        self.window_seconds = window_seconds if window_seconds is not None else settings.cooldown_window_seconds
        self._last_accepted: Dict[str, float] = {}
        self._lock = threading.Lock()

    def check_and_mark(self, identity_id: str, now: Optional[float] = None) -> CooldownCheck:
        """
        Allow the identity and record `now` unless it was accepted within the window.
        """
        now = time.time() if now is None else now
        identity_id = str(identity_id)

        with self._lock:
            last = self._last_accepted.get(identity_id)
            if last is not None:
                elapsed = now - last
                if elapsed < self.window_seconds:
                    return CooldownCheck(allowed=False, remaining_seconds=self.window_seconds - elapsed)

            self._last_accepted[identity_id] = now
            return CooldownCheck(allowed=True)

    def remaining(self, identity_id: str, now: Optional[float] = None) -> float:
        """Seconds left in the identity's cooldown (0 when free)"""
        now = time.time() if now is None else now
        with self._lock:
            last = self._last_accepted.get(str(identity_id))
        if last is None:
            return 0.0
        return max(0.0, self.window_seconds - (now - last))

    def release(self, identity_id: str):
        """Drop the identity's cooldown, e.g. when its accepted mark could not be stored"""
        with self._lock:
            self._last_accepted.pop(str(identity_id), None)

    def clear(self):
        with self._lock:
            self._last_accepted.clear()


class RedisCooldownTracker:
    """
    Cooldown map shared through Redis, for kiosks running in separate processes.

    SET NX is the only write on the check path, so the check and the mark
    stay one operation whatever the interleaving. The key expires with the
    window and Redis' clock decides when it is over; `now` is only stored
    for inspection.
    """

    def __init__(self, client=None, window_seconds: Optional[float] = None):
        if client is None:
            from campus.core.redis_client import redis_client
            client = redis_client.get_client()
        self.redis = client
        self.window_seconds = window_seconds if window_seconds is not None else settings.cooldown_window_seconds

    @staticmethod
    def _key(identity_id: str) -> str:
        return f'attendance:cooldown:{identity_id}'

    def _ttl_ms(self) -> int:
        return max(1, int(self.window_seconds * 1000))

    def check_and_mark(self, identity_id: str, now: Optional[float] = None) -> CooldownCheck:
        now = time.time() if now is None else now
        key = self._key(identity_id)

        # Second attempt covers a key that expired between SET and PTTL
        for _ in range(2):
            if self.redis.set(key, repr(now), nx=True, px=self._ttl_ms()):
                return CooldownCheck(allowed=True)

            ttl_ms = self.redis.pttl(key)
            if ttl_ms == -1:
                # Key without expiry was not written by this tracker
                logger.warning(f"Cooldown key {key} has no expiry")
                return CooldownCheck(allowed=False, remaining_seconds=self.window_seconds)
            if ttl_ms > 0:
                return CooldownCheck(allowed=False, remaining_seconds=ttl_ms / 1000)

        return CooldownCheck(allowed=False, remaining_seconds=self.window_seconds)

    def remaining(self, identity_id: str, now: Optional[float] = None) -> float:
        ttl_ms = self.redis.pttl(self._key(identity_id))
        return ttl_ms / 1000 if ttl_ms > 0 else 0.0

    def release(self, identity_id: str):
        """Drop the identity's cooldown, e.g. when its accepted mark could not be stored"""
        self.redis.delete(self._key(identity_id))

    def clear(self):
        for key in self.redis.scan_iter(match=self._key('*')):
            self.redis.delete(key)


def build_cooldown_tracker(config=settings):
    """Cooldown store selected by COOLDOWN_BACKEND"""
    if config.cooldown_backend == 'redis':
        logger.info("Using Redis cooldown store")
        return RedisCooldownTracker(window_seconds=config.cooldown_window_seconds)
    return CooldownTracker(window_seconds=config.cooldown_window_seconds)
