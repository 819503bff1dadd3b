"""
admission/gate.py -- The per-request admission decision.

Order of checks:
  1. Bot detection  -> BotDetected
  2. Shield rules   -> ShieldBlocked
  3. Moving-window rate limit for the caller's role -> RateLimitExceeded

Rate-limit state lives in a `limits` storage backend (the same library slowapi
is built on). The moving-window strategy keeps a timestamped log per key, so
the limit applies to any rolling 60 seconds rather than to clock-aligned
buckets. MemoryStorage serializes acquire_entry() per key with a lock; the
Redis backend does the same with a Lua script, so concurrent requests for the
same key never lose an update.

Keys: authenticated callers are counted per user id, guests per client IP.
The role is passed as an identifier too, so a promotion starts a fresh window.

Failure mode: if a detector or the storage backend raises, fail_open decides.
Closed (default) rejects with AdmissionUnavailable; open logs and allows.
"""

from __future__ import annotations

import logging
import math
import time

from limits import RateLimitItem, parse
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

from admission.detection import BotDetector, Shield
from admission.models import GUEST_ROLE, AdmissionDecision, RequestFingerprint
from core.config import Settings

logger = logging.getLogger("acquisitions.admission")

# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------


class AdmissionRejected(Exception):
    """Base class for every admission rejection. Carries the decision."""

    code = "admission_rejected"
    message = "Request rejected."

    def __init__(self, decision: AdmissionDecision) -> None:
        super().__init__(self.message)
        self.decision = decision


class BotDetected(AdmissionRejected):
    code = "bot_detected"
    message = "Automated requests are not allowed."


class ShieldBlocked(AdmissionRejected):
    code = "shield_blocked"
    message = "Request blocked by security policy."


class RateLimitExceeded(AdmissionRejected):
    code = "rate_limited"
    message = "Too many requests."


class AdmissionUnavailable(AdmissionRejected):
    code = "admission_unavailable"
    message = "Service temporarily unavailable."


_REJECTIONS: dict[str, type[AdmissionRejected]] = {
    "bot": BotDetected,
    "shield": ShieldBlocked,
    "rate-limit": RateLimitExceeded,
    "unavailable": AdmissionUnavailable,
}


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------


class AdmissionGate:
    """Combines bot detection, shield rules, and role-based rate limits.

    Usage:
        gate = AdmissionGate({"admin": "20/minute", "user": "10/minute", "guest": "5/minute"})
        decision = gate.evaluate(fingerprint, role="guest")
        gate.check(fingerprint, role="user", user_id=7)   # raises on rejection
    """

    def __init__(
        self,
        limits: dict[str, str],
        storage_uri: str = "memory://",
        fail_open: bool = False,
        bot_detector: BotDetector | None = None,
        shield: Shield | None = None,
    ) -> None:
        if GUEST_ROLE not in limits:
            raise ValueError("A guest rate limit is required.")
        self._limits: dict[str, RateLimitItem] = {role: parse(value) for role, value in limits.items()}
        self._storage = storage_from_string(storage_uri)
        self._limiter = MovingWindowRateLimiter(self._storage)
        self.fail_open = fail_open
        self.bot_detector = bot_detector or BotDetector()
        self.shield = shield or Shield()

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdmissionGate":
        return cls(
            {
                "admin": settings.rate_limit_admin,
                "user": settings.rate_limit_user,
                GUEST_ROLE: settings.rate_limit_guest,
            },
            storage_uri=settings.rate_limit_storage_uri,
            fail_open=settings.admission_fail_open,
        )

    def limit_for(self, role: str) -> RateLimitItem:
        """Return the rate limit for role; unknown roles get the guest limit."""
        return self._limits.get(role, self._limits[GUEST_ROLE])

    def evaluate(
        self,
        fingerprint: RequestFingerprint,
        role: str = GUEST_ROLE,
        user_id: int | None = None,
    ) -> AdmissionDecision:
        """Run every check and return the decision without raising."""
        if user_id is None:
            role = GUEST_ROLE
            key = f"{GUEST_ROLE}:{fingerprint.client_ip}"
        else:
            key = f"user:{user_id}"
        item = self.limit_for(role)
        base = {"role": role, "key": key, "limit": str(item)}

        allowed, stats = True, None
        try:
            is_bot = self.bot_detector.inspect(fingerprint)
            rule = None if is_bot else self.shield.inspect(fingerprint)
            if not (is_bot or rule):
                allowed = self._limiter.hit(item, role, key)
                stats = self._limiter.get_window_stats(item, role, key)
        except Exception:
            if self.fail_open:
                logger.warning("Admission check failed for %s; failing open", key, exc_info=True)
                return AdmissionDecision(allowed=True, **base)
            logger.exception("Admission check failed for %s; failing closed", key)
            return AdmissionDecision(allowed=False, reason="unavailable", **base)

        if is_bot:
            logger.warning("Bot request blocked: key=%s agent=%r", key, fingerprint.user_agent[:100])
            return AdmissionDecision(allowed=False, reason="bot", **base)
        if rule:
            logger.warning("Shield blocked request: key=%s rule=%s path=%s", key, rule, fingerprint.path)
            return AdmissionDecision(allowed=False, reason="shield", rule=rule, **base)
        if not allowed:
            retry_after = max(1, math.ceil(stats.reset_time - time.time()))
            logger.warning("Rate limit exceeded: key=%s limit=%s", key, item)
            return AdmissionDecision(
                allowed=False,
                reason="rate-limit",
                remaining=0,
                retry_after=retry_after,
                **base,
            )
        return AdmissionDecision(allowed=True, remaining=stats.remaining, **base)

    def check(
        self,
        fingerprint: RequestFingerprint,
        role: str = GUEST_ROLE,
        user_id: int | None = None,
    ) -> AdmissionDecision:
        """Like evaluate(), but raise the matching AdmissionRejected on rejection."""
        decision = self.evaluate(fingerprint, role, user_id)
        if not decision.allowed:
            raise _REJECTIONS[decision.reason](decision)
        return decision

    def reset(self) -> None:
        """Drop all rate-limit state (all keys, all windows)."""
        self._storage.reset()
