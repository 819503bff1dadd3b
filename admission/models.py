"""
admission/models.py -- Value objects passed through the admission gate.

Pattern: Data class (pure data container, zero logic).
"""

from __future__ import annotations

from dataclasses import dataclass

GUEST_ROLE = "guest"


@dataclass(frozen=True)
class RequestFingerprint:
    """The parts of an HTTP request the gate looks at."""

    client_ip: str
    user_agent: str
    method: str = "GET"
    path: str = "/"
    query: str = ""


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of one admission check.

    reason is None when allowed, otherwise one of "bot", "shield",
    "rate-limit", or "unavailable". rule names the shield rule that fired.
    """

    allowed: bool
    role: str
    key: str
    reason: str | None = None
    rule: str | None = None
    limit: str | None = None
    remaining: int | None = None
    retry_after: int | None = None
