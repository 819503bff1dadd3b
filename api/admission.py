"""
api/admission.py -- FastAPI adapter for the admission gate.

enforce_admission() is attached as a router-level dependency in api/main.py,
so it runs before every /api route handler.
Rejections are raised as AdmissionRejected subclasses and turned into 403 /
429 / 503 responses by the exception handlers in api/main.py.

The caller's role comes from the JWT, if one verifies. The token is trusted
as-is here (no store lookup); route dependencies re-check the user later.
A demoted admin therefore keeps the admin rate limit until the token expires.
"""

from __future__ import annotations

from fastapi import Request

from admission.gate import AdmissionGate
from admission.models import GUEST_ROLE, AdmissionDecision, RequestFingerprint
from auth.dependencies import read_token_claims


def fingerprint_request(request: Request) -> RequestFingerprint:
    return RequestFingerprint(
        client_ip=request.client.host if request.client else "unknown",
        user_agent=request.headers.get("User-Agent", ""),
        method=request.method,
        path=request.url.path,
        query=request.url.query,
    )


def enforce_admission(request: Request) -> AdmissionDecision:
    """Admit the request or raise the matching AdmissionRejected."""
    gate: AdmissionGate = request.app.state.admission_gate
    claims = read_token_claims(request)
    role = claims["role"] if claims else GUEST_ROLE
    user_id = claims["user_id"] if claims else None
    decision = gate.check(fingerprint_request(request), role=role, user_id=user_id)
    request.state.admission = decision
    return decision
