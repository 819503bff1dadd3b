"""
admission/detection.py -- Bot detection and shield heuristics.

Both detectors are deliberately simple signature matchers. They are injected
into AdmissionGate, so a scoring service can replace either one as long as it
exposes the same inspect(fingerprint) method.

BotDetector:
  Missing User-Agent or a known automation signature -> bot.
  Search-engine crawlers and link-preview agents are allowed through first,
  so "Googlebot" is not caught by the generic "bot" signature.

Shield:
  Matches the URL-decoded path and query string against common attack
  payloads (SQL injection, path traversal, script injection). Request bodies
  are not inspected; Pydantic validates those.
"""

from __future__ import annotations

import re
from urllib.parse import unquote_plus

from admission.models import RequestFingerprint

_ALLOWED_AGENTS = re.compile(
    r"googlebot|bingbot|duckduckbot|yandexbot|baiduspider|applebot"  # search engines
    r"|slackbot|twitterbot|facebookexternalhit|linkedinbot|discordbot|telegrambot|whatsapp",  # link previews
    re.IGNORECASE,
)

_BOT_AGENTS = re.compile(
    r"bot\b|crawler|spider|scraper|scrapy"
    r"|curl/|wget/|libwww-perl|python-requests|python-urllib|aiohttp|go-http-client|java/|okhttp"
    r"|headlesschrome|phantomjs|selenium|puppeteer|playwright",
    re.IGNORECASE,
)

_SHIELD_RULES: tuple[tuple[str, re.Pattern], ...] = (
    (
        "sql_injection",
        re.compile(
            r"\bunion\b[\s\S]*\bselect\b"
            r"|'\s*or\s+'?\d+'?\s*=\s*'?\d+"
            r"|;\s*(drop|delete|truncate|alter)\s+table\b"
            r"|\b(sleep|benchmark|pg_sleep)\s*\(",
            re.IGNORECASE,
        ),
    ),
    ("path_traversal", re.compile(r"\.\.[/\\]|/etc/passwd|\bwin\.ini\b", re.IGNORECASE)),
    ("script_injection", re.compile(r"<\s*script|javascript:|\bon(error|load)\s*=", re.IGNORECASE)),
)


class BotDetector:
    """User-Agent based bot classification."""

    def inspect(self, fingerprint: RequestFingerprint) -> bool:
        """Return True if the request looks automated."""
        agent = fingerprint.user_agent.strip()
        if not agent:
            return True
        if _ALLOWED_AGENTS.search(agent):
            return False
        return _BOT_AGENTS.search(agent) is not None


class Shield:
    """Signature rules over the request target."""

    def inspect(self, fingerprint: RequestFingerprint) -> str | None:
        """Return the name of the first rule that matches, or None."""
        target = unquote_plus(fingerprint.path)
        if fingerprint.query:
            target = f"{target}?{unquote_plus(fingerprint.query)}"
        for name, pattern in _SHIELD_RULES:
            if pattern.search(target):
                return name
        return None
