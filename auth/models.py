"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond projection).
Stores and services do the work; api/models.py owns the HTTP contract.

Layer rule: no imports from api/, core/, or admission/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLES = ("user", "admin")


def normalize_email(email: str) -> str:
    """Emails are stored and compared stripped and lower-cased."""
    return email.strip().lower()


@dataclass
class User:
    """A registered identity.

    hashed_password is a bcrypt hash and must never cross the API boundary.
    Routes return public() instead of the dataclass itself.
    """

    name: str
    email: str
    role: str = "user"  # "user" or "admin"
    id: int | None = None
    hashed_password: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def public(self) -> dict:
        """Return the outward projection: everything except the hash."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "created_at": self.created_at or "",
        }
