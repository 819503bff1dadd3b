"""
auth/service.py -- Signup and signin flows.

These functions hold the credential logic; api/routes/auth.py adds the HTTP
concerns (status codes, session cookie). Signout has no server-side state
and lives entirely in the route.

Security:
  [C1] authenticate_user() runs bcrypt exactly once whether or not the email
       exists, so response time does not reveal registered emails. Use it;
       never inline get_by_email() + verify_password().
  Unknown email and wrong password raise the same InvalidCredentialsError.
  Plaintext passwords are never logged.

Layer rule: no imports from api/ or admission/.
"""

from __future__ import annotations

import logging

from auth.errors import DuplicateEmailError, InvalidCredentialsError
from auth.models import User, normalize_email
from auth.passwords import _DUMMY_HASH, hash_password, verify_password
from auth.store import UserStore

logger = logging.getLogger("acquisitions.auth")


def register_user(store: UserStore, name: str, email: str, password: str, role: str = "user") -> User:
    """Create a user account and return the stored record.

    The pre-check gives the common duplicate case a cheap early exit before
    bcrypt runs. It is not relied on for correctness: the store's UNIQUE
    constraint raises DuplicateEmailError for the concurrent case.
    """
    email = normalize_email(email)
    if store.get_by_email(email) is not None:
        raise DuplicateEmailError()

    user = store.create_user(
        User(
            name=name,
            email=email,
            role=role,
            hashed_password=hash_password(password),
        )
    )
    logger.info("User created with email: %s and role: %s", user.email, user.role)
    return user


def authenticate_user(store: UserStore, email: str, password: str) -> User:
    """Return the User for a valid email/password pair.

    Raises InvalidCredentialsError for an unknown email and for a wrong
    password alike.
    """
    user = store.get_by_email(email)
    if user is None or not user.hashed_password:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        raise InvalidCredentialsError()
    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()
    logger.info("User signed in: id=%s", user.id)
    return user
