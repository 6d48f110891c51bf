"""Credential verification, identity tokens, and the bearer-token dependency."""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import List, Optional

import bcrypt
import jwt
from fastapi import Header

from config import settings
from errors import Conflict, InvalidCredentials, StoreNotConfigured, Unauthorized
from schemas import Claims, RegisterRequest, User, UserView

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10

# Identities available when no database is configured. Every entry shares
# settings.DEMO_PASSWORD. The beyond26advisors.com identities are canonical;
# the older b26.com demo addresses are not merged in.
DEMO_ROSTER = (
    {"id": "admin-user-id", "email": "admin@beyond26advisors.com", "name": "Admin User", "role": "admin"},
    {"id": "edgar-user-id", "email": "esmith@beyond26advisors.com", "name": "Edgar Smith", "role": "admin"},
    {"id": "alex-user-id", "email": "asmith@beyond26advisors.com", "name": "Alex Smith", "role": "employee"},
    {"id": "client-user-id", "email": "client@example.com", "name": "John Stevens", "role": "client"},
)


# ---------- Passwords ----------

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def verify_password(password: str, stored_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), stored_hash.encode())
    except ValueError:
        return False


@lru_cache
def _dummy_hash() -> str:
    return hash_password("not-a-real-password")


@lru_cache
def demo_users() -> List[User]:
    password_hash = hash_password(settings.DEMO_PASSWORD)
    return [User(password_hash=password_hash, **entry) for entry in DEMO_ROSTER]


# ---------- Credential verifier ----------

def display_name(user: User) -> str:
    if user.first_name and user.last_name:
        return f"{user.first_name} {user.last_name}"
    return user.first_name or user.last_name or user.name or "User"


def to_view(user: User) -> UserView:
    return UserView(id=user.id, email=user.email, role=user.role, name=display_name(user))


def verify_credentials(backend, email: str, password: str) -> UserView:
    """
    Resolve ``email``/``password`` to a user view.

    The active backend's user collection is either the demo roster or the
    users table. Unknown emails still pay for one bcrypt comparison so both
    failure modes look the same from outside.
    """
    user = backend.repository("users").find_one(email=email.strip().lower())
    if user is None:
        verify_password(password, _dummy_hash())
        logger.info("Login rejected")
        raise InvalidCredentials()
    if not verify_password(password, user.password_hash):
        logger.info("Login rejected")
        raise InvalidCredentials()
    return to_view(user)


def register_user(backend, payload: RegisterRequest) -> User:
    if not backend.persistent:
        raise StoreNotConfigured()
    users = backend.repository("users")
    email = str(payload.email).lower()
    if users.find_one(email=email):
        raise Conflict("Email already registered")
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        name=payload.name,
        role=payload.role,
        password_hash=hash_password(payload.password),
    )
    users.insert(user)
    logger.info("Registered user %s with role %s", user.id, user.role)
    return user


# ---------- Tokens ----------

def issue_token(user: UserView) -> str:
    """Sign an identity assertion. No refresh and no revocation: it lives until ``exp``."""
    now = datetime.now(timezone.utc)
    payload = {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "name": user.name,
        "iat": now,
        "exp": now + timedelta(days=settings.JWT_EXPIRES_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> Claims:
    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET, algorithms=[ALGORITHM], options={"require": ["exp", "iat"]}
        )
        return Claims.model_validate(payload)
    except jwt.ExpiredSignatureError:
        logger.info("Rejected request: expired token")
        raise Unauthorized()
    except (jwt.InvalidTokenError, ValueError):
        logger.info("Rejected request: invalid token")
        raise Unauthorized()


def get_current_user(authorization: Optional[str] = Header(None)) -> Claims:
    if not authorization or not authorization.startswith("Bearer ") or not authorization[7:].strip():
        logger.info("Rejected request: missing token")
        raise Unauthorized()
    return decode_token(authorization[7:].strip())
