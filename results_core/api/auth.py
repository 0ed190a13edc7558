"""
Authentication helper library for the core REST API
"""

import datetime
import logging
from typing import List, Optional

from jose import jwt

from . import base
from .. import schemas
from ..persistence import models


logger = logging.getLogger(__name__)


class Principal:
    """
    Authenticated actor of a single request, carrying its identity and role set
    """

    def __init__(self, user_id: int, email: str, roles: schemas.Role):
        self.id = user_id
        self.email = email
        self.roles = schemas.Role(roles)

    @classmethod
    def from_user(cls, user: models.User) -> "Principal":
        return cls(user.id, user.email, schemas.Role(user.roles or 0))

    @property
    def is_admin(self) -> bool:
        return bool(self.roles & schemas.Role.ADMIN)

    @property
    def role_names(self) -> List[str]:
        return schemas.Role.names(self.roles)

    def __repr__(self) -> str:
        return f"Principal(id={self.id}, email={self.email}, roles={self.role_names})"


def get_signing_key(secret_key: Optional[str] = None) -> str:
    return secret_key or base.runtime_key


def create_access_token(subject: str, key: Optional[str] = None, expiration_minutes: int = 120) -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    return jwt.encode(
        {
            "exp": now + datetime.timedelta(minutes=expiration_minutes),
            "iat": now,
            "sub": subject
        },
        get_signing_key(key),
        algorithm=jwt.ALGORITHMS.HS256
    )


def decode_access_token(token: str, key: Optional[str] = None) -> str:
    """
    Verify the signature and freshness of the token and return its subject (the user's email)

    :raises Unauthenticated: if the token is invalid, expired or carries no subject
    """

    try:
        payload = jwt.decode(
            token,
            get_signing_key(key),
            algorithms=[jwt.ALGORITHMS.HS256],
            options={"require_exp": True, "require_iat": True}
        )
        subject = payload.get("sub", None)
        expiration = int(payload.get("exp", 0))
    except (jwt.JWTError, ValueError, TypeError) as exc:
        raise base.Unauthenticated(f"Token validation failed: {exc}") from exc
    if not subject or expiration <= 0:
        raise base.Unauthenticated("Token without subject or expiration")
    return subject
