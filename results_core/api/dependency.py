"""
Results core API dependency library
"""

import logging
from typing import Generator, Optional

import sqlalchemy.exc
from fastapi import Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from . import auth, base
from ..persistence import database
from ..persistence.store import ResultStore
from ..settings import Settings


logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def get_session() -> Generator[Session, None, None]:
    """
    Provide one database session per request, rolled back on any error and closed afterwards
    """

    session = database.get_new_session()
    try:
        yield session
        session.flush()
    except sqlalchemy.exc.SQLAlchemyError as exc:
        statement = getattr(exc, "statement", None) or ""
        logger.exception(f"{type(exc).__name__} (statement: {statement.strip()!r})")
        session.rollback()
        raise
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class MinimalRequestData:
    """
    Request, response and database session of a path operation without authentication
    """

    def __init__(
            self,
            request: Request,
            response: Response,
            session: Session = Depends(get_session)
    ):
        self.request = request
        self.response = response
        self.session = session
        self._settings: Optional[Settings] = None

    @property
    def config(self) -> Settings:
        """
        Settings of the application serving the request (loaded from the usual sources if absent)
        """

        if self._settings is None:
            self._settings = getattr(self.request.app.state, "settings", None) or Settings()
        return self._settings


class LocalRequestData(MinimalRequestData):
    """
    Per-request context of the path operations on results

    The bearer token is only collected here, but not checked: handlers
    call ``authenticate`` as the first step of their pipeline, so the
    resulting principal is explicitly passed along from there on.
    """

    def __init__(
            self,
            request: Request,
            response: Response,
            session: Session = Depends(get_session),
            token: Optional[str] = Depends(oauth2_scheme)
    ):
        super().__init__(request, response, session)
        self._token = token
        self.store = ResultStore(session)

    def authenticate(self, action: str) -> auth.Principal:
        """
        Resolve the principal of the request or raise ``Unauthenticated``

        :param action: name of the operation which is recorded in the audit log
        :return: the authenticated principal with its identity and role set
        :raises Unauthenticated: if no valid and fresh credential was presented
            or the token's subject doesn't refer to an existing user
        """

        if not self._token:
            raise base.Unauthenticated("No bearer token found")
        email = auth.decode_access_token(self._token, self.config.auth.secret_key)
        user = self.store.find_user(email)
        if user is None:
            raise base.Unauthenticated(f"Unknown token subject {email!r}")

        principal = auth.Principal.from_user(user)
        logger.info(
            f"Authenticated user: action={action!r}, user_id={principal.id}, "
            f"user_identifier={principal.email!r}, roles={principal.role_names}"
        )
        return principal
