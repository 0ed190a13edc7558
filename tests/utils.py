"""
Helper functions to make writing unit tests for the results core easier
"""

import os
import sys
import random
import string
import secrets
import unittest
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, Union

import httpx
import pydantic
import sqlalchemy.orm
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine as _Engine

from results_core import schemas as _schemas, settings as _settings
from results_core.api import auth
from results_core.api.api import create_app
from results_core.persistence import database, models

from . import conf


class BaseTest(unittest.TestCase):
    """
    Test case with a private config file path and a private database URL

    Subclasses overriding ``setUp`` or ``tearDown`` have to call the
    inherited method first in ``setUp`` and last in ``tearDown``.
    """

    config_file: Optional[str] = None
    database_url: Optional[str] = None
    _database_file: Optional[str] = None

    def setUp(self) -> None:
        nonce = "".join(random.choices(string.ascii_lowercase, k=6))
        self.config_file = f"config_{os.getpid()}_{nonce}.json"
        _settings.CONFIG_PATHS = [self.config_file]

        if conf.DATABASE_URL is not None:
            self.database_url = conf.DATABASE_URL
            return

        self._database_file = conf.DATABASE_DEFAULT_FILE_FORMAT.format(os.getpid(), secrets.token_hex(4))
        try:
            with open(self._database_file, "wb"):
                pass
        except OSError as exc:
            print(f"Using an in-memory database, {self._database_file!r} isn't writable: {exc}", file=sys.stderr)
            self._database_file = None
            self.database_url = conf.DATABASE_FALLBACK_URL
        else:
            os.remove(self._database_file)
            self.database_url = conf.DATABASE_URL_FORMAT.format(self._database_file)

    def tearDown(self) -> None:
        for path in (self._database_file, self.config_file):
            if path and os.path.exists(path):
                os.remove(path)


class BasePersistenceTests(BaseTest):
    engine: _Engine
    session: sqlalchemy.orm.Session

    def setUp(self) -> None:
        super().setUp()
        if self.database_url.startswith("sqlite:"):
            self.engine = database.create_sqlite_engine(self.database_url, conf.SQLALCHEMY_ECHOING)
        else:
            self.engine = sqlalchemy.create_engine(self.database_url, echo=conf.SQLALCHEMY_ECHOING)
        self.session = sqlalchemy.orm.sessionmaker(
            autoflush=False,
            bind=self.engine
        )()
        models.Base.metadata.create_all(bind=self.engine)

    def tearDown(self) -> None:
        self.session.close()
        models.Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()
        super().tearDown()

    @staticmethod
    def get_sample_users() -> List[models.User]:
        return [
            models.User(email="admin@example.com", roles=int(_schemas.Role.USER | _schemas.Role.ADMIN)),
            models.User(email="alice@example.com", roles=int(_schemas.Role.USER)),
            models.User(email="bob@example.com")
        ]


class BaseAPITests(BaseTest):
    """
    Base class for tests of the REST API which run the application in-process

    Every test gets a fresh database with three users: one admin and two
    regular users. Use the ``user`` argument of ``assertQuery`` to select
    which user authenticates the request (or None to send no token at all).
    """

    api_version_format: str = "/api/v{}"
    api_version: int = 1

    app: Any = None
    client: Optional[TestClient] = None
    settings: Optional[_settings.Settings] = None

    users: Dict[str, int]
    tokens: Dict[str, str]

    def setUp(self) -> None:
        super().setUp()
        database.PRINT_SQLITE_WARNING = False
        self.settings = _settings.Settings(
            database={"connection": self.database_url, "debug_sql": conf.SQLALCHEMY_ECHOING},
            auth={"secret_key": conf.AUTH_SECRET_KEY}
        )
        self.app = create_app(self.settings, configure_logging=False)
        self.client = TestClient(self.app)

        self.users = {}
        self.tokens = {}
        with database.get_new_session() as session:
            for name, roles in [
                ("admin", _schemas.Role.USER | _schemas.Role.ADMIN),
                ("alice", _schemas.Role.USER),
                ("bob", _schemas.Role.USER)
            ]:
                user = models.User(email=f"{name}@example.com", roles=int(roles))
                session.add(user)
                session.commit()
                self.users[name] = user.id
                self.tokens[name] = auth.create_access_token(user.email, conf.AUTH_SECRET_KEY)

    def tearDown(self) -> None:
        self.client.close()
        database.get_engine().dispose()
        super().tearDown()

    def get_db_session(self) -> sqlalchemy.orm.Session:
        return database.get_new_session()

    def make_result(self, owner: str, value: int = 42, time: str = "2024-01-01T00:00:00Z") -> dict:
        response = self.assertQuery(
            ("POST", "/results"),
            201,
            json={"value": value, "time": time, "owner_id": self.users[owner]}
        )
        return response.json()[0]

    def get_etag(self, result_id: int, user: str = "admin") -> str:
        return self.assertQuery(("GET", f"/results/{result_id}"), 200, user=user).headers["ETag"]

    def assertQuery(
            self,
            endpoint: Union[Tuple[str, str], Tuple[str, str, int]],
            status_code: Union[int, Iterable[int]] = 200,
            json: Optional[Union[dict, list, pydantic.BaseModel]] = None,
            headers: Optional[dict] = None,
            user: Optional[str] = "admin",
            r_none: bool = False,
            r_is_json: bool = True,
            r_headers: Optional[Union[Mapping, Iterable]] = None,
            r_schema: Optional[Union[pydantic.BaseModel, Type[pydantic.BaseModel]]] = None,
            no_version: bool = False,
            **kwargs
    ) -> httpx.Response:
        """
        Send a request through the test client and check the response

        :param endpoint: method and path, optionally followed by the API version
        :param status_code: expected status code or collection of acceptable ones
        :param json: request body as JSON-compatible data or model
        :param headers: additional request headers
        :param user: test user sending its bearer token (None sends no token)
        :param r_none: expect an empty body and skip the other body checks
        :param r_is_json: expect a JSON body
        :param r_headers: names (or name-value mapping) of expected response headers
        :param r_schema: model class the body must validate against, or model instance it must equal
        :param no_version: send the path without the API version prefix
        :param kwargs: passed through to ``TestClient.request``
        :return: the response
        """

        if len(endpoint) == 3:
            method, path, api_version = endpoint
        else:
            method, path = endpoint
            api_version = self.api_version

        if isinstance(json, pydantic.BaseModel):
            json = json.model_dump(mode="json")

        prefix = "" if no_version else self.api_version_format.format(api_version)
        headers = dict(headers or {})
        if user is not None:
            headers["Authorization"] = f"Bearer {self.tokens[user]}"
        if json is not None:
            kwargs["json"] = json
        response = self.client.request(method.upper(), prefix + path, headers=headers, **kwargs)

        if isinstance(status_code, int):
            self.assertEqual(status_code, response.status_code, response.text)
        elif isinstance(status_code, Iterable):
            self.assertTrue(
                response.status_code in status_code,
                (response.text, response.status_code, status_code)
            )

        if r_headers is not None:
            for k in (r_headers if isinstance(r_headers, Iterable) else r_headers.keys()):
                self.assertIsNotNone(response.headers.get(k), response.headers)
                if isinstance(r_headers, Mapping):
                    self.assertEqual(r_headers[k], response.headers.get(k), response.headers)

        if r_none:
            self.assertEqual(b"", response.content)

        elif r_is_json:
            try:
                self.assertIsNotNone(response.json())
            except ValueError:
                self.fail(("No JSON content detected", response.headers, response.text))

            if r_schema and isinstance(r_schema, pydantic.BaseModel):
                self.assertEqual(r_schema, type(r_schema).model_validate(response.json()), response.json())
            elif r_schema and isinstance(r_schema, type) and issubclass(r_schema, pydantic.BaseModel):
                self.assertTrue(r_schema.model_validate(response.json()), response.json())

        return response

    def assertError(self, response: httpx.Response, status_code: int, message: Optional[str] = None):
        error = _schemas.APIError.model_validate(response.json())
        self.assertTrue(error.error)
        self.assertEqual(status_code, error.code)
        self.assertEqual(response.request.method, error.method)
        if message is not None:
            self.assertEqual(message, error.message)
