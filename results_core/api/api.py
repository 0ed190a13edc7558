"""
Results core REST API application factory

The application itself only serves the list of API versions, while
every API version is a separate sub-application mounted below its
own prefix (e.g. ``/api/v1``), each with its own documentation.
"""

import logging.config
import contextlib
from typing import Iterable, Optional, Type

import fastapi
import fastapi.responses
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import base, versioning
from .routers import router
from .. import schemas, __version__
from ..persistence import database
from ..settings import Settings


DEFAULT_EXCEPTION_HANDLERS = {
    StarletteHTTPException: base.APIException.handle,
    RequestValidationError: base.handle_request_validation_error,
    Exception: base.handle_generic_exception
}

LICENSE_INFO = {
    "name": "MIT License",
    "url": "https://opensource.org/licenses/MIT"
}


API_V1_DOC = """Results core REST API definition version 1

This API requires authentication using JSON web tokens, which should be
included in the `Authorization` header with the type `Bearer`. Tokens are
issued by the operators of the server using the `token` command of the
command-line interface. Users with the admin role have full access to all
results, any other user only has access to the own results.

Every response with a body is JSON-encoded. Responses to `HEAD` requests
and `304` (Not Modified) responses never carry a body. All error responses
use the schema of the `APIError`. The following error responses are used:

1. The `400` (Bad Request) error response is used for structurally invalid
   requests, e.g. when required fields are missing, forbidden fields like
   `id` were given or a non-admin user tries to set the owner of a result.
2. The `401` (Unauthorized) error response means that the request
   couldn't be authenticated, i.e. the bearer token is missing, invalid,
   expired or doesn't belong to a known user anymore.
3. The `404` (Not Found) error response is returned whenever a result can't
   be found. Results of other users are reported the same way for non-admin
   users, so that the existence of those results is never revealed.
4. The `412` (Precondition Failed) error response is returned for updates
   without `If-Match` header or with an outdated entity tag in it.
5. The `422` (Unprocessable Entity) error response is returned for invalid
   field values of well-formed requests, e.g. negative values, unparsable
   timestamps or unknown owner IDs.

This API supports conditional HTTP requests. Any result or collection of
results delivered by this API carries the `ETag` header. For `GET` and `HEAD`
requests, a matching `If-None-Match` header yields `304` (Not Modified).
For `PUT` requests, the `If-Match` header is mandatory and must contain the
current entity tag of the result, which effectively prevents lost updates
when multiple clients want to update the same result concurrently.
Take a look into RFC 9110 for more information.
"""


def _build_app(
        title: str,
        description: str,
        settings: Settings,
        app_class: Type[fastapi.FastAPI] = fastapi.FastAPI,
        error_responses: Iterable[int] = (400,),
        **kwargs
) -> fastapi.FastAPI:
    app = app_class(
        title=title,
        version=__version__,
        description=description,
        license_info=LICENSE_INFO,
        responses={code: {"model": schemas.APIError} for code in error_responses},
        **kwargs
    )
    app.state.settings = settings
    for exc_class, handler in DEFAULT_EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exc_class, handler)

    @app.get("/", include_in_schema=False)
    async def redirect_to_docs():
        return fastapi.responses.RedirectResponse("./docs")

    return app


def create_app(
        settings: Optional[Settings] = None,
        configure_logging: bool = True,
        configure_database: bool = True
) -> versioning.VersionedFastAPI:
    """
    Create a new application serving all API versions with the given settings

    Every call returns an independent application (apart from the
    module-level database binding), so tests may create one per test case.

    :param settings: settings of the application (loaded from the usual sources if omitted)
    :param configure_logging: switch to apply the logging section of the settings
    :param configure_database: switch to bind the database of the settings
    :return: new application with all API versions mounted
    """

    if settings is None:
        settings = Settings()
    if configure_logging:
        logging.config.dictConfig(settings.logging.model_dump())
    logger = logging.getLogger(__name__)

    if configure_database:
        database.init(settings.database.connection, settings.database.debug_sql)

    @contextlib.asynccontextmanager
    async def lifespan(_: fastapi.FastAPI):
        logger.info(f"Serving results core {__version__}")
        yield
        logger.info("Stopped serving results core")

    app = _build_app(
        "Results core REST API",
        __doc__,
        settings,
        app_class=versioning.VersionedFastAPI,
        apis={
            1: _build_app(
                "Results core REST API v1",
                API_V1_DOC,
                settings,
                app_class=base.APIWithoutValidationError,
                error_responses=(400, 401)
            )
        },
        logger=logger,
        lifespan=lifespan
    )
    app.add_router(router)
    app.finish()
    logger.debug(f"Created application with API versions {sorted(app.apis)}")
    return app


class APIWrapper:
    """
    Lazy holder of the default application, created with the default settings on first access

    Its only purpose is to give ``uvicorn`` an import string for the
    application, e.g. ``uvicorn results_core.api:api.app``.
    """

    def __init__(self):
        self._app: Optional[fastapi.FastAPI] = None

    @property
    def app(self) -> fastapi.FastAPI:
        if self._app is None:
            self._app = create_app()
        return self._app

    @app.setter
    def app(self, application: fastapi.FastAPI):
        if not isinstance(application, fastapi.FastAPI):
            raise TypeError(f"Expected 'FastAPI', got {type(application)!r}")
        self._app = application


api = APIWrapper()
