"""
Results core REST API base library

All errors of path operations are raised as subclasses of ``APIException``
and rendered into ``APIError`` bodies by ``APIException.handle``, which is
the single place turning exceptions into error responses.
"""

import logging
import secrets
from typing import Any, Dict, List, Optional, Union

import pydantic
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import schemas


logger = logging.getLogger(__name__)

runtime_key = secrets.token_hex(16)
"""Fallback key to sign access tokens when no secret key has been configured"""

ModelType = Union[pydantic.BaseModel, List[pydantic.BaseModel]]

MSG_UNAUTHORIZED = "UNAUTHORIZED: Invalid credentials"
MSG_NOT_FOUND = "NOT FOUND: Result not found"
MSG_NOT_MODIFIED = "NOT MODIFIED: Cached version is still valid"
MSG_PRECONDITION_FAILED = "PRECONDITION FAILED: failed to validate ETag header"
MSG_WRONG_USER_ID = "UNPROCESSABLE: Wrong userid value"


class APIWithoutValidationError(FastAPI):
    """
    FastAPI application whose OpenAPI schema omits FastAPI's own 422 validation responses

    Those validation errors are answered with 400 by ``handle_request_validation_error``.
    """

    def openapi(self) -> Dict[str, Any]:
        if self.openapi_schema:
            return self.openapi_schema
        schema = super().openapi()
        for operations in schema.get("paths", {}).values():
            for operation in operations.values():
                responses = operation.get("responses", {})
                if "HTTPValidationError" in str(responses.get("422", {}).get("content", "")):
                    del responses["422"]
        return schema


def _error_response(
        request: Request,
        status_code: int,
        message: Optional[str],
        details: Optional[str] = None,
        repeat: bool = False,
        headers: Optional[Dict[str, str]] = None
) -> Response:
    if request.method == "HEAD" or status_code == 304:
        return Response(status_code=status_code, headers=headers)
    error = schemas.APIError(
        code=status_code,
        message=message,
        method=request.method,
        request=request.url.path,
        repeat=repeat,
        details=details
    )
    return JSONResponse(jsonable_encoder(error), status_code=status_code, headers=headers)


async def handle_generic_exception(request: Request, _: Exception):
    logger.exception(f"Unexpected error for '{request.method} {request.url.path}'")
    return _error_response(request, 500, "Unexpected server error. The request didn't complete successfully.")


async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    reasons = "; ".join(error["msg"] for error in exc.errors())
    return _error_response(request, 400, f"BAD REQUEST: Invalid request: {reasons}", str(exc.errors()), True)


class APIException(HTTPException):
    """
    Base class of all errors reported to clients

    The ``message`` is shown to the client as-is, so it must not reveal
    internals, while the ``detail`` may carry more technical information.
    The ``repeat`` flag tells clients whether the same request may succeed
    after correcting it.
    """

    def __init__(
            self,
            status_code: int,
            detail: Optional[str] = None,
            repeat: bool = False,
            message: Optional[str] = None,
            headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.repeat = repeat
        self.message = message

    @classmethod
    async def handle(cls, request: Request, exc: StarletteHTTPException) -> Response:
        """
        Render any HTTP exception (including the ones raised by Starlette itself) for the client
        """

        message = getattr(exc, "message", None) or exc.detail
        logger.debug(f"{type(exc).__name__} for '{request.method} {request.url.path}': {message} ({exc.detail})")
        return _error_response(
            request,
            exc.status_code,
            message,
            str(exc.detail),
            getattr(exc, "repeat", False),
            getattr(exc, "headers", None)
        )


class NotModified(APIException):
    """
    Exception when the user agent already has the most recent version of a resource

    This isn't really an error but a short circuit of a conditional
    request, therefore the resulting response will have no body.
    """

    def __init__(self, etag: str, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=304,
            detail=etag,
            repeat=False,
            message=MSG_NOT_MODIFIED,
            headers=headers
        )


class BadRequest(APIException):
    """
    Exception when the request is structurally invalid, e.g. has forbidden fields
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            status_code=400,
            detail=detail,
            repeat=True,
            message=message
        )


class Unauthenticated(APIException):
    """
    Exception when no valid and fresh credential has been presented
    """

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            status_code=401,
            detail=detail,
            repeat=False,
            message=MSG_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"}
        )


class NotFound(APIException):
    """
    Exception when a requested resource was not found or is not visible to the principal

    Both cases are reported the same way to not reveal the existence of a resource.
    """

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            status_code=404,
            detail=detail,
            repeat=False,
            message=MSG_NOT_FOUND
        )


class PreconditionFailed(APIException):
    """
    Exception when the entity tag of a conditional request doesn't match the current state
    """

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            status_code=412,
            detail=detail,
            repeat=False,
            message=MSG_PRECONDITION_FAILED
        )


class UnprocessableEntity(APIException):
    """
    Exception when a field value of a well-formed request is semantically invalid
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            status_code=422,
            detail=detail,
            repeat=True,
            message=message
        )
