"""
Generic helper library for the core REST API
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

try:
    import ujson as json
except ImportError:
    import json

import pydantic
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

from . import auth, base
from .. import schemas
from ..misc.logger import enforce_logger
from ..persistence import models
from ..persistence.store import ResultStore


REQUIRED_FIELDS = ("value", "time")
FORBIDDEN_FIELDS = ("id", "owner")
OWNER_OVERRIDE_FIELD = "owner_id"

COLLECTION_METHODS = ("GET", "POST", "OPTIONS")
ITEM_METHODS = ("GET", "PUT", "DELETE", "OPTIONS")


class Outcome:
    """
    Description of the response of a successfully finished path operation

    The content is either a pydantic model or a list thereof (or ``None``),
    which will be encoded independently of the chosen path operation.
    """

    def __init__(
            self,
            status_code: int,
            content: Optional[base.ModelType] = None,
            headers: Optional[Dict[str, str]] = None
    ):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}

    def __repr__(self) -> str:
        return f"Outcome(status_code={self.status_code}, headers={self.headers})"


class BadRequestPayload(base.BadRequest):
    def __init__(self, reason: str, detail: Optional[str] = None):
        super().__init__(f"BAD REQUEST: {reason}", detail)


def build_response(outcome: Outcome, request: Request) -> Response:
    """
    Convert the outcome of a path operation into the response sent to the client

    Responses to HEAD requests carry the same headers as their
    GET counterparts, but they never carry a body at all.
    """

    if outcome.content is None or request.method == "HEAD":
        return Response(status_code=outcome.status_code, headers=outcome.headers)
    return JSONResponse(
        jsonable_encoder(outcome.content),
        status_code=outcome.status_code,
        headers=outcome.headers
    )


def build_options_response(methods: Iterable[str]) -> Response:
    return Response(
        status_code=204,
        headers={"Allow": ",".join(methods), "Cache-Control": "public, immutable"}
    )


async def read_json_payload(request: Request) -> Dict[str, Any]:
    """
    Read the body of the request which must be a JSON object

    :raises BadRequest: if the body is empty, no valid JSON or no JSON object
    """

    body = await request.body()
    if not body:
        raise BadRequestPayload("The request requires a JSON body.")
    try:
        payload = json.loads(body.decode("UTF-8"))
    except ValueError as exc:
        raise BadRequestPayload("The request body is no valid JSON.", str(exc)) from exc
    if not isinstance(payload, dict):
        raise BadRequestPayload("The request body must be a JSON object.", f"type={type(payload).__name__}")
    return payload


def validate_payload(payload: Dict[str, Any], principal: auth.Principal) -> schemas.ResultPayload:
    """
    Validate the payload to create or update a result in two stages

    The first stage checks the structure of the payload: the required fields
    must be present, while the ID, the owner object and unknown fields are not
    allowed. The owner override field is only allowed for admin principals.
    The second stage checks the values of the fields by the payload schema.

    :param payload: JSON object of the request body
    :param principal: authenticated principal of the request
    :return: validated and normalized payload
    :raises BadRequest: for structurally invalid payloads
    :raises UnprocessableEntity: for semantically invalid field values
    """

    missing = [field for field in REQUIRED_FIELDS if field not in payload]
    if missing:
        raise BadRequestPayload(f"Missing required field(s): {', '.join(missing)}.")
    forbidden = [field for field in FORBIDDEN_FIELDS if field in payload]
    if forbidden:
        raise BadRequestPayload(f"Field(s) not allowed: {', '.join(forbidden)}.")
    unknown = sorted(set(payload) - set(REQUIRED_FIELDS) - {OWNER_OVERRIDE_FIELD})
    if unknown:
        raise BadRequestPayload(f"Unknown field(s): {', '.join(unknown)}.")
    if OWNER_OVERRIDE_FIELD in payload and not principal.is_admin:
        raise BadRequestPayload(f"Field {OWNER_OVERRIDE_FIELD!r} is only allowed for admins.")

    try:
        return schemas.ResultPayload.model_validate(payload)
    except pydantic.ValidationError as exc:
        fields = sorted({str(error["loc"][0]) for error in exc.errors() if error["loc"]})
        if fields == [OWNER_OVERRIDE_FIELD]:
            raise base.UnprocessableEntity(base.MSG_WRONG_USER_ID, str(exc.errors())) from exc
        raise base.UnprocessableEntity(
            f"UNPROCESSABLE: Invalid value of field(s): {', '.join(fields)}",
            str(exc.errors())
        ) from exc


def resolve_owner(
        owner_id: Optional[int],
        principal: auth.Principal,
        store: ResultStore
) -> models.User:
    """
    Resolve the owner of a result, which is the principal's user unless an ID is given

    :raises UnprocessableEntity: when the given owner ID doesn't refer to an existing user
    """

    user = store.get_user(principal.id if owner_id is None else owner_id)
    if user is None:
        raise base.UnprocessableEntity(base.MSG_WRONG_USER_ID, f"owner_id={owner_id!r}")
    return user


def apply_payload(
        result: models.Result,
        payload: schemas.ResultPayload,
        principal: auth.Principal,
        store: ResultStore,
        logger: Optional[logging.Logger] = None
) -> models.Result:
    """
    Apply the validated payload to an existing result, changing its owner only on demand

    Only admins may supply the owner override field at all (which ``validate_payload``
    enforces); an override equal to the current owner ID leaves the owner unchanged.

    :raises UnprocessableEntity: when the new owner ID doesn't refer to an existing user
    """

    logger = enforce_logger(logger)
    if payload.owner_id is not None and payload.owner_id != result.owner_id:
        owner = resolve_owner(payload.owner_id, principal, store)
        logger.info(f"Changing owner of result {result.id} from user {result.owner_id} to user {owner.id}")
        result.owner = owner
    result.value = payload.value
    result.time = payload.time
    return result


def make_collection(results: List[schemas.Result]) -> schemas.ResultCollection:
    return schemas.ResultCollection(results=[schemas.ResultItem(result=r) for r in results])


def make_location(request: Request, result_id: int, public_base_url: Optional[str] = None) -> str:
    """
    Return the absolute URI of the newly created result below the collection of the request
    """

    path = request.url.path.rstrip("/") + f"/{result_id}"
    if public_base_url:
        return str(public_base_url).rstrip("/") + path
    return str(request.url.replace(path=path, query=""))
