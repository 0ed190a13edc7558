"""
Results core router module for /results requests

Every path operation is a short pipeline: authenticate the principal,
locate the result(s) visible to it, check the conditional request
headers, validate the payload, mutate or fetch and build the response.
Any step may short-circuit the pipeline by raising an ``APIException``.
"""

import logging
from typing import List

from fastapi import Depends

from ._router import router
from ..dependency import LocalRequestData
from ..etag import ETag, quote
from .. import helpers, policy, versioning
from ...persistence import models
from ... import schemas


logger = logging.getLogger(__name__)

_READ_RESPONSES = {
    304: {"description": "Not Modified"},
    401: {"model": schemas.APIError}
}
_ITEM_READ_RESPONSES = {**_READ_RESPONSES, 404: {"model": schemas.APIError}}


@router.get("/results", tags=["Results"], response_model=schemas.ResultCollection, responses=_READ_RESPONSES)
@router.head("/results", tags=["Results"], response_model=schemas.ResultCollection, responses=_READ_RESPONSES)
@versioning.versions(1)
async def get_all_results(
        sort: schemas.SortKey = schemas.SortKey.ID,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return all results visible to the requesting user, sorted by `id`, `value` or `owner`

    Admins see all results, any other user only the own ones. An empty
    collection is a valid response. The `ETag` header of the response
    can be used with `If-None-Match` to receive `304` (Not Modified)
    as long as the collection didn't change. Responses to `HEAD`
    requests carry no body.

    * `401`: if the request is not properly authenticated
    """

    principal = local.authenticate(f"C{local.request.method}")
    results = [result.schema for result in policy.lookup_all(principal, local.store, sort)]
    tag = ETag.make_etag(results)
    ETag(local.request).check_not_modified(tag)
    return helpers.build_response(
        helpers.Outcome(200, helpers.make_collection(results), ETag.make_headers(tag)),
        local.request
    )


@router.post(
    "/results",
    tags=["Results"],
    status_code=201,
    response_model=List[schemas.Result],
    responses={k: {"model": schemas.APIError} for k in (400, 401, 422)}
)
@versioning.versions(1)
async def create_new_result(local: LocalRequestData = Depends(LocalRequestData)):
    """
    Create a new result, owned by the requesting user by default

    The body must contain the fields `value` (non-negative integer) and
    `time` (timestamp). Admins may set the optional field `owner_id` to
    create a result for another user. The response contains the new
    result as the single element of a list and the `Location` header.

    * `400`: if required fields are missing, the fields `id` or `owner`
        or unknown fields were given, or a non-admin set `owner_id`
    * `401`: if the request is not properly authenticated
    * `422`: if the value or time is invalid or the owner doesn't exist
    """

    principal = local.authenticate("POST")
    payload = helpers.validate_payload(await helpers.read_json_payload(local.request), principal)
    owner = helpers.resolve_owner(payload.owner_id, principal, local.store)

    model = local.store.add(models.Result(value=payload.value, time=payload.time, owner=owner))
    local.store.commit()
    logger.info(f"Created result {model.id} of user {owner.id} by {principal!r}")

    schema = model.schema
    headers = {
        "Location": helpers.make_location(local.request, model.id, local.config.server.public_base_url),
        "ETag": quote(ETag.make_etag(schema))
    }
    return helpers.build_response(helpers.Outcome(201, [schema], headers), local.request)


@router.options("/results", tags=["Results"], status_code=204)
@versioning.versions(1)
async def get_collection_options():
    """
    Return the allowed methods for the collection in the `Allow` header (no authentication required)
    """

    return helpers.build_options_response(helpers.COLLECTION_METHODS)


@router.get("/results/{result_id}", tags=["Results"], response_model=schemas.ResultItem, responses=_ITEM_READ_RESPONSES)
@router.head("/results/{result_id}", tags=["Results"], response_model=schemas.ResultItem, responses=_ITEM_READ_RESPONSES)
@versioning.versions(1)
async def get_result_by_id(
        result_id: schemas.RowId,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return the result of a specific result ID

    The `ETag` header of the response can be used with `If-None-Match`
    to receive `304` (Not Modified) as long as the result didn't change,
    or with `If-Match` to update the result. Responses to `HEAD`
    requests carry no body.

    * `401`: if the request is not properly authenticated
    * `404`: if the result doesn't exist or isn't visible to the user
    """

    principal = local.authenticate(local.request.method)
    schema = policy.lookup_one(result_id, principal, local.store).schema
    tag = ETag.make_etag(schema)
    ETag(local.request).check_not_modified(tag)
    return helpers.build_response(
        helpers.Outcome(200, schemas.ResultItem(result=schema), ETag.make_headers(tag)),
        local.request
    )


@router.put(
    "/results/{result_id}",
    tags=["Results"],
    status_code=209,
    response_model=List[schemas.Result],
    responses={k: {"model": schemas.APIError} for k in (400, 401, 404, 412, 422)}
)
@versioning.versions(1)
async def update_existing_result(
        result_id: schemas.RowId,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Update the value and time of an existing result (and its owner for admins only)

    The `If-Match` header must carry the current `ETag` of the result.
    The body follows the same rules as creating a new result, but an
    admin omitting `owner_id` keeps the current owner. The response uses
    the status code `209` (Content Returned) and contains the updated
    result as the single element of a list and its new `ETag`.

    * `400`: if the body is structurally invalid (see creation)
    * `401`: if the request is not properly authenticated
    * `404`: if the result doesn't exist or isn't visible to the user
    * `412`: if the `If-Match` header is missing or outdated
    * `422`: if the value or time is invalid or the new owner doesn't exist
    """

    principal = local.authenticate("PUT")
    model = policy.lookup_one(result_id, principal, local.store)
    ETag(local.request).check_precondition(ETag.make_etag(model.schema))
    payload = helpers.validate_payload(await helpers.read_json_payload(local.request), principal)

    helpers.apply_payload(model, payload, principal, local.store, logger)
    local.store.commit()
    logger.debug(f"Updated result {model.id} by {principal!r}")

    schema = model.schema
    tag = ETag.make_etag(schema)
    return helpers.build_response(helpers.Outcome(209, [schema], ETag.make_headers(tag)), local.request)


@router.delete(
    "/results/{result_id}",
    tags=["Results"],
    status_code=204,
    responses={k: {"model": schemas.APIError} for k in (401, 404)}
)
@versioning.versions(1)
async def delete_existing_result(
        result_id: schemas.RowId,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Delete an existing result

    * `401`: if the request is not properly authenticated
    * `404`: if the result doesn't exist or isn't visible to the user
    """

    principal = local.authenticate("DELETE")
    model = policy.lookup_one(result_id, principal, local.store)
    local.store.remove(model)
    local.store.commit()
    logger.info(f"Deleted result {result_id} by {principal!r}")
    return helpers.build_response(helpers.Outcome(204), local.request)


@router.options("/results/{result_id}", tags=["Results"], status_code=204)
@versioning.versions(1)
async def get_item_options(result_id: schemas.RowId):
    """
    Return the allowed methods for a single result in the `Allow` header (no authentication required)
    """

    return helpers.build_options_response(helpers.ITEM_METHODS)
