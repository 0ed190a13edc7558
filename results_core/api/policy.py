"""
Access policy deciding which results are visible to which principal

Admins have full access to all results, any other principal only sees
its own results. A result that exists but isn't visible to a principal
is indistinguishable from a result that doesn't exist at all.
"""

import logging
from typing import Any, Dict, List

from . import auth, base
from .. import schemas
from ..persistence import models
from ..persistence.store import ResultStore


logger = logging.getLogger(__name__)


def visibility_criteria(principal: auth.Principal) -> Dict[str, Any]:
    """
    Return the filter criteria restricting the results a principal may observe

    :param principal: authenticated principal of the request
    :return: empty dict (no restrictions) for admins, a filter on the owner otherwise
    """

    if principal.is_admin:
        return {}
    return {"owner_id": principal.id}


def lookup_one(result_id: int, principal: auth.Principal, store: ResultStore) -> models.Result:
    """
    Return the result with the given ID if it's visible to the principal

    :param result_id: unique identifier of the requested result
    :param principal: authenticated principal of the request
    :param store: result store of the request's database session
    :return: the located result as SQLAlchemy model
    :raises NotFound: when the result doesn't exist or is invisible to the principal
    """

    result = store.find_one(id=result_id, **visibility_criteria(principal))
    if result is None:
        logger.debug(f"Result {result_id} not found for {principal!r}")
        raise base.NotFound(f"Result with ID {result_id!r}")
    return result


def lookup_all(
        principal: auth.Principal,
        store: ResultStore,
        sort: schemas.SortKey = schemas.SortKey.ID
) -> List[models.Result]:
    return store.find_all(sort, **visibility_criteria(principal))
