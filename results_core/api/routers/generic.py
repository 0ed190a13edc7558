"""
Results core router module for service-wide endpoints
"""

from typing import Any, Dict

from fastapi import Depends

from ._router import router
from ..dependency import MinimalRequestData
from .. import versioning


@router.get("/health", tags=["Generic"], response_model=Dict[str, Any])
@versioning.versions(1)
async def check_health(_: MinimalRequestData = Depends(MinimalRequestData)):
    """
    Respond with an empty object when the application is able to handle requests
    """

    return {}
