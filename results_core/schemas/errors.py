"""
Results core error schemas
"""

from typing import Optional

import pydantic


class APIError(pydantic.BaseModel):
    """
    APIError: shared model for all types of API failures

    Whenever some kind of problem occurs during request handling and some
    exception handler took over, the answer will be some kind of this model.
    The only exceptions are `304` (Not Modified) and any response to a `HEAD`
    request, since those never carry a body at all.

    The field `error` should always contain a true boolean value. The field
    `code` contains the HTTP status code of the response. The field `message`
    contains a short human-readable message about the problem, which may be
    empty for terse responses. The field `request` contains the request path
    without query parameters, while the `method` field holds the request
    method (e.g. `PUT`). The field `repeat` determines whether executing the
    exact same request again may be successful instead. The field `details`
    contains arbitrary data about the problem source for debugging purposes.
    """

    error: bool = True
    code: pydantic.NonNegativeInt
    message: Optional[str] = None
    method: pydantic.constr(max_length=255)
    request: str
    repeat: bool = False
    details: Optional[str] = None
