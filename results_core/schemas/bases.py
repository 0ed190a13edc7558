"""
Results core schemas for the base system

This module contains schemas for users (the owners of results),
the results themselves and their request and response envelopes.
"""

import datetime
import enum
from typing import List, Optional

import pydantic


SQL_INTEGER_MAX = 2**63 - 1
"""Largest value of a signed 64-bit integer column"""

RowId = pydantic.conint(ge=0, le=SQL_INTEGER_MAX)


class Role(enum.IntFlag):
    """
    Set of roles of a user, where every user should carry at least the ``USER`` role
    """

    USER = 1
    ADMIN = 2

    @classmethod
    def names(cls, roles: int) -> List[str]:
        return [role.name for role in cls if role & roles]


class SortKey(str, enum.Enum):
    ID = "id"
    VALUE = "value"
    OWNER = "owner"


class Token(pydantic.BaseModel):
    access_token: str
    token_type: str


class Owner(pydantic.BaseModel):
    id: pydantic.NonNegativeInt
    email: pydantic.constr(max_length=255)


class User(pydantic.BaseModel):
    id: pydantic.NonNegativeInt
    email: pydantic.constr(max_length=255)
    roles: List[str]
    created: pydantic.NonNegativeInt


class Result(pydantic.BaseModel):
    id: pydantic.NonNegativeInt
    value: pydantic.NonNegativeInt
    time: datetime.datetime
    owner: Owner


class ResultPayload(pydantic.BaseModel):
    """
    Validated content of a request body to create or update a result

    The structural checks (required, forbidden and unknown fields) happen
    before this model is used, so its validation errors always refer to
    semantically invalid values of otherwise well-formed requests.
    """

    value: pydantic.conint(strict=True, ge=0, le=SQL_INTEGER_MAX)
    time: datetime.datetime
    owner_id: Optional[pydantic.conint(strict=True, ge=0, le=SQL_INTEGER_MAX)] = None

    @pydantic.field_validator("time")
    @classmethod
    def normalize_time(cls, value: datetime.datetime) -> datetime.datetime:
        if value.tzinfo is not None:
            try:
                value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
            except OverflowError as exc:
                raise ValueError("timestamp out of range in UTC") from exc
        return value.replace(microsecond=0)


class ResultItem(pydantic.BaseModel):
    result: Result


class ResultCollection(pydantic.BaseModel):
    results: List[ResultItem]


class VersionInfo(pydantic.BaseModel):
    version: pydantic.PositiveInt
    prefix: str


class Versions(pydantic.BaseModel):
    latest: pydantic.PositiveInt
    versions: List[VersionInfo]
