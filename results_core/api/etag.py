"""
Entity tags of results and result collections plus evaluation of conditional request headers
"""

import uuid
import hashlib
import logging
import collections.abc
from typing import Any, Dict, List, Optional

try:
    import ujson as json
except ImportError:
    import json

import pydantic
from fastapi import Request

from . import base


logger = logging.getLogger(__name__)


def quote(tag: str) -> str:
    if not tag.startswith('"'):
        tag = '"' + tag
    if not tag.endswith('"'):
        tag += '"'
    return tag


def split_header(value: Optional[str]) -> List[str]:
    """
    Split the value of an 'If-Match' or 'If-None-Match' header field into its entity tags
    """

    if value is None:
        return []
    return [tag for tag in map(str.strip, value.split(",")) if tag != ""]


def unquote(tag: str) -> str:
    if tag.startswith('"'):
        tag = tag[1:]
    if tag.endswith('"'):
        tag = tag[:-1]
    return tag


class ETag:
    """
    Evaluation of the conditional request headers of a single request

    The read path uses ``check_not_modified`` with the 'If-None-Match' header field
    to allow clients to re-use their cached version. The write path uses
    ``check_precondition`` with the 'If-Match' header field to detect mid-air
    collisions of concurrent updates. Both compare against the tag that
    ``make_etag`` computes from the current persisted state of the resource.
    """

    request: Request

    def __init__(self, request: Request):
        self.request = request

        ignored = [name for name in ("If-Modified-Since", "If-Unmodified-Since", "If-Range") if name in request.headers]
        if ignored:
            logger.warning(f"Ignoring unsupported conditional headers {ignored} of {request.method} {request.url.path}")

    @staticmethod
    def make_headers(tag: str) -> Dict[str, str]:
        """
        Return the headers of a (possibly empty) response carrying the private representation with the given tag
        """

        return {"ETag": quote(tag), "Cache-Control": "private"}

    def check_not_modified(self, model_tag: str) -> bool:
        """
        Compare the current tag with the 'If-None-Match' header field of the client

        Tags are compared weakly, so that a weak validator of
        the client matches the strong validator of the server.

        :param model_tag: tag of the current state of the resource(s)
        :return: ``True`` if the client has no matching cached version
        :raises NotModified: if the user agent already has the most recent version
        """

        values = self.request.headers.getlist("If-None-Match")
        tags = [tag for value in values for tag in split_header(value)]
        for tag in tags:
            if tag == "*":
                raise base.NotModified(model_tag, self.make_headers(model_tag))
            if tag.startswith("W/"):
                tag = tag[2:]
            if unquote(tag) == model_tag:
                raise base.NotModified(model_tag, self.make_headers(model_tag))
        return True

    def check_precondition(self, model_tag: str) -> bool:
        """
        Compare the current tag with the 'If-Match' header field of the client

        The header is mandatory for modifying requests. Tags are compared strongly,
        weak validators and the wildcard value '*' are never accepted.

        :param model_tag: tag of the current persisted state of the resource
        :return: ``True`` if one of the client's tags matches the current state
        :raises PreconditionFailed: if the header is missing or no tag matches
        """

        values = self.request.headers.getlist("If-Match")
        if len(values) > 1:
            logger.debug(f"Merging {len(values)} 'If-Match' header fields")

        tags = [tag for value in values for tag in split_header(value)]
        for tag in tags:
            if tag == "*":
                logger.warning(
                    f"Request for '{self.request.method} {self.request.url.path}' had "
                    f"'If-Match' header value '*' for current model {model_tag}, rejected."
                )
                continue
            if not tag.startswith("W/") and unquote(tag) == model_tag:
                return True

        raise base.PreconditionFailed(f"Conditional request not matching current model entity tag: {model_tag}")

    @staticmethod
    def make_etag(obj: Any) -> Optional[str]:
        """
        Compute the entity tag of a model or a sequence of models

        The value only depends on the content of the object, so repeated calls
        for unchanged resources return the same tag in any process, while any
        change of a visible field results in a different tag. The method
        might return None in case the generation of the ETag failed.

        :param obj: any pydantic model or a sequence of pydantic models
        :return: the tag in UUID format, or None for unsupported objects
        """

        if obj is None:
            return

        if isinstance(obj, pydantic.BaseModel):
            representation = obj.model_dump(mode="json")
        elif isinstance(obj, collections.abc.Sequence) and not isinstance(obj, str):
            if not all(isinstance(e, pydantic.BaseModel) for e in obj):
                logger.error(f"Not all elements of the sequence of length {len(obj)} are models")
                return
            representation = [e.model_dump(mode="json") for e in obj]
        else:
            logger.error(f"No entity tag for objects of type {type(obj).__name__!r}")
            return

        content = type(obj).__name__ + json.dumps(representation, sort_keys=True)
        return str(uuid.UUID(bytes=hashlib.md5(content.encode("UTF-8")).digest()))
