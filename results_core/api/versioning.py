"""
Results core API library to serve path operations in multiple versions of the API
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

import fastapi
import fastapi.routing

from .. import schemas


ANNOTATION = "_supported_api_versions"


class VersionRange:
    """
    Set of API versions a path operation belongs to

    Explicitly listed versions take precedence over the bounds: if any
    version is listed, exactly the listed versions within the bounds are
    supported, otherwise every version within the bounds is supported.
    """

    def __init__(self, explicit: Tuple[int, ...], minimal: Optional[int], maximal: Optional[int]):
        self.explicit = explicit
        self.minimal = minimal
        self.maximal = maximal

    def __contains__(self, version: int) -> bool:
        if self.minimal is not None and version < self.minimal:
            return False
        if self.maximal is not None and version > self.maximal:
            return False
        return not self.explicit or version in self.explicit

    def __repr__(self) -> str:
        return f"VersionRange(explicit={self.explicit}, minimal={self.minimal}, maximal={self.maximal})"


def versions(
        *explicit: int,
        minimal: Optional[int] = None,
        maximal: Optional[int] = None
) -> Callable[[Callable], Callable]:
    """
    Annotate a path operation function with the API versions which should serve it

    :param explicit: any number of API versions which should serve the path operation
    :param minimal: lowest API version which should serve the path operation
    :param maximal: highest API version which should serve the path operation
    :return: decorator to use on a path operation function below the route decorator
    :raises TypeError: if any of the versions is no integer
    :raises ValueError: if an explicit version lies outside the bounds
    """

    for value in (*explicit, minimal, maximal):
        if value is not None and not isinstance(value, int):
            raise TypeError(f"Expected int as API version, got {type(value)!r}")
    if minimal is not None and any(v < minimal for v in explicit):
        raise ValueError(f"Versions {explicit} conflict with the minimal version {minimal}")
    if maximal is not None and any(v > maximal for v in explicit):
        raise ValueError(f"Versions {explicit} conflict with the maximal version {maximal}")

    def decorator(func: Callable) -> Callable:
        assert not hasattr(func, ANNOTATION), f"API versions of {func.__name__!r} were already set"
        setattr(func, ANNOTATION, VersionRange(explicit, minimal, maximal))
        return func

    return decorator


class VersionedFastAPI(fastapi.FastAPI):
    """
    FastAPI application which mounts one sub-application per API version

    The sub-applications are passed as ``apis`` mapping from the version number
    to the application. Routers are distributed via ``add_router`` which
    only hands a route to the versions its path operation was annotated
    with (see ``versions``). Routes without annotation are only served by
    the latest version. Call ``finish`` exactly once after adding all
    routers to mount the sub-applications below ``version_format``.
    """

    def __init__(
            self,
            apis: Dict[int, fastapi.FastAPI],
            *args,
            version_format: str = "/api/v{}",
            versions_path: str = "/api/versions",
            logger: Optional[logging.Logger] = None,
            **kwargs
    ):
        assert apis, "At least one API version is required"
        assert version_format.count("{}") == 1, "Version format string must contain '{}' once"
        super().__init__(*args, **kwargs)
        self._apis = apis
        self._version_format = version_format
        self._versions_path = versions_path
        self._logger = logger or logging.getLogger(__name__)
        self._finished = False

    @property
    def apis(self) -> Dict[int, fastapi.FastAPI]:
        return self._apis

    @property
    def latest(self) -> int:
        return max(self._apis)

    def get_prefix(self, version: int) -> str:
        return self._version_format.format(version)

    def _select_routes(self, router: fastapi.APIRouter, version: int) -> List[fastapi.routing.APIRoute]:
        selected = []
        for route in router.routes:
            if not isinstance(route, fastapi.routing.APIRoute):
                self._logger.error(f"Route {route!r} is no 'APIRoute' and won't be served by any version")
                continue
            supported = getattr(route.endpoint, ANNOTATION, None)
            if supported is None:
                self._logger.warning(f"Route {route.path!r} has no API version annotation, using {self.latest}")
                supported = VersionRange((self.latest,), None, None)
            if version in supported:
                selected.append(route)
        return selected

    def add_router(self, router: fastapi.APIRouter, **kwargs):
        """
        Include the routes of the router into every sub-application serving them

        :param router: router carrying the annotated path operations
        :param kwargs: further keyword arguments for ``include_router`` of the sub-applications
        :raises RuntimeError: when the sub-applications have already been mounted
        """

        if self._finished:
            raise RuntimeError("Can't add routers after the API versions have been mounted")

        kwargs.pop("prefix", None)
        for version, app in self._apis.items():
            app.include_router(
                fastapi.APIRouter(
                    default_response_class=router.default_response_class,
                    routes=self._select_routes(router, version)
                ),
                **kwargs
            )

    def finish(self, versions_endpoint: bool = True):
        """
        Mount every sub-application below its prefix (only once)

        :param versions_endpoint: switch to serve the list of API versions
        """

        if self._finished:
            return

        if versions_endpoint:
            @self.get(self._versions_path, response_model=schemas.Versions, tags=["Miscellaneous"])
            async def get_version_info():
                return schemas.Versions(
                    latest=self.latest,
                    versions=[
                        schemas.VersionInfo(version=v, prefix=self.get_prefix(v))
                        for v in sorted(self._apis)
                    ]
                )

        for version, app in self._apis.items():
            self.mount(self.get_prefix(version), app)
        self._finished = True
