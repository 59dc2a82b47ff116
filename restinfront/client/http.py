"""
HTTP lifecycle of model instances.

Every request goes through ``fetch``, which tracks its progress in the
instance fetch states and merges the server response into the instance.
Failures never raise: they set the failed states and are reported to the
model ``on_fetch_error`` callback.

One request at a time per instance: a second call before the first one
completes overwrites the remembered request options.
"""
import asyncio
import inspect
import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from restinfront.core.classes import FetchFailure, FetchOptions
from restinfront.core.exceptions import (AuthenticationError,
                                         CollectionOperationError,
                                         ConfigurationError, FetchPayloadError,
                                         FetchStatusError)
from restinfront.core.types import HttpMethod
from restinfront.core.url_utils import build_url, join_paths

logger = logging.getLogger(__name__)

# Seconds before a pending request is aborted
REQUEST_TIMEOUT = 20.0

DEFAULT_LIMIT = 20

_NO_CONTENT = object()

FETCH_ERRORS = (
    AuthenticationError,
    FetchStatusError,
    FetchPayloadError,
    httpx.HTTPError,
    asyncio.TimeoutError,
    # Malformed JSON body
    ValueError,
)


class FetchMixin:
    """HTTP operations of ``restinfront.core.model.Model``."""

    async def _build_request_headers(self, config) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}

        # Authorization header for private APIs
        if config.authentication is not None:
            try:
                token = config.authentication()
                if inspect.isawaitable(token):
                    token = await token
            except Exception as e:
                raise AuthenticationError(
                    f"fetch: `authentication` failed ({str(e) or type(e).__name__})"
                ) from e
            if not token:
                raise AuthenticationError(
                    f"fetch: `authentication` returned an invalid token ({token!r})"
                )
            headers["Authorization"] = f"Bearer {token}"

        return headers

    def _build_request_body(self, options: FetchOptions) -> Optional[Any]:
        if not options.method.has_body:
            return None
        # Validated data only
        return self.before_serialize(remove_invalid=True)

    @staticmethod
    def _read_payload(response: httpx.Response) -> Any:
        if not response.content:
            return _NO_CONTENT
        return response.json()

    def _build_from_payload(self, payload: Any, config):
        data = payload
        count = None
        if (
            isinstance(payload, Mapping)
            and config.collection_data_key in payload
            and config.collection_count_key in payload
        ):
            data = payload[config.collection_data_key]
            count = payload[config.collection_count_key]

        if self.is_collection:
            if not isinstance(data, (list, tuple)) or not all(
                isinstance(item, Mapping) for item in data
            ):
                raise FetchPayloadError(
                    f"fetch: a collection expects a list of objects, or an object with "
                    f"`{config.collection_data_key}` and `{config.collection_count_key}` keys, "
                    f"got {type(data).__name__}"
                )
        elif not isinstance(data, Mapping):
            raise FetchPayloadError(
                f"fetch: an item expects an object, got {type(data).__name__}"
            )
        return type(self)(data, is_new=False, count=count)

    async def fetch(
        self,
        method,
        pathname: Any = "",
        search_params: Optional[Dict[str, Any]] = None,
        extend: bool = False,
    ) -> None:
        """
        Perform a request and merge the response into this instance.

        Args:
            method: One of GET, POST, PUT, PATCH, DELETE
            pathname: Joined after the model endpoint
            search_params: Encoded as the query string, None values dropped
            extend: Append the fetched items to the collection instead of replacing them

        Raises:
            ConfigurationError: If the model has no endpoint
            CollectionOperationError: If a non-GET request is made on a collection
        """
        config = type(self).config()
        if not config.endpoint:
            raise ConfigurationError(
                f"fetch: an `endpoint` is required on model `{type(self).__name__}` to perform a request"
            )

        options = FetchOptions(
            method=method, pathname=pathname, search_params=search_params, extend=extend
        )
        if options.operation == "save" and self.is_collection:
            raise CollectionOperationError(
                f"fetch: {options.method.value} CANNOT be called by a collection instance"
            )

        context = self._restinfront.fetch
        context.options = options
        context.response = None

        states = context.states
        operation_state = getattr(states, options.operation)
        states.progressing = True
        states.failed = False
        states.succeeded = False
        operation_state.reset(progressing=True)

        url = build_url(config.base_url, config.endpoint, options.pathname, options.search_params)

        try:
            try:
                headers = await self._build_request_headers(config)
                body = self._build_request_body(options)

                logger.debug("%s %s", options.method.value, url)
                async with httpx.AsyncClient(
                    transport=config.transport, timeout=REQUEST_TIMEOUT
                ) as client:
                    context.response = await asyncio.wait_for(
                        client.request(options.method.value, url, headers=headers, json=body),
                        timeout=REQUEST_TIMEOUT,
                    )

                if not context.response.is_success:
                    raise FetchStatusError(context.response.status_code)

                payload = self._read_payload(context.response)
                # Built in full before the merge, a payload that does not fit leaves the
                # instance untouched
                fresh = None
                if payload is not _NO_CONTENT:
                    fresh = self._build_from_payload(payload, config)
            except FETCH_ERRORS as e:
                logger.warning(
                    "%s %s failed: %s", options.method.value, url, str(e) or type(e).__name__
                )
                states.failed = True
                operation_state.failed = True
                config.on_fetch_error(
                    FetchFailure(error=e, response=context.response, instance=self)
                )
                return

            states.succeeded = True
            states.succeeded_once = True
            operation_state.succeeded = True

            # Server truth reaches the instance only here
            if fresh is not None:
                self._mutate_data(fresh)
        finally:
            states.progressing = False
            operation_state.progressing = False

    async def get(self, pathname: Any = "", search_params: Optional[Dict[str, Any]] = None) -> None:
        """
        Retrieve a collection (pathname optional, may be given the search params
        directly) or a single item (pathname required).
        """
        if self.is_collection:
            if isinstance(pathname, Mapping):
                search_params = pathname
                pathname = ""

            search_params = dict(search_params or {})
            if search_params.get("limit") is None:
                search_params["limit"] = DEFAULT_LIMIT
            if search_params.get("offset") is None:
                search_params["offset"] = 0

            await self.fetch(HttpMethod.GET, pathname, search_params, extend=False)
        else:
            if (
                isinstance(pathname, bool)
                or not isinstance(pathname, (str, int))
                or pathname == ""
            ):
                raise ConfigurationError("get: a `pathname` is required to get a single item")

            await self.fetch(HttpMethod.GET, pathname, search_params)

    async def get_more(self) -> None:
        """Extend the collection with the next page of the previous ``get``."""
        self._allow_collection()

        previous = self._restinfront.fetch.options
        if previous is None or not previous.search_params:
            raise ConfigurationError("get_more: `get` must be called first")

        search_params = dict(previous.search_params)
        search_params["offset"] += search_params["limit"]

        await self.fetch(HttpMethod.GET, previous.pathname, search_params, extend=True)

    async def post(self, pathname: Any = "") -> None:
        self._deny_collection()
        await self.fetch(HttpMethod.POST, pathname)

    async def put(self, pathname: Any = "") -> None:
        self._deny_collection()
        await self.fetch(HttpMethod.PUT, join_paths(self._primary_key_value(), pathname))

    async def patch(self, pathname: Any = "") -> None:
        self._deny_collection()
        await self.fetch(HttpMethod.PATCH, join_paths(self._primary_key_value(), pathname))

    async def delete(self, pathname: Any = "") -> None:
        self._deny_collection()
        await self.fetch(HttpMethod.DELETE, join_paths(self._primary_key_value(), pathname))

    async def save(self, pathname: Any = "") -> None:
        """Create the item if it is new, update it otherwise."""
        self._deny_collection()
        if self.is_new:
            await self.post(pathname)
        else:
            await self.put(pathname)
