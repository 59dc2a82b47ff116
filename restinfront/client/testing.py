"""
Test transport for restinfront models.

``MockAPI`` answers requests in-process through ``httpx.MockTransport``, so
no HTTP server needed::

    api = MockAPI()
    api.add("GET", "/users", json={"rows": [{"id": "a"}], "count": 1})
    User.init(base_url=api.base_url, transport=api.transport)
"""
import asyncio
import inspect
import json
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

import httpx


class _Route:
    def __init__(self, status_code=200, json=None, handler=None, delay=None):
        self.status_code = status_code
        self.json = json
        self.handler = handler
        self.delay = delay

    async def respond(self, request: httpx.Request) -> httpx.Response:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.handler is not None:
            response = self.handler(request)
            if inspect.isawaitable(response):
                response = await response
            return response
        if self.json is None:
            return httpx.Response(self.status_code)
        return httpx.Response(self.status_code, json=self.json)


class MockAPI:
    """
    Routes are matched on method and URL path. Several responses registered
    for the same route are served in order, the last one is then repeated.
    Unmatched requests get a 404.
    """

    def __init__(self, base_url: str = "https://api.test"):
        self.base_url = base_url
        self.requests: List[httpx.Request] = []
        self._routes: Dict[Tuple[str, str], Deque[_Route]] = defaultdict(deque)

    def add(
        self,
        method: str,
        path: str,
        json: Any = None,
        status_code: int = 200,
        handler: Optional[Callable[[httpx.Request], Any]] = None,
        delay: Optional[float] = None,
    ) -> "MockAPI":
        self._routes[(method.upper(), path)].append(
            _Route(status_code=status_code, json=json, handler=handler, delay=delay)
        )
        return self

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        routes = self._routes.get((request.method, request.url.path))
        if not routes:
            return httpx.Response(404, json={"detail": "Not found."})
        route = routes.popleft() if len(routes) > 1 else routes[0]
        return await route.respond(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    @property
    def last_request(self) -> httpx.Request:
        if not self.requests:
            raise AssertionError("No request was sent")
        return self.requests[-1]

    @staticmethod
    def json_body(request: httpx.Request) -> Any:
        if not request.content:
            return None
        return json.loads(request.content)
