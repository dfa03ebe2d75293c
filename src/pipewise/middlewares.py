"""
Request-field middlewares.

Each helper returns an `async (request, call_next)` function, the dispatch shape
used by Starlette's `BaseHTTPMiddleware` and FastAPI's `@app.middleware("http")`.

`use_query` and `use_body` only need the raw request, so they work app-wide:

    app.middleware("http")(use_query("page", "p", pipe(default_value_pipe("1")).pipe(parse_int_pipe())))

`use_param` needs `path_params`, which the router fills in only after a route
matched. App-wide middleware runs before that and would always see None, so
install it on the route itself:

    Route(
        "/users/{user_id}",
        get_user,
        middleware=[Middleware(BaseHTTPMiddleware, dispatch=use_param("user_id", step=parse_int_pipe()))],
    )

The extracted value goes through the optional step and lands on
`request.state.<state_key>` whatever it is, valid value or error value.
Handlers decide what to do with errors.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional

from starlette.requests import Request

from pipewise.core import Pipe, pipe
from pipewise.errors import ParseError, PipeError
from pipewise.parsing import parse_json_pipe
from pipewise.settings import PipeSettings, load_settings

logger = logging.getLogger("pipewise.middlewares")

CallNext = Callable[[Request], Awaitable[Any]]
Middleware = Callable[[Request, CallNext], Awaitable[Any]]


def _path_param(key: str) -> Callable[[Request], Any]:
    def _extract(request: Request) -> Any:
        return request.path_params.get(key)

    return _extract


def _query_param(key: str) -> Callable[[Request], Any]:
    def _extract(request: Request) -> Any:
        return request.query_params.get(key)

    return _extract


def _body_decoder(settings: PipeSettings) -> Callable[[bytes], Any]:
    parse_json = parse_json_pipe()

    def _decode(raw: bytes) -> Any:
        if not raw:
            return None
        if settings.body_max_bytes and len(raw) > settings.body_max_bytes:
            return ParseError(f"Request body exceeds {settings.body_max_bytes} bytes.", None)
        return parse_json(raw)

    return _decode


def _unless_error(step: Any) -> Callable[[Any], Any]:
    run = pipe(step)

    def _step(value: Any) -> Any:
        if isinstance(value, PipeError):
            return value
        return run(value)

    return _step


def _store(state_key: str, chain: Pipe, settings: PipeSettings) -> Middleware:
    async def _middleware(request: Request, call_next: CallNext) -> Any:
        value = chain(request)
        if inspect.isawaitable(value):
            value = await value
        setattr(request.state, state_key, value)
        if settings.log_error_values and isinstance(value, Exception):
            logger.info(
                "stored error value key=%s type=%s path=%s",
                state_key,
                type(value).__name__,
                request.scope.get("path"),
            )
        return await call_next(request)

    return _middleware


def use_param(state_key: str, source_key: Optional[str] = None, step: Any = None) -> Middleware:
    """
    Store route parameter `source_key` (default: `state_key`) on `request.state`.

    Install per route (`Route(..., middleware=[Middleware(BaseHTTPMiddleware, dispatch=...)])`);
    as app-wide middleware it runs before routing and stores None.
    """
    chain = pipe(_path_param(source_key or state_key))
    if step is not None:
        chain = chain.flat_pipe(step)
    return _store(state_key, chain, load_settings())


def use_query(state_key: str, source_key: Optional[str] = None, step: Any = None) -> Middleware:
    """Store query-string value `source_key` (default: `state_key`) on `request.state`."""
    chain = pipe(_query_param(source_key or state_key))
    if step is not None:
        chain = chain.flat_pipe(step)
    return _store(state_key, chain, load_settings())


def use_body(step: Any = None, state_key: str = "body") -> Middleware:
    """
    Store the JSON request body on `request.state.body`.

    An empty body is None. Undecodable or oversized bodies are stored as a
    ParseError and `step` is not run.
    """
    settings = load_settings()

    async def _read(request: Request) -> bytes:
        return await request.body()

    chain = pipe(_read).flat_pipe(_body_decoder(settings))
    if step is not None:
        chain = chain.flat_pipe(_unless_error(step))
    return _store(state_key, chain, settings)


__all__ = ["use_body", "use_param", "use_query"]
