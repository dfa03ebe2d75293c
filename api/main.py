from __future__ import annotations

import logging
import os
import time
import uuid
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Route
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY, HTTP_500_INTERNAL_SERVER_ERROR

from pipewise import (
    ParseError,
    PipeError,
    default_value_pipe,
    parse_int_pipe,
    pipe,
    throw_pipe,
    use_body,
    use_param,
    use_query,
    validate_pipe,
)

logger = logging.getLogger("api.app")


def _repo_root() -> Path:
    # `api/main.py` lives at `<repo>/api/main.py`
    return Path(__file__).resolve().parents[1]


class UserIn(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(min_length=1)
    age: int = Field(ge=0)
    email_opt_in: bool = Field(default=False, alias="emailOptIn")


# `?page=` defaults to 1; a non-numeric page is kept as a ParseError in request state.
_page_pipe = pipe(default_value_pipe("1")).pipe(parse_int_pipe())

# Body decode errors and schema errors both surface as 422 through the exception handlers.
_create_user_pipe = pipe(throw_pipe(ParseError)).pipe(validate_pipe(UserIn)).flat_pipe(throw_pipe())


def _request_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def _configure_logging() -> None:
    level_name = (os.getenv("PIPEWISE_API_LOG_LEVEL") or "INFO").strip().upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO))


def create_app() -> FastAPI:
    # Load `.env` + `.env.local` when present (local dev convenience).
    load_dotenv(_repo_root() / ".env", override=False)
    load_dotenv(_repo_root() / ".env.local", override=False)
    _configure_logging()

    app = FastAPI(title="pipewise-demo")
    router = APIRouter(prefix="/v1/api")

    app.middleware("http")(use_query("page", "page", _page_pipe))
    app.middleware("http")(use_body())

    @app.exception_handler(PipeError)
    async def _pipe_error_handler(request: Request, exc: PipeError) -> JSONResponse:
        request_id = _request_id("val")
        logger.info("422 %s requestId=%s path=%s", exc.code, request_id, request.url.path)
        return JSONResponse(
            status_code=HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "ok": False,
                "error": exc.code,
                "message": str(exc),
                "requestId": request_id,
                "details": exc.errors(),
            },
        )

    @app.exception_handler(ValidationError)
    async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        request_id = _request_id("val")
        logger.info("422 validation_error requestId=%s path=%s errors=%s", request_id, request.url.path, exc.error_count())
        return JSONResponse(
            status_code=HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "ok": False,
                "error": "validation_error",
                "message": "Request body did not match expected schema.",
                "requestId": request_id,
                "details": exc.errors(include_url=False, include_context=False),
            },
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = _request_id("err")
        logger.exception("500 internal_error requestId=%s path=%s", request_id, request.url.path)
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "ok": False,
                "error": "internal_error",
                "message": "Unhandled server error.",
                "requestId": request_id,
            },
        )

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"ok": True, "service": "pipewise-demo", "ts": int(time.time() * 1000)}

    @router.get("/items")
    async def list_items(request: Request) -> Dict[str, Any]:
        page = throw_pipe()(request.state.page)
        return {"ok": True, "page": page}

    @router.post("/users")
    async def create_user(request: Request) -> Dict[str, Any]:
        user = await _create_user_pipe(request.state.body)
        return {"ok": True, "user": user.model_dump(by_alias=True)}

    app.include_router(router)

    async def get_user(request: Request) -> JSONResponse:
        user_id = throw_pipe()(request.state.user_id)
        return JSONResponse({"ok": True, "userId": user_id})

    # Path params exist only once the router matched, so `use_param` sits on the route.
    app.router.routes.append(
        Route(
            "/v1/api/users/{user_id}",
            get_user,
            methods=["GET"],
            middleware=[Middleware(BaseHTTPMiddleware, dispatch=use_param("user_id", step=parse_int_pipe()))],
        )
    )

    return app
