from __future__ import annotations  # FastAPI server exposing the interview session API

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import router
from config.settings import settings
from errors import InterviewError
from interview.sessions import InterviewService, build_service
from storage.migrate import migrate


logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = "30"


def create_app(service: Optional[InterviewService] = None) -> FastAPI:
    """Build the API; ``service`` skips provider selection (used by tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        migrate(settings.DB_PATH)
        app.state.service = service or build_service()
        logger.info("Interview API ready provider=%s", app.state.service.facade.provider_name)
        yield

    app = FastAPI(title="Interview Orchestration API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"]
    )
    app.include_router(router)

    @app.exception_handler(InterviewError)
    async def interview_error(_: Request, exc: InterviewError) -> JSONResponse:  # Map domain errors to HTTP
        headers = {"Retry-After": RETRY_AFTER_SECONDS} if exc.retryable else None
        if exc.status_code >= 500:
            logger.warning("Request failed: %s", exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)}, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def request_invalid(_: Request, exc: RequestValidationError) -> JSONResponse:  # Malformed payloads are 400
        return JSONResponse(status_code=400, content={"detail": "invalid request", "errors": jsonable_errors(exc)})

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()]


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api_server:app", host="0.0.0.0", port=8000)
