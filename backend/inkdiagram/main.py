"""FastAPI app factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from inkdiagram import __version__
from inkdiagram.config import settings
from inkdiagram.engine.errors import PayloadTooLargeError, StrokeValidationError
from inkdiagram.llm.tracing import shutdown_langfuse
from inkdiagram.models.responses import ErrorResponse

load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.inkdiagram_log_level.upper(), logging.INFO),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

logger = logging.getLogger(__name__)


async def _rejected_input(request: Request, exc: StrokeValidationError | PayloadTooLargeError) -> JSONResponse:
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=400, content=ErrorResponse(error=exc.message).model_dump())


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    shutdown_langfuse()


def create_app() -> FastAPI:
    app = FastAPI(
        title="inkdiagram",
        description="Handwritten stroke interpretation — strokes over a diagram become diagram edits",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StrokeValidationError, _rejected_input)
    app.add_exception_handler(PayloadTooLargeError, _rejected_input)

    from inkdiagram.api.router import api_router

    app.include_router(api_router)

    return app


app = create_app()
