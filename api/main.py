import sys
import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic_core import _pydantic_core
from sqlalchemy import text
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request

from api.shared.db import ping
from api.shared.dtos import ErrorResponse, HealthCheckResponse
from api.shared.response import ResponseModel
from chat.exceptions import (
    ChatEngineException,
    CompletionError,
    NotFoundError,
    ValidationError,
)
from core.logging_config import configure_logging
from core.settings import SETTINGS
from di.container import ApplicationContainer as DependencyContainer

configure_logging()

logger = structlog.get_logger("assistant")


class CustomFastAPI(FastAPI):
    container: DependencyContainer


@asynccontextmanager
async def lifespan(_app: CustomFastAPI):
    logger.info("app.startup.begin", environment=SETTINGS.APP.ENVIRONMENT)
    start_time = time.time()

    try:
        if SETTINGS.DATABASE.USE_DATABASE:
            db_start = time.time()
            db_resource = _app.container.infrastructure.database()
            await db_resource.init()
            async with db_resource.engine.begin() as _conn:
                await _conn.execute(text("SET lock_timeout = '4s'"))
                await _conn.execute(text("SET statement_timeout = '8s'"))
                await _conn.execute(text("SELECT 1"))
            logger.info(
                "app.startup.database.ready",
                seconds=round(time.time() - db_start, 2),
            )
        else:
            logger.info("app.startup.database.skipped", store="in_memory")

        openai_resource = _app.container.infrastructure.openai()
        await openai_resource.init()
        logger.info(
            "app.startup.completion.ready",
            backend="openai" if openai_resource.enabled else "offline",
        )

        logger.info(
            "app.startup.complete", seconds=round(time.time() - start_time, 2)
        )
    except Exception as e:
        logger.exception("app.startup.failed", error=str(e))
        raise

    yield

    try:
        await _app.container.services.session_registry().close_all()
        await _app.container.infrastructure.openai().shutdown()
        await _app.container.infrastructure.database().shutdown()
        logger.info("app.shutdown.complete")
    except Exception as e:
        logger.exception("app.shutdown.failed", error=str(e))


def _error(status_code: int, exc: ChatEngineException) -> JSONResponse:
    body = ResponseModel.error(
        message=exc.message,
        data=ErrorResponse(
            error_code=exc.error_code, message=exc.message, details=exc.details
        ),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def register_exception_handlers(_app: FastAPI) -> None:
    @_app.exception_handler(404)
    async def not_found_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=404,
            content={
                "error": "Not Found",
                "detail": f"{exc.detail} : {request.url}",
                "status_code": 404,
            },
        )

    @_app.exception_handler(NotFoundError)
    async def engine_not_found_handler(request: Request, exc: NotFoundError):
        return _error(404, exc)

    @_app.exception_handler(ValidationError)
    async def engine_validation_handler(request: Request, exc: ValidationError):
        return _error(422, exc)

    @_app.exception_handler(CompletionError)
    async def completion_handler(request: Request, exc: CompletionError):
        logger.warning("api.completion.failed", path=request.url.path, error=exc.message)
        return _error(502, exc)

    @_app.exception_handler(ChatEngineException)
    async def engine_handler(request: Request, exc: ChatEngineException):
        logger.warning(
            "api.engine.failed",
            path=request.url.path,
            error_code=exc.error_code,
            error=exc.message,
        )
        return _error(500, exc)

    @_app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": "Validation Error", "detail": str(exc), "status_code": 422},
        )

    @_app.exception_handler(_pydantic_core.ValidationError)
    async def pydantic_validation_handler(
        request: Request, exc: _pydantic_core.ValidationError
    ):
        return JSONResponse(
            status_code=422,
            content={"error": "Validation Error", "detail": str(exc), "status_code": 422},
        )

    @_app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("api.unhandled", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": "An unexpected error occurred",
                "status_code": 500,
            },
        )


def register_health_routes(_app: CustomFastAPI) -> None:
    @_app.get("/")
    async def root():
        return {"message": "Assistant API is running", "status": "ok"}

    @_app.get("/health", response_model=ResponseModel[HealthCheckResponse])
    async def health():
        return ResponseModel.success(
            data=HealthCheckResponse(status="healthy"), message="Service is healthy"
        )

    @_app.get("/ready", response_model=ResponseModel[HealthCheckResponse])
    async def ready():
        dependencies = {"store": "in_memory"}
        if SETTINGS.DATABASE.USE_DATABASE:
            try:
                await ping(_app.container.infrastructure.database())
                dependencies = {"store": "database", "database": "ok"}
            except Exception as e:
                logger.warning("app.ready.database.failed", error=str(e))
                return JSONResponse(
                    status_code=503,
                    content=ResponseModel.error(
                        message="Database unavailable",
                        data=HealthCheckResponse(
                            status="unavailable", dependencies={"database": "error"}
                        ),
                    ).model_dump(mode="json"),
                )
        return ResponseModel.success(
            data=HealthCheckResponse(status="ready", dependencies=dependencies),
            message="Service is ready",
        )


def create_fastapi_app() -> CustomFastAPI:
    origins = {
        "*",
        "http://localhost",
        "http://localhost:*",
        "http://localhost:3000",
        "http://localhost:8000",
    }

    _app = CustomFastAPI(
        title="Assistant Chat API",
        description="Conversation and memory orchestration for the business assistant",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Initialize dependency container
    _app.container = DependencyContainer()
    _app.container.infrastructure.config.from_dict(SETTINGS.model_dump(mode="json"))
    _app.container.wire(modules=[sys.modules[__name__]])
    _app.container.init_resources()

    _app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include feature routers
    from api.features.chat.router import router as chat_router
    from api.features.conversation.router import router as conversation_router
    from api.features.memory.router import router as memory_router

    _app.include_router(
        conversation_router, prefix="/api/v1/conversations", tags=["Conversations"]
    )
    _app.include_router(memory_router, prefix="/api/v1/memory", tags=["Memory"])
    _app.include_router(chat_router, prefix="/api/v1/chat", tags=["Chat"])

    register_health_routes(_app)
    register_exception_handlers(_app)

    return _app


app = create_fastapi_app()
