"""
Welfare Workflow API
Grievances and welfare-scheme applications moving through registered workflow stages.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import Engine

from . import __version__
from .config import settings
from .db import create_schema, make_engine
from .errors import ApiError
from .logging_config import setup_logging
from .routers import applications, auth, grievances, health, schemes, users, workflows
from .services import EmailService, TransitionService, build_subject
from .util.ids import new_id
from .workflow import (
    InvalidTransition,
    UnknownTransition,
    UnknownWorkflow,
    WorkflowError,
    WorkflowRegistry,
    get_registry,
)

logger = logging.getLogger(__name__)

WORKFLOW_ERROR_STATUS = {
    UnknownWorkflow: 404,
    UnknownTransition: 404,
    InvalidTransition: 409,
}


def create_app(
    engine: Optional[Engine] = None,
    email_service: Optional[EmailService] = None,
    registry: Optional[WorkflowRegistry] = None,
) -> FastAPI:
    """
    Build the API with its shared state.

    Args:
        engine: Database engine; defaults to one for ``DATABASE_URL``
        email_service: Outgoing mail; defaults to the transport from settings
        registry: Workflow registry; defaults to the process-wide one
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.log_file)
        if settings.auto_create_schema:
            create_schema(app.state.engine)
        logger.info("Welfare API started (%s), workflows: %s", settings.app_env, app.state.registry.list_workflows())
        yield

    app = FastAPI(
        title="Welfare Workflow API",
        version=__version__,
        description="Grievance and welfare application workflows",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.engine = engine or make_engine(settings.database_url)
    app.state.registry = registry or get_registry()
    app.state.email_service = email_service or EmailService.from_settings()
    app.state.transition_service = TransitionService(
        app.state.engine,
        app.state.registry,
        build_subject(app.state.email_service),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url, "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(auth.router, prefix="/api", tags=["auth"])
    app.include_router(users.router, prefix="/api", tags=["users"])
    app.include_router(workflows.router, prefix="/api", tags=["workflows"])
    app.include_router(schemes.router, prefix="/api", tags=["welfare"])
    app.include_router(applications.router, prefix="/api", tags=["welfare"])
    app.include_router(grievances.router, prefix="/api", tags=["grievances"])

    register_handlers(app)
    return app


def register_handlers(app: FastAPI) -> None:
    @app.middleware("http")
    async def add_request_id_header(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or new_id("req_")
        started = time.perf_counter()
        resp: Response = await call_next(request)
        resp.headers.setdefault("X-Request-Id", request_id)
        logger.info(
            "%s %s -> %s (%.1f ms) [%s]",
            request.method,
            request.url.path,
            resp.status_code,
            (time.perf_counter() - started) * 1000,
            request_id,
        )
        return resp

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(WorkflowError)
    async def workflow_error_handler(request: Request, exc: WorkflowError):
        status_code = WORKFLOW_ERROR_STATUS.get(type(exc), 400)
        return JSONResponse(
            status_code=status_code,
            content={"error": {"code": exc.code, "message": exc.message, "details": [exc.to_detail()]}},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {"path": ".".join(str(p) for p in err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=ApiError.validation_error("Request validation failed", details).to_dict(),
        )

    @app.exception_handler(Exception)
    async def default_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "INTERNAL",
                    "message": "Unhandled error",
                    "details": [{"path": request.url.path, "msg": str(exc)}],
                }
            },
        )


app = create_app()
