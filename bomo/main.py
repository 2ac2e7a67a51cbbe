import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bomo.config import settings
from bomo.database import Base, async_session, engine
from bomo.exceptions import StorageError, TagError
from bomo.logging_config import setup_logging
from bomo.routers import tags
from bomo.schemas.common import ApiResponse
from bomo.services.tag_service import TagService
from bomo.services.tag_store import TagStore
from bomo.utils.seed_tags import seed_default_tags

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)

    # Create all tables
    from bomo.models import Note, NoteTag, Tag  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.SEED_DEFAULT_TAGS:
        await seed_default_tags()

    # A reparent cut short by a crash or timeout can leave stale levels behind
    async with async_session() as session:
        await TagService(TagStore(session)).repair_levels()

    logger.info("BOMO API ready")
    yield
    await engine.dispose()


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    body = ApiResponse(success=False, error=error, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def tag_error_handler(request: Request, exc: TagError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return _error_response(exc.status_code, exc.kind, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Please check the request data"
    if errors:
        first = errors[0]
        message = str(first.get("msg", message)).removeprefix("Value error, ")
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        if location:
            message = f"{location}: {message}"
    return _error_response(400, "ValidationError", message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, exc.__class__.__name__, "Internal server error")


def create_app() -> FastAPI:
    app = FastAPI(title="BOMO Knowledge Base API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TagError, tag_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(tags.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
