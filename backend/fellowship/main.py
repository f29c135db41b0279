import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fellowship.core.config import settings
from fellowship.core.logging_config import configure_logging
import fellowship.models  # noqa: F401  # force model registration

from fellowship.api.v1.auth import router as auth_router
from fellowship.api.v1.users import admin_router, router as users_router
from fellowship.api.v1.events import router as events_router
from fellowship.api.v1.timers import router as timers_router
from fellowship.api.v1.groups import router as groups_router
from fellowship.api.v1.posts import router as posts_router
from fellowship.api.v1.gallery import files_router, router as gallery_router
from fellowship.api.v1.notifications import router as notifications_router
from fellowship.crud.roles import ensure_default_roles
from fellowship.db.session import AsyncSessionLocal

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with AsyncSessionLocal() as session:
        await ensure_default_roles(session)
    logger.info("Fellowship API started (%s)", settings.ENVIRONMENT)
    yield


def create_application() -> FastAPI:
    app = FastAPI(title="Fellowship API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s: %s", request.method, request.url.path, exc)
        if settings.is_production:
            return JSONResponse(status_code=500, content={"detail": "Internal server error"})
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.get("/")
    def root():
        return {"status": "ok", "service": "fellowship"}

    # Routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(admin_router, prefix="/api/v1")
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(events_router, prefix="/api/v1")
    app.include_router(timers_router, prefix="/api/v1")
    app.include_router(groups_router, prefix="/api/v1")
    app.include_router(posts_router, prefix="/api/v1")
    app.include_router(gallery_router, prefix="/api/v1")
    app.include_router(files_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")

    return app


app = create_application()
