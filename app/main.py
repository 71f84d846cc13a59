"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel

from app.api.activity import router as activity_router
from app.api.auth import router as auth_router
from app.api.notifications import router as notifications_router
from app.api.projects import router as projects_router
from app.api.reminders import router as reminders_router
from app.api.tasks import router as tasks_router
from app.api.ws import router as ws_router
from app.config import get_settings
from app.context import AppContext, build_context
from app.db.session import engine

logger = logging.getLogger(__name__)

settings = get_settings()


def create_app(context: AppContext | None = None, start_scheduler: bool | None = None) -> FastAPI:
    """Build the application.

    Args:
        context: Pre-built services (default: wired from settings at startup)
        start_scheduler: Run timers and the deadline sweep (default: SCHEDULER_ENABLED)
    """
    if start_scheduler is None:
        start_scheduler = settings.SCHEDULER_ENABLED

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables, open the channel, start the scheduler."""
        # Import models to register them with SQLModel
        from app import models  # noqa: F401
        SQLModel.metadata.create_all(engine)

        ctx = context or build_context(settings)
        app.state.context = ctx

        # Socket layer is up from here on; publishing before this point fails
        ctx.channel.set(ctx.connections)

        if start_scheduler:
            ctx.reminders.start()
            with ctx.session_factory() as session:
                ctx.reminders.restore_active_reminders(session)

        logger.info("Application started", extra={"scheduler": start_scheduler})
        try:
            yield
        finally:
            ctx.reminders.shutdown()
            logger.info("Application stopped")

    application = FastAPI(
        title="EduTrack API",
        description="Projects, tasks, notifications and reminders for tutors and students",
        version="1.0.0",
        lifespan=lifespan,
    )

    cors_origins = [origin for origin in {settings.FRONTEND_URL, "http://localhost:3000"} if origin]

    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    application.include_router(auth_router)
    application.include_router(projects_router)
    application.include_router(tasks_router)
    application.include_router(notifications_router)
    application.include_router(reminders_router)
    application.include_router(activity_router)
    application.include_router(ws_router)

    @application.get("/health")
    def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return application


app = create_app()
