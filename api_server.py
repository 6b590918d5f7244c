"""FastAPI host for the notification scheduler.

The scheduler runs as a background task for the lifetime of the application,
so it can be deployed next to the rest of the web API. The app itself only
exposes service information and a health check reporting the scheduler state.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

import database
from background_worker import NotificationScheduler
from config import settings
from logger_config import setup_logger
from notifier import NotificationService

logger = setup_logger(__name__, 'api.log')


def create_app(scheduler: Optional[NotificationScheduler] = None) -> FastAPI:
    """Build the application, optionally around a preconfigured scheduler."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = None
        if settings.SCHEDULER_ENABLED:
            if app.state.scheduler is None:
                database.init_db()
                app.state.scheduler = NotificationScheduler(NotificationService())
            task = asyncio.create_task(app.state.scheduler.run())
            logger.info("Notification scheduler hosted in API process")
        else:
            logger.warning("Scheduler is disabled in configuration")

        try:
            yield
        finally:
            if task is not None:
                app.state.scheduler.stop()
                await task

    app = FastAPI(
        title="Heloilo Notification Scheduler",
        description="Background notifications for reminders, daily activities and relationship celebrations",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.scheduler = scheduler

    @app.get("/")
    def root():
        """Root endpoint - service information"""
        return {
            "service": "Heloilo Notification Scheduler",
            "version": "1.0.0",
            "endpoints": {
                "docs": "/docs",
                "health": "/health"
            }
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint for monitoring"""
        scheduler = app.state.scheduler
        return {
            "status": "healthy",
            "service": "notification_scheduler",
            "database": settings.DATABASE_URL.split("://")[0],
            "scheduler": scheduler.status().model_dump() if scheduler else None
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="info"
    )
