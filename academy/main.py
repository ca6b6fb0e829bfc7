"""
Academy API entrypoint.

Run with:
    uvicorn academy.main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from academy.achievements.router import router as achievements_router
from academy.admin.router import router as admin_router
from academy.ai.router import router as ai_router
from academy.auth.router import router as auth_router
from academy.config import Settings
from academy.core.database import create_indexes
from academy.core.errors import register_exception_handlers
from academy.core.log_config import configure_logging, log_requests
from academy.core.rate_limit import rate_limit
from academy.core.services import Services, build_services, close_services
from academy.courses.assignment_router import router as assignments_router
from academy.courses.course_router import router as courses_router
from academy.courses.event_router import router as events_router
from academy.courses.lesson_router import router as lessons_router
from academy.courses.quiz_router import router as quiz_router
from academy.enrollments.router import router as enrollments_router
from academy.flags.router import router as flags_router
from academy.instructors.router import router as instructors_router
from academy.parents.router import router as parents_router
from academy.payments.router import router as payments_router
from academy.progress.router import router as progress_router
from academy.students.router import router as students_router
from academy.users.router import router as users_router

logger = logging.getLogger("academy")

# ==================== ROUTER TABLE ====================
ROUTERS = [
    (auth_router, "/api/auth"),
    (users_router, "/api/users"),
    (courses_router, "/api/courses"),
    (lessons_router, "/api/lessons"),
    (quiz_router, "/api/quiz"),
    (assignments_router, "/api/assignments"),
    (events_router, "/api/events"),
    (enrollments_router, "/api/enrollments"),
    (payments_router, "/api/payments"),
    (progress_router, "/api/progress"),
    (achievements_router, "/api/achievements"),
    (students_router, "/api/student"),
    (instructors_router, "/api/instructor"),
    (parents_router, "/api/parents"),
    (admin_router, "/api/admin"),
    (flags_router, "/api/flags"),
    (ai_router, "/api/ai"),
]


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the application.
    Pass `services` to run against pre-built handles (tests); otherwise they
    are built from `settings` (or the environment) when the app starts.
    """
    if services is not None:
        settings = services.settings
    settings = settings or Settings.from_env()

    configure_logging(settings.is_production)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.services is None
        if owned:
            app.state.services = build_services(settings)
        await create_indexes(app.state.services.db)
        logger.info("Academy API started (%s)", settings.environment)
        yield
        if owned:
            await close_services(app.state.services)

    app = FastAPI(title="Academy API", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=not settings.allow_all_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.middleware("http")(log_requests)
    register_exception_handlers(app, settings.is_production)

    api_limit = [Depends(rate_limit("api"))]
    for router, prefix in ROUTERS:
        app.include_router(router, prefix=prefix, dependencies=api_limit)

    @app.get("/")
    async def root():
        return {"message": "API is running..."}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
