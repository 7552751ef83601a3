from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from mathclicks.core.config import get_settings
from mathclicks.core.logging_config import setup_logging
from mathclicks.routers import api, classes, practice, profile, review, sessions, sharing, system
from mathclicks.services.practice_session import PracticeRegistry
from mathclicks.services.teacher_sharing import SharingRegistry


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # arrêt des threads de synchro enseignant
    app.state.sharing.close_all()


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="API web MathClicks (proxy backend, sessions d'entraînement, partage enseignant)",
        lifespan=lifespan,
    )

    app.state.practice = PracticeRegistry(max_idle=settings.CLIENT_IDLE_TIMEOUT)
    app.state.sharing = SharingRegistry(max_idle=settings.CLIENT_IDLE_TIMEOUT)

    # Middleware CORS
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],  # fallback si mal configuré
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(system.router)
    app.include_router(api.router)
    app.include_router(classes.router)
    app.include_router(sessions.router)
    app.include_router(practice.router)
    app.include_router(review.router)
    app.include_router(sharing.router)
    app.include_router(profile.router)

    # Redirect root → docs
    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/docs")

    return app


app = create_app()
