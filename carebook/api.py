import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from carebook import config
from carebook.bookings import router as bookings_router
from carebook.caregiver_profiles import router as caregiver_profiles_router
from carebook.dashboards import router as dashboards_router
from carebook.database import Backend, InMemoryBackend
from carebook.errors import AuthError, BackendError, auth_error_handler, backend_error_handler
from carebook.notifications import router as notifications_router
from carebook.remote import RemoteBackend
from carebook.reviews import router as reviews_router
from carebook.search import router as search_router
from carebook.session import router as auth_router
from carebook.training import router as training_router

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


def configure_logging() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_backend() -> Backend:
    if config.BACKEND == "remote":
        logger.info(f"Using remote backend at {config.BACKEND_URL}")
        return RemoteBackend()
    if config.BACKEND != "memory":
        raise ValueError(f"Unknown CAREBOOK_BACKEND: {config.BACKEND!r}")
    logger.info("Using in-memory backend")
    return InMemoryBackend()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    yield
    await app.state.backend.aclose()
    logger.info("Application shutting down...")


def create_app(backend: Backend | None = None) -> FastAPI:
    configure_logging()

    app = FastAPI(title="Carebook API", lifespan=lifespan)
    app.state.backend = backend if backend is not None else create_backend()
    app.state.now_fn = lambda: datetime.now(UTC)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # AuthError subclasses BackendError; the more specific handler wins
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(BackendError, backend_error_handler)

    app.include_router(router)
    app.include_router(auth_router)
    app.include_router(dashboards_router)
    app.include_router(search_router)
    app.include_router(bookings_router)
    app.include_router(reviews_router)
    app.include_router(caregiver_profiles_router)
    app.include_router(training_router)
    app.include_router(notifications_router)
    return app
