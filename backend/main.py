import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.configs.forecast_config import LOG_LEVEL, load_forecast_config
from forecast_service import forecast_error_handler, forecast_router
from forecast_service.api_modules.forecast_api import get_orchestrator
from forecast_service.errors import ForecastError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
HEALTH_ROUTE = "/health"
DASHBOARD_ORIGINS: Iterable[str] = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
)


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config = load_forecast_config()
    logger.info(
        "app.startup",
        extra={"model": config.model_name, "reporting_timezone": config.reporting_timezone},
    )
    yield
    # only close a client that was actually created by a request
    if get_orchestrator.cache_info().currsize:
        client = get_orchestrator().client
        aclose = getattr(client, "aclose", None)
        if aclose is not None:
            await aclose()
        get_orchestrator.cache_clear()
    logger.info("app.shutdown")


health_router = APIRouter(prefix=API_PREFIX, tags=["core"])


@health_router.get(HEALTH_ROUTE, summary="Liveness probe")
def health_check() -> dict[str, str]:
    return {"status": "ok"}


def configure_cors(app: FastAPI, *, origins: Iterable[str]) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(origins),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )


def register_routers(app: FastAPI) -> None:
    app.include_router(health_router)
    app.include_router(forecast_router, prefix=API_PREFIX)
    # pipeline errors carry their own status mapping and JSON body
    app.add_exception_handler(ForecastError, forecast_error_handler)


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Health Card Forecast API", version="0.1.0", lifespan=lifespan)
    configure_cors(app, origins=DASHBOARD_ORIGINS)
    register_routers(app)
    return app


app = create_app()
