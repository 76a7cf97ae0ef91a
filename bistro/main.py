import logging
from contextlib import asynccontextmanager

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from bistro import models  # noqa: F401  registers tables on Base.metadata
from bistro.config import Settings, settings as default_settings
from bistro.database import Base, DatabaseHealth, build_engine, build_sessionmaker
from bistro.errors import BistroError
from bistro.fallback.sample_data import sample_menu, sample_orders
from bistro.middleware.metrics import MetricsMiddleware
from bistro.middleware.request_id import RequestIDMiddleware
from bistro.repositories.memory import InMemoryMenuCatalog, InMemoryOrderRepository
from bistro.repositories.sql import ensure_order_sequence
from bistro.routers import menu, orders
from bistro.schemas.common import ErrorResponse, FieldError
from bistro.services.event_publisher import EventPublisher
from bistro.services.menu_service import seed_menu_items
from bistro.services.pricing import PricingPolicy
from bistro.utils.logging import setup_logging
from bistro.utils.tracing import setup_tracing

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


async def _init_database(app: FastAPI) -> None:
    settings: Settings = app.state.settings
    logger.info("Starting up, creating database tables")
    try:
        async with app.state.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with app.state.session_factory() as db:
            await ensure_order_sequence(db)
            if settings.seed_menu:
                await seed_menu_items(db)
    except (SQLAlchemyError, OSError) as exc:
        if settings.is_production:
            raise
        app.state.db_health.mark_down(str(exc))
        logger.warning(
            "Running without database connection, API endpoints will serve mock data",
            extra={"error": str(exc)},
        )
        return
    app.state.db_health.available = True


async def _start_producer(settings: Settings) -> AIOKafkaProducer | None:
    if not settings.kafka_enabled:
        return None
    producer = AIOKafkaProducer(
        bootstrap_servers=settings.kafka_bootstrap_servers,
        enable_idempotence=True,
    )
    try:
        await producer.start()
    except KafkaError as exc:
        logger.warning("Kafka unavailable, order events will not be published", extra={"error": str(exc)})
        await producer.stop()
        return None
    return producer


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    await _init_database(app)

    if settings.tracing_enabled:
        SQLAlchemyInstrumentor().instrument(engine=app.state.engine.sync_engine)

    producer = await _start_producer(settings)
    app.state.publisher = EventPublisher(producer)
    logger.info(
        "Startup complete",
        extra={"database": "connected" if app.state.db_health.available else "degraded"},
    )

    yield

    if producer is not None:
        await producer.stop()
    await app.state.engine.dispose()
    logger.info("Shutting down")


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


def _error_response(status_code: int, body: ErrorResponse, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)


async def bistro_error_handler(request: Request, exc: BistroError) -> JSONResponse:
    logger.info(
        "Request rejected",
        extra={"request_id": getattr(request.state, "request_id", None), "error": exc.message},
    )
    return _error_response(exc.status_code, ErrorResponse(message=exc.message))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error["loc"] if part not in ("body", "query", "path")]
        message = error["msg"].removeprefix("Value error, ")
        errors.append(FieldError(field=".".join(loc), message=message))
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        ErrorResponse(message="Validation errors", errors=errors),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, ErrorResponse(message=str(exc.detail)), headers=exc.headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error",
        extra={"request_id": getattr(request.state, "request_id", None)},
    )
    detail = None if request.app.state.settings.is_production else str(exc)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse(message="Internal server error", error=detail),
    )


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="Bistro Order Service",
        description="Menu lookup, order intake and order lifecycle",
        version=VERSION,
        lifespan=lifespan,
    )

    engine = build_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_sessionmaker(engine)
    app.state.db_health = DatabaseHealth(engine, settings.db_probe_interval)
    app.state.publisher = EventPublisher()
    app.state.fallback_menu = InMemoryMenuCatalog(sample_menu())
    app.state.fallback_orders = InMemoryOrderRepository(
        sample_orders(PricingPolicy(settings.fallback_tax_rate)),
        number_prefix=settings.fallback_order_number_prefix,
        number_width=settings.fallback_order_number_width,
    )

    if settings.tracing_enabled:
        setup_tracing("bistro", VERSION, settings.environment, settings.otlp_endpoint)
        FastAPIInstrumentor.instrument_app(app)

    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(BistroError, bistro_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(orders.router, prefix="/orders", tags=["orders"])
    app.include_router(menu.router, prefix="/menu", tags=["menu"])

    # Expose Prometheus metrics at /metrics
    app.mount("/metrics", make_asgi_app())

    @app.get("/health", tags=["health"])
    async def health():
        available = await app.state.db_health.is_available()
        return {"status": "ok", "database": "connected" if available else "degraded"}

    return app


def build_default_app() -> FastAPI:
    setup_logging(default_settings.log_level, service="bistro", environment=default_settings.environment)
    return create_app(default_settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(build_default_app(), host="0.0.0.0", port=8000)
