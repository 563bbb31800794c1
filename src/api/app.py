"""
FastAPI application factory.

* Builds every collaborator explicitly (DB engine, gateways, permit
  engine, sweeper) and hangs them on ``app.state``; tests pass their own.
* Registers routes for permits, driver status and admin.
* Starts / stops the background expiry sweeper via lifespan events.
* Applies rate-limiting and domain-error handlers.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.api.errors import register_error_handlers
from src.api.middleware import limiter
from src.api.routes import admin, driver, permits
from src.config import Settings, settings as default_settings
from src.infrastructure.database import build_engine, build_session_factory
from src.infrastructure.object_store import ObjectStoreGateway
from src.infrastructure.order_routing import OrderRoutingGateway
from src.infrastructure.redis_client import build_redis
from src.services.permit_engine import PermitEngine
from src.workers.expiry import ExpirySweeper

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the expiry sweeper on startup; stop it on shutdown."""
    await app.state.sweeper.start()
    yield
    await app.state.sweeper.stop()
    if app.state.db_engine is not None:
        await app.state.db_engine.dispose()


def create_app(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    order_routing: Optional[OrderRoutingGateway] = None,
    object_store: Optional[ObjectStoreGateway] = None,
    redis=None,
) -> FastAPI:
    settings = settings or default_settings

    db_engine = None
    if session_factory is None:
        db_engine = build_engine(settings.database_url)
        session_factory = build_session_factory(db_engine)

    order_routing = order_routing or OrderRoutingGateway(
        settings.order_routing_url,
        api_key=settings.order_routing_api_key,
        partner_id=settings.order_routing_partner_id,
        timeout=settings.order_routing_timeout,
        simulate=settings.order_routing_simulate,
    )
    object_store = object_store or ObjectStoreGateway(
        settings.storage_bucket,
        endpoint_url=settings.storage_endpoint,
        region_name=settings.storage_region,
        access_key=settings.storage_access_key,
        secret_key=settings.storage_secret_key,
        public_url=settings.storage_public_url,
    )
    permit_engine = PermitEngine(
        session_factory,
        order_routing,
        object_store,
        settings.upload_policy,
    )
    sweeper = ExpirySweeper(
        permit_engine,
        redis if redis is not None else build_redis(settings.redis_url),
        interval_seconds=settings.expiry_interval_seconds,
        lock_ttl_seconds=settings.sweep_lock_ttl_seconds,
    )

    app = FastAPI(
        title="Driver Work Permit API",
        description=(
            "Issues 16-hour work permits to taxi drivers once their vehicle "
            "checklist and photos are complete, and keeps their order "
            "eligibility in the dispatch platform in step with the permit."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.db_engine = db_engine
    app.state.session_factory = session_factory
    app.state.permit_engine = permit_engine
    app.state.sweeper = sweeper

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_error_handlers(app)

    # Routers
    app.include_router(permits.router, prefix="/api/v1")
    app.include_router(driver.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
