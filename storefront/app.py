import logging
import re
import time
from datetime import timedelta
from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from quart import Quart, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .auth.controller import bp as auth_bp
from .auth.service import SessionAuthority
from .common.config import Settings, settings as default_settings
from .common.database import create_engine, create_session_factory, init_db
from .common.errors import StoreFailure, StorefrontError
from .common.redis_client import RedisConnector
from .inventory.controller import bp as inventory_bp
from .inventory.service import InventoryStore
from .orders.controller import bp as orders_bp
from .orders.service import OrderEngine
from .realtime.controller import bp as realtime_bp
from .realtime.publisher import StockPublisher

log = logging.getLogger(__name__)

# Basic metrics with proper buckets for latency
REQUEST_COUNT = Counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"])
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, float("inf"))
)

_PRODUCT_ID_PATH = re.compile(r"/products/\d+$")


def _metrics_endpoint(path: str) -> str:
    # Group dynamic routes to keep label cardinality bounded
    return _PRODUCT_ID_PATH.sub("/products/<id>", path)


def create_app(settings: Optional[Settings] = None) -> Quart:
    settings = settings or default_settings

    app = Quart(__name__)
    app.storefront_settings = settings

    # Services share one engine through injected session factories
    app.db_engine = create_engine(settings)
    session_factory = create_session_factory(app.db_engine)
    app.redis = RedisConnector(settings) if settings.REDIS_ENABLED else None
    app.stock_publisher = StockPublisher(app.redis, settings.REDIS_STOCK_CHANNEL)
    app.inventory_store = InventoryStore(session_factory)
    app.order_engine = OrderEngine(session_factory, app.inventory_store, app.stock_publisher)
    app.session_authority = SessionAuthority(
        session_factory,
        ttl=timedelta(hours=settings.SESSION_TTL_HOURS),
        bcrypt_rounds=settings.BCRYPT_ROUNDS,
    )

    # Blueprints
    app.register_blueprint(inventory_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(realtime_bp)

    @app.errorhandler(StorefrontError)
    async def handle_storefront_error(err: StorefrontError):
        if err.http_status >= 500:
            log.error("Request failed | code=%s cause=%r", err.code, err.__cause__)
        return jsonify(err.to_response()), err.http_status

    @app.errorhandler(SQLAlchemyError)
    async def handle_store_error(err: SQLAlchemyError):
        log.error("Store failure | path=%s err=%s", request.path, err)
        failure = StoreFailure(request.path)
        return jsonify(failure.to_response()), failure.http_status

    @app.errorhandler(Exception)
    async def handle_unexpected_error(err: Exception):
        if isinstance(err, HTTPException):
            return err
        log.error("Unhandled error | path=%s", request.path, exc_info=err)
        failure = StoreFailure(request.path)
        return jsonify(failure.to_response()), failure.http_status

    @app.before_request
    async def before_request():
        request._start_time = time.time()
        log.info(f"[Instance {settings.INSTANCE_ID}] {request.method} {request.path}")

    @app.after_request
    async def after_request(response):
        if hasattr(request, "_start_time"):
            duration = time.time() - request._start_time
            endpoint = _metrics_endpoint(request.path)
            REQUEST_LATENCY.labels(endpoint=endpoint).observe(duration)
            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status=str(response.status_code)
            ).inc()
        response.headers["X-Instance-ID"] = settings.INSTANCE_ID
        return response

    @app.get("/metrics")
    async def metrics():
        data = generate_latest()
        return app.response_class(data, mimetype=CONTENT_TYPE_LATEST)

    @app.get("/api/health")
    async def health():
        return jsonify({"status": "ok"})

    @app.before_serving
    async def startup():
        logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
        log.info("Initializing database...")
        await init_db(app.db_engine, settings)
        log.info("Database ready.")

    @app.after_serving
    async def shutdown():
        if app.redis is not None:
            await app.redis.close()
        await app.db_engine.dispose()
        log.info("Shutdown complete.")

    return app
