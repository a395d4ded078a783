from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import time

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chitjar.api.routes import api_router
from chitjar.core.config import get_settings
from chitjar.core.rate_limit import SlidingWindowLimiter
from chitjar.db.base import Base
from chitjar.db.session import SessionLocal, engine
from chitjar.services.seed import seed_demo_data


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

settings = get_settings()
logger = logging.getLogger("chitjar.api")

rate_limiter = SlidingWindowLimiter(
    max_requests=settings.rate_limit_requests,
    window_seconds=settings.rate_limit_window_seconds,
)
# Idle keys are otherwise only pruned when the same key is seen again.
SWEEP_EVERY_REQUESTS = 500


def _prepare_database() -> None:
    if settings.auto_create_schema:
        Base.metadata.create_all(bind=engine)
    if not settings.seed_demo_data:
        return
    with SessionLocal() as db:
        try:
            seed_demo_data(db)
        except Exception:
            db.rollback()
            logger.exception("Demo seed failed; starting without demo data.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    _prepare_database()
    logger.info("ChitJar API ready (prefix %s).", settings.api_prefix)
    yield
    engine.dispose()
    rate_limiter.reset()
    logger.info("ChitJar API stopped.")


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.request_count = 0


@app.middleware("http")
async def log_and_throttle_requests(request: Request, call_next):
    started = time.monotonic()
    client = request.client.host if request.client else "unknown"

    app.state.request_count += 1
    if app.state.request_count % SWEEP_EVERY_REQUESTS == 0:
        rate_limiter.sweep()
    if not rate_limiter.allow(f"{client}:{request.url.path}"):
        logger.warning("Rate limit hit by %s on %s", client, request.url.path)
        return JSONResponse(status_code=429, content={"detail": "Too many requests. Please retry later."})

    try:
        response = await call_next(request)
    except Exception:  # pragma: no cover
        logger.exception("Unhandled error for %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    logger.info(
        "%s %s -> %s %.2fms",
        request.method,
        request.url.path,
        response.status_code,
        (time.monotonic() - started) * 1000,
    )
    return response


@app.get("/healthz")
def healthz() -> dict:
    return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/", include_in_schema=False)
def root() -> dict[str, str]:
    return {
        "service": settings.app_name,
        "health": f"{settings.api_prefix}/health",
        "dashboard": f"{settings.api_prefix}/analytics/dashboard",
        "docs": "/docs",
    }


@app.get("/favicon.ico", include_in_schema=False)
def favicon() -> Response:
    return Response(status_code=204)


app.include_router(api_router, prefix=settings.api_prefix)
