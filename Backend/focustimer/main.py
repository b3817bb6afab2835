import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
import sentry_sdk
from fastapi import FastAPI
from sqlalchemy import text

from focustimer.config import settings
from focustimer.database import engine

logger = logging.getLogger(__name__)

# Initialize Sentry
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=0.2 if settings.ENVIRONMENT == "production" else 1.0,
        send_default_pii=False,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: verify DB connection and connect Redis for timer sync
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))

    app.state.redis = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    await app.state.redis.ping()
    logger.info("Focus timer API started (%s)", settings.ENVIRONMENT)

    yield

    # Shutdown
    await app.state.redis.close()
    await engine.dispose()


app = FastAPI(
    title="Focus Timer API",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from focustimer.middleware.error_handler import register_error_handlers  # noqa: E402

register_error_handlers(app)

# Routers
from focustimer.routers.account import router as account_router  # noqa: E402
from focustimer.routers.sessions import router as sessions_router  # noqa: E402
from focustimer.routers.settings import router as settings_router  # noqa: E402
from focustimer.routers.stats import router as stats_router  # noqa: E402
from focustimer.routers.tasks import router as tasks_router  # noqa: E402

app.include_router(sessions_router)
app.include_router(tasks_router)
app.include_router(settings_router)
app.include_router(stats_router)
app.include_router(account_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
