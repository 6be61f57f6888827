from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edge_engine.config import get_settings
from edge_engine.runtime import build_runtime

settings = get_settings()
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Queues run in the separate worker process; the API only reads
    runtime = build_runtime(settings, with_queues=False)
    await runtime.init()
    app.state.runtime = runtime

    yield

    await runtime.close()


app = FastAPI(
    title="Edge Engine",
    description="Solana token ingestion and scoring API",
    version="1.0.0",
    lifespan=lifespan,
)

_origins = [settings.frontend_url.rstrip("/"), "http://localhost:3000", "http://localhost:3001"]
if settings.extra_cors_origins:
    _origins.extend([o.strip().rstrip("/") for o in settings.extra_cors_origins.split(",") if o.strip()])
_origins = list(dict.fromkeys(_origins))
logger.info("CORS allowed origins: %s", _origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from edge_engine.api import tokens  # noqa: E402

app.include_router(tokens.router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
