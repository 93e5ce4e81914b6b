"""FastAPI application entrypoint."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docshelf.api.deps import build_context_cache, build_ranker
from docshelf.api.v1 import v1_router
from docshelf.core.config import get_settings
from docshelf.core.database import dispose_db, init_db

_settings = get_settings()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup: ensure tables exist in the workspace database
    await init_db()
    yield
    # Shutdown: cached source text is session scoped
    _app.state.context_cache.clear()
    await dispose_db()


app = FastAPI(
    title="Docshelf",
    version="0.1.0",
    description="Local document library and token-budgeted context assembly for characters",
    lifespan=lifespan,
)

app.state.context_cache = build_context_cache()
app.state.ranker = build_ranker()

# ── CORS ─────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── API routes ───────────────────────────────────────────────
app.include_router(v1_router)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    return {"status": "ok"}
