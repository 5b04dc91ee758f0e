"""
Grade Analytics — statistics engine for a gradebook overlay.
FastAPI backend entry point.
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from grade_analytics.engine import build_engine
from grade_analytics.grading import GpaScale
from routes.analyze import router as analyze_router
from routes.grades import router as grades_router

# Load environment
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


APP_NAME = os.getenv("APP_NAME", "Grade Analytics")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ACCELERATION = _env_flag("ANALYTICS_ACCELERATION", "true")
CACHE_ENABLED = _env_flag("ANALYTICS_CACHE_ENABLED", "true")
CACHE_TTL_MS = int(os.getenv("ANALYTICS_CACHE_TTL_MS", "60000"))
GPA_SCALE = GpaScale(
    max_grade=float(os.getenv("GPA_MAX_GRADE", "10.0")),
    passing_grade=float(os.getenv("GPA_PASSING_GRADE", "5.5")),
    gpa_max=float(os.getenv("GPA_MAX", "4.0")),
)
# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the accelerated backend once; the pure backend serves until then."""
    available = await app.state.engine.init()
    logger.info(
        "%s started (accelerated=%s, version=%s)",
        APP_NAME, available, app.state.engine.get_version(),
    )
    yield
    app.state.engine.clear_cache()


app = FastAPI(
    title="Grade Analytics API",
    description=(
        "Grade averages, GPA, descriptive statistics, trends, predictions "
        "and what-if simulation for a gradebook overlay."
    ),
    version="1.0.0",
    lifespan=lifespan,
)
app.state.engine = build_engine(
    acceleration=ACCELERATION,
    cache_enabled=CACHE_ENABLED,
    cache_ttl_ms=CACHE_TTL_MS,
    scale=GPA_SCALE,
)

# CORS: allow the extension / dashboard dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route modules
app.include_router(analyze_router, prefix="/api/analyze", tags=["Analytics"])
app.include_router(grades_router, prefix="/api/grades", tags=["Grades"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "app_name": APP_NAME,
        "accelerated": app.state.engine.is_available(),
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "app_name": APP_NAME,
        "acceleration": ACCELERATION,
        "cache_enabled": CACHE_ENABLED,
        "cache_ttl_ms": CACHE_TTL_MS,
        "gpa_scale": GPA_SCALE.to_dict(),
    }
