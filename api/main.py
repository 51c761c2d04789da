import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core import db
from core.errors import register_error_handlers
from institutions import router as institutions_router
from reference import router as reference_router

API_PREFIX = "/api/v1"

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


def cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()] or ["*"]


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Initialize the DB pool once per process.
    await db.init_pool()
    try:
        yield
    finally:
        await db.close_pool()


app = FastAPI(title="Institutions Registry API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Literal /institutions/<segment> routes first, then /institutions/{institution_id}.
app.include_router(reference_router.router, prefix=API_PREFIX, tags=["reference"])
app.include_router(reference_router.geo_router, prefix=API_PREFIX, tags=["geography"])
app.include_router(institutions_router.router, prefix=API_PREFIX, tags=["institutions"])
app.include_router(institutions_router.relations_router, prefix=API_PREFIX)


@app.get("/health")
@app.get(f"{API_PREFIX}/health")
async def health() -> dict:
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "up" if await db.ping() else "down",
    }


@app.get("/")
def root() -> dict:
    return {
        "message": "API Server is running",
        "examples": [
            {
                "description": "List education institutions",
                "method": "GET",
                "url": f"{API_PREFIX}/institutions?category=education",
            },
            {
                "description": "Primary schools in the Analamanga region",
                "method": "GET",
                "url": f"{API_PREFIX}/institutions?category=education&subtype=EPP&region=analamanga",
            },
            {
                "description": "Open institutions with capacity >= 50",
                "method": "GET",
                "url": f"{API_PREFIX}/institutions?status=ouvert&min_capacity=50",
            },
            {
                "description": "Partial name search within a commune",
                "method": "GET",
                "url": f"{API_PREFIX}/institutions?name=lycee&commune=antsiranana",
            },
            {
                "description": "Pagination sorted by establishment year",
                "method": "GET",
                "url": f"{API_PREFIX}/institutions?category=sante&limit=10&offset=20&sort=established",
            },
            {
                "description": "Institutions within 5 km",
                "method": "GET",
                "url": f"{API_PREFIX}/institutions/nearby?lat=-18.8792&lng=47.5079&radius=5",
            },
        ],
    }
