"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import generate, templates
from db import init_db
from services.retention import start_retention_scheduler, stop_retention_scheduler
from settings import settings


# Create app
app = FastAPI(
    title="Greeting Studio API",
    description="API for personalizing greeting templates",
    version="0.1.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Ensure storage folders exist before mounting them
for directory in (settings.GENERATED_DIR, settings.TEMPLATES_DIR):
    Path(directory).mkdir(parents=True, exist_ok=True)

# Include routers; generation is reachable with and without the /api prefix
app.include_router(generate.router, tags=["generate"])
app.include_router(generate.router, prefix="/api", tags=["generate"])
app.include_router(templates.router, prefix="/api", tags=["templates"])

# Mount static files for templates and generated greetings
for prefix in ("", "/api"):
    app.mount(f"{prefix}/generated", StaticFiles(directory=str(settings.GENERATED_DIR)), name=f"generated{prefix}")
    app.mount(f"{prefix}/templates", StaticFiles(directory=str(settings.TEMPLATES_DIR)), name=f"templates{prefix}")


@app.middleware("http")
async def generated_cache_middleware(request: Request, call_next):
    """Cache generated artifacts until the retention sweep removes them.

    Artifact names are random UUIDs and never rewritten, so responses are immutable.
    """
    response = await call_next(request)
    path = request.url.path
    if response.status_code == 200 and path.startswith(("/generated/", "/api/generated/")):
        max_age = settings.RETENTION_HOURS * 3600
        response.headers["Cache-Control"] = f"public, max-age={max_age}, immutable"
    return response


@app.on_event("startup")
def startup_event():
    """Initialize optional persistence and the retention sweep."""
    app.state.db_handle = init_db(settings.DATABASE_URL)
    if settings.RETENTION_ENABLED:
        start_retention_scheduler(settings.GENERATED_DIR, settings.RETENTION_HOURS)


@app.on_event("shutdown")
def shutdown_event():
    stop_retention_scheduler()


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Greeting Studio API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"ok": True}
