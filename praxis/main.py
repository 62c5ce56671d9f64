from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import logging
import time
from contextlib import asynccontextmanager

# Import configuration and database
from .config import settings
from .database import init_db, SessionLocal
from . import dependencies, __version__
from .models.schemas import HealthCheck

# Import routers
from .routers import (
    auth, lawyers, agents, drafts, document_tokens, subscriptions, lawyer_documents, copilot, system_config
)

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Praxis legal backend...")

    try:
        init_db()
        logger.info("Database initialized")

        dependencies.init_services()
        logger.info("All services initialized successfully")

    except Exception as e:
        logger.error(f"Failed to initialize application: {str(e)}")
        raise

    yield

    logger.info("Shutting down Praxis legal backend...")
    dependencies.shutdown_services()

# Create FastAPI application
app = FastAPI(
    title="Praxis Legal Backend",
    description="Lawyer onboarding, AI-assisted legal agents, document requests with SLA tracking and subscriptions",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [settings.app_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["*"] if settings.debug else ["praxis.legal", "*.praxis.legal"]
)

# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time to response headers."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response

# Error handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "status_code": exc.status_code,
            "timestamp": time.time()
        },
        headers=getattr(exc, "headers", None)
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(f"Unhandled exception on {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "status_code": 500,
            "timestamp": time.time()
        }
    )

# Include routers
for module in (
    auth, lawyers, agents, drafts, document_tokens, subscriptions, lawyer_documents, copilot, system_config
):
    app.include_router(module.router, prefix="/api/v1")

# Health check endpoint
@app.get("/health", response_model=HealthCheck)
async def health_check():
    """Health check endpoint."""
    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        db_status = "healthy"
    except Exception:
        db_status = "unhealthy"

    services = {
        "database": db_status,
        "ai": "healthy" if dependencies.ai_service else "not_initialized",
        "billing": (
            "not_initialized" if not dependencies.dlocal_client
            else "healthy" if dependencies.dlocal_client.configured
            else "not_configured"
        ),
        "copilot": "healthy" if dependencies.copilot_service else "not_initialized"
    }
    overall_status = "healthy" if db_status == "healthy" and services["ai"] == "healthy" else "degraded"

    return {
        "status": overall_status,
        "timestamp": time.time(),
        "version": __version__,
        "services": services
    }

# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Praxis Legal Backend API",
        "version": __version__,
        "docs": "/docs" if settings.debug else "Documentation not available in production",
        "health": "/health"
    }

# API Info endpoint
@app.get("/api/v1/info")
async def api_info():
    """Get API information."""
    return {
        "name": "Praxis Legal Backend API",
        "version": __version__,
        "description": "Backend for lawyers publishing AI legal agents and reviewing client documents",
        "features": [
            "Lawyer onboarding and admin-managed permissions",
            "Legal agent creation wizard with autosaved drafts",
            "AI prompt enhancement, pricing and conversation block suggestions",
            "Client document requests with review SLA tracking",
            "Subscription billing through dLocal Go",
            "Document editor copilot"
        ],
        "document_statuses": [
            "solicitado", "en_revision_abogado", "revisado",
            "revision_usuario", "pagado", "descargado"
        ],
        "claude_model": settings.claude_model
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "praxis.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )
