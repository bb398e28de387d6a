"""
FastAPI Backend for Homework Marker
Marks uploaded maths homework and streams progress to the client
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse

from .routes import marking, corpus, config as config_routes
from .config import settings
from .core import BaseAPIException
from .services import marking_service

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events"""
    logger.info("Starting Homework Marker API...")
    logger.info(f"Environment: {'development' if settings.DEBUG else 'production'}")

    for directory in [settings.EXPORTS_DIR, settings.DATA_DIR, settings.LOGS_DIR]:
        directory.mkdir(parents=True, exist_ok=True)

    corpus = marking_service.corpus
    logger.info(f"Exam corpus ready with {len(corpus.candidates())} candidate questions")

    yield

    logger.info("Shutting down Homework Marker API...")


app = FastAPI(
    title="Homework Marker API",
    description="AI marking of handwritten maths homework against exam marking schemes",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handlers
@app.exception_handler(BaseAPIException)
async def api_exception_handler(request: Request, exc: BaseAPIException):
    """Handle custom API exceptions"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "error_code": exc.error_code
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "An unexpected error occurred",
            "error_code": "INTERNAL_ERROR"
        }
    )


# Include routers
app.include_router(marking.router, prefix="/api/marking", tags=["Marking"])
app.include_router(corpus.router, prefix="/api/corpus", tags=["Corpus"])
app.include_router(config_routes.router, prefix="/api/config", tags=["Configuration"])

# Annotated pages written by LocalImageStore
app.mount("/static/exports", StaticFiles(directory=str(settings.EXPORTS_DIR)), name="exports")


@app.get("/")
async def root():
    """API root endpoint"""
    return {
        "name": "Homework Marker API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring"""
    return {
        "status": "healthy",
        "version": "1.0.0"
    }
