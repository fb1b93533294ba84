"""
FastAPI Main Application

Entry point for the statement rewards API.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from statement_processor import ParseError, ValidationError

from .routes import categorize_router, rewards_router, statements_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting Statement Rewards API...")
    yield
    logger.info("Shutting down Statement Rewards API...")


app = FastAPI(
    title="Statement Rewards API",
    description="Parse card statements, categorize spend and compare card rewards",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS configuration
cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ParseError)
async def parse_error_handler(request: Request, exc: ParseError) -> JSONResponse:
    return JSONResponse(status_code=400, content=exc.to_dict())


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content=exc.to_dict())


# Include routers
app.include_router(statements_router, prefix="/api")
app.include_router(categorize_router, prefix="/api")
app.include_router(rewards_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Statement Rewards API",
        "version": "1.0.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "endpoints": {
            "statements": "/api/statements",
            "categorize": "/api/categorize",
            "rewards": "/api/rewards/calculate",
            "compare": "/api/rewards/compare",
            "optimize": "/api/rewards/optimize",
        },
        "authentication": "X-User-ID header required outside development",
    }


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=os.getenv("ENVIRONMENT", "development") == "development",
    )
