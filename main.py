"""
ScalpScan Comparison Service - FastAPI
Before/after scalp coverage analysis backed by an external detector
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import exceptions
from api.routes import analysis as analysis_routes
from api.schemas.analysis import HealthResponse
from core import config
from utils import logging_utils


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle
    """
    # Setup logging first
    logging_utils.setup_logging()
    logger = logging_utils.get_logger(name="scalpscan.main")

    logger.info("Starting ScalpScan Comparison Service")
    if not config.settings.detector_api_key:
        logger.warning("DETECTOR_API_KEY is not set, analyses will fail")

    yield

    # Shutdown
    logger.info("Shutting down ScalpScan Comparison Service")


# Create FastAPI app
app = FastAPI(
    title=config.settings.app_name,
    version=config.settings.api_version,
    debug=config.settings.debug,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(analysis_routes.router)

# Register exception handlers
app.add_exception_handler(exceptions.InputError, exceptions.input_error_handler)
app.add_exception_handler(
    exceptions.ConfigurationError, exceptions.configuration_error_handler
)
app.add_exception_handler(
    exceptions.DetectorUnavailable, exceptions.detector_error_handler
)
app.add_exception_handler(
    exceptions.DetectorResponseMalformed, exceptions.detector_error_handler
)
app.add_exception_handler(Exception, exceptions.general_exception_handler)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check for container orchestration"""
    return HealthResponse(
        status="ok",
        app_name=config.settings.app_name,
        version=config.settings.api_version,
    )


if __name__ == "__main__":
    uvicorn.run(app=app, host="0.0.0.0", port=5000)
