"""
Copyright (c) 2025 Binary Core LLC. All rights reserved.

This file is part of ScalpScan, a proprietary product of Binary Core LLC.
Unauthorized copying, modification, or distribution of this file,
via any medium, is strictly prohibited.

Analysis errors and API exception handlers for global error handling
"""

from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from utils import logging_utils

logger = logging_utils.get_logger("scalpscan.api.exceptions")


class AnalysisError(Exception):
    """Base class for errors that abort a before/after comparison"""


class ConfigurationError(AnalysisError):
    """Required configuration (the detector credential) is missing"""


class InputError(AnalysisError):
    """The before/after payloads or the requested model are invalid"""


class DetectorUnavailable(AnalysisError):
    """The detector answered with a non-success status or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DetectorResponseMalformed(AnalysisError):
    """The detector answered with a body that is not JSON"""


async def input_error_handler(request: Request, exc: InputError):
    """Handle invalid client input raised outside the progress stream"""
    logger.warning(f"Client error at {request.method} {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)}
    )


async def configuration_error_handler(request: Request, exc: ConfigurationError):
    """Handle missing server configuration"""
    logger.error(f"Configuration error at {request.method} {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


async def detector_error_handler(request: Request, exc: AnalysisError):
    """Handle failures of the external detector"""
    logger.error(f"Detector error at {request.method} {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)}
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors"""
    logger.error(
        f"Server error at {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,  # This logs the full stack trace
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal server error occurred"},
    )
