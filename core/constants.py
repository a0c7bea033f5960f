"""
Copyright (c) 2025 Binary Core LLC. All rights reserved.

This file is part of ScalpScan, a proprietary product of Binary Core LLC.
Unauthorized copying, modification, or distribution of this file,
via any medium, is strictly prohibited.

Application constants for the ScalpScan API
"""


# Pipeline stages, in execution order
class StepName:
    VALIDATE = "validate"
    PREPARE = "prepare"
    ANALYZE_BEFORE = "analyze_before"
    ANALYZE_AFTER = "analyze_after"
    FINALIZE = "finalize"

    ALL = [VALIDATE, PREPARE, ANALYZE_BEFORE, ANALYZE_AFTER, FINALIZE]

    LABELS = {
        VALIDATE: "Validating images",
        PREPARE: "Preparing images",
        ANALYZE_BEFORE: "Analyzing before image",
        ANALYZE_AFTER: "Analyzing after image",
        FINALIZE: "Finalizing results",
    }


class StepStatus:
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"


# Stream frame types
class EventType:
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


# Error messages
class ErrorMessage:
    MISSING_API_KEY = "Missing DETECTOR_API_KEY"
    MISSING_IMAGES = "Both 'before' and 'after' images are required"
    EMPTY_IMAGE = "The '{}' image is empty"
    IMAGE_TOO_LARGE = "The '{}' image exceeds the maximum size of {}"
    UNKNOWN_MODEL = "Unknown model '{}'"
    DETECTOR_STATUS = "Detector request failed with status {}: {}"
    DETECTOR_UNREACHABLE = "Detector request failed: {}"
    DETECTOR_MALFORMED = "Failed to parse detector response"
    INTERNAL = "An internal server error occurred"


# Detector workflows selectable per request
class DetectorModel:
    SCALP_DENSITY = "scalp-density-detector"
    NIVEL_DE_CABELO = "nivel-de-cabelo"

    NAMES = {
        SCALP_DENSITY: "Scalp Density Detector v4",
        NIVEL_DE_CABELO: "Nivel de Cabelo (Legacy)",
    }

    ALL = [SCALP_DENSITY, NIVEL_DE_CABELO]


# Default values
class Defaults:
    # Thresholds tried in order until the target class shows up
    CONFIDENCE_THRESHOLDS = (0.5, 0.4, 0.3, 0.2, 0.1)

    # Safety margin when image size has to be guessed from coordinates
    DIMENSION_MARGIN = 1.1

    STREAM_MEDIA_TYPE = "application/x-ndjson"
