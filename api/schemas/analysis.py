"""
Copyright (c) 2025 Binary Core LLC. All rights reserved.

This file is part of ScalpScan, a proprietary product of Binary Core LLC.
Unauthorized copying, modification, or distribution of this file,
via any medium, is strictly prohibited.

Analysis schemas for detections, aggregated coverage and progress frames
"""

from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core import constants


class Point(BaseModel):
    """Vertex in source-image pixel space."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class Prediction(BaseModel):
    """One detected region, either a polygon or a center-based box."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    class_name: str = Field(..., alias="class")
    confidence: float
    points: Optional[Tuple[Point, ...]] = None  # Boundary order
    center: Optional[Point] = None
    width: Optional[float] = None
    height: Optional[float] = None

    @model_validator(mode="after")
    def validate_geometry(self) -> "Prediction":
        has_box = self.center is not None
        if has_box and (self.width is None or self.height is None):
            raise ValueError("Box predictions need center, width and height")
        if has_box == (self.points is not None):
            raise ValueError("Prediction needs exactly one of points or box")
        return self

    @property
    def is_polygon(self) -> bool:
        return self.points is not None


class BoundingBox(BaseModel):
    """Center-based bounding box."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float
    height: float


class DetectorExtraction(BaseModel):
    """Uniform view of one detector response"""

    model_config = ConfigDict(frozen=True)

    predictions: Tuple[Prediction, ...] = ()
    maskImage: Optional[str] = None
    imageWidth: int = 0
    imageHeight: int = 0
    dimensionsInferred: bool = False  # True when guessed from coordinates


class DescentResult(BaseModel):
    """Outcome of the confidence descent for one image"""

    model_config = ConfigDict(frozen=True)

    predictions: Tuple[Prediction, ...] = ()
    maskImage: Optional[str] = None
    imageWidth: int = 0
    imageHeight: int = 0
    attempts: int = 0
    confidence: Optional[float] = None  # Threshold that produced a match


class AggregatedResult(BaseModel):
    """Combined coverage metric for one analyzed image"""

    model_config = ConfigDict(frozen=True)

    area: float = 0.0  # pixel^2, summed over all detections
    areaPercentage: float = 0.0
    imageWidth: int = 0
    imageHeight: int = 0
    confidence: int = 0  # 0-100
    detected: bool = False
    boundingBox: Optional[BoundingBox] = None
    polygons: Optional[List[List[Point]]] = None
    maskImage: Optional[str] = None


class ComparisonResult(BaseModel):
    """Before/after pair delivered with the complete frame"""

    before: AggregatedResult
    after: AggregatedResult
    percentageChange: Optional[float] = None


class StepProgress(BaseModel):
    """Progress of one pipeline stage"""

    name: str
    label: str
    status: str = constants.StepStatus.PENDING
    duration: Optional[int] = None  # ms, set once completed


class ProgressEvent(BaseModel):
    type: Literal["progress"] = constants.EventType.PROGRESS
    steps: List[StepProgress]
    currentStep: Optional[str] = None


class CompleteEvent(BaseModel):
    type: Literal["complete"] = constants.EventType.COMPLETE
    steps: List[StepProgress]
    totalDuration: int
    result: ComparisonResult


class ErrorEvent(BaseModel):
    type: Literal["error"] = constants.EventType.ERROR
    error: str


StreamEvent = Union[ProgressEvent, CompleteEvent, ErrorEvent]


class DetectorModelInfo(BaseModel):
    """Detector workflow selectable for an analysis"""

    id: str
    name: str


class ModelsResponse(BaseModel):
    """Response schema for the available detector models"""

    models: List[DetectorModelInfo]
    default: str


class HealthResponse(BaseModel):
    status: str
    app_name: str
    version: str
