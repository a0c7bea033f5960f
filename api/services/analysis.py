"""
Copyright (c) 2025 Binary Core LLC. All rights reserved.

This file is part of ScalpScan, a proprietary product of Binary Core LLC.
Unauthorized copying, modification, or distribution of this file,
via any medium, is strictly prohibited.

Analysis services for before/after scalp coverage comparison
"""

import asyncio
import functools
import math
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Sequence

import httpx

from api.exceptions import AnalysisError, ConfigurationError, InputError
from api.schemas.analysis import (
    AggregatedResult,
    ComparisonResult,
    DescentResult,
    DetectorExtraction,
    ErrorEvent,
    Prediction,
    StreamEvent,
)
from api.services.progress import ProgressTracker
from core import config, constants
from utils import detector_utils, geometry_utils, logging_utils, sys_utils

logger = logging_utils.get_logger("scalpscan.services.analysis")

# One detector call at the given confidence threshold
Detect = Callable[[float], Awaitable[DetectorExtraction]]

ANALYZE_STEPS = (constants.StepName.ANALYZE_BEFORE, constants.StepName.ANALYZE_AFTER)


class DescentObserver:
    """
    Hook notified while the confidence descent runs.
    The base class ignores every notification.
    """

    def attempt(
        self, target_class: str, confidence: float, total: int, matched: int
    ) -> None:
        pass

    def matched(self, target_class: str, confidence: float, attempts: int) -> None:
        pass

    def exhausted(self, target_class: str, attempts: int) -> None:
        pass


class LoggingDescentObserver(DescentObserver):
    """Writes descent diagnostics to the application log."""

    def __init__(self, source: str = "image"):
        self.source = source

    def attempt(self, target_class, confidence, total, matched):
        logger.debug(
            f"[{self.source}] confidence {confidence:.1f}: "
            f"{total} predictions, {matched} '{target_class}'"
        )

    def matched(self, target_class, confidence, attempts):
        logger.info(
            f"[{self.source}] '{target_class}' found at confidence {confidence:.1f} "
            f"after {attempts} attempt(s)"
        )

    def exhausted(self, target_class, attempts):
        logger.info(
            f"[{self.source}] no '{target_class}' after {attempts} attempt(s)"
        )


async def descend_confidence(
    detect: Detect,
    target_class: str,
    thresholds: Sequence[float] = constants.Defaults.CONFIDENCE_THRESHOLDS,
    observer: Optional[DescentObserver] = None,
) -> DescentResult:
    """
    Call the detector at decreasing thresholds until the target class appears.

    Predictions are matched on class, case-insensitively. One call is made per
    threshold at most, and running out of thresholds yields an empty result
    rather than an error.

    The first image size seen is kept even when its response was discarded.
    A detector-reported size replaces a coordinate-inferred one.
    """
    observer = observer or DescentObserver()
    target = target_class.lower()
    reported_size = None
    inferred_size = None
    attempts = 0

    for confidence in thresholds:
        extraction = await detect(confidence)
        attempts += 1

        size = (extraction.imageWidth, extraction.imageHeight)
        has_size = size[0] > 0 and size[1] > 0
        if has_size and not extraction.dimensionsInferred:
            reported_size = reported_size or size
        elif has_size:
            inferred_size = inferred_size or size

        matches = tuple(
            prediction
            for prediction in extraction.predictions
            if prediction.class_name.lower() == target
        )
        observer.attempt(target_class, confidence, len(extraction.predictions), len(matches))

        if matches:
            observer.matched(target_class, confidence, attempts)
            width, height = reported_size or inferred_size or (0, 0)
            return DescentResult(
                predictions=matches,
                maskImage=extraction.maskImage,
                imageWidth=width,
                imageHeight=height,
                attempts=attempts,
                confidence=confidence,
            )

    observer.exhausted(target_class, attempts)
    width, height = reported_size or inferred_size or (0, 0)
    return DescentResult(imageWidth=width, imageHeight=height, attempts=attempts)


def aggregate_predictions(
    predictions: Sequence[Prediction],
    image_width: int,
    image_height: int,
    mask_image: Optional[str] = None,
) -> AggregatedResult:
    """
    Combine all surviving predictions into one AggregatedResult.

    Areas are summed over every prediction, so overlapping regions are counted
    twice. This is a known approximation.
    """
    undetected = AggregatedResult(
        imageWidth=image_width, imageHeight=image_height, maskImage=mask_image
    )
    if not predictions:
        return undetected

    area = 0.0
    max_confidence = 0.0
    polygons = []
    boxes = []
    for prediction in predictions:
        if prediction.is_polygon:
            area += geometry_utils.polygon_area(prediction.points)
            polygons.append(list(prediction.points))
        else:
            area += geometry_utils.box_area(prediction.width, prediction.height)
            boxes.append(prediction)
        max_confidence = max(max_confidence, prediction.confidence)

    if area == 0:
        return undetected

    image_area = image_width * image_height
    area_percentage = round(area / image_area * 100, 2) if image_area > 0 else 0.0

    return AggregatedResult(
        area=area,
        areaPercentage=area_percentage,
        imageWidth=image_width,
        imageHeight=image_height,
        confidence=min(max(math.floor(max_confidence * 100 + 0.5), 0), 100),
        detected=True,
        boundingBox=geometry_utils.union_bounding_box(polygons, boxes),
        polygons=polygons or None,
        maskImage=mask_image,
    )


async def analyze_image(
    detect: Detect,
    target_class: str,
    observer: Optional[DescentObserver] = None,
) -> AggregatedResult:
    """Confidence descent followed by aggregation for one image."""
    descent = await descend_confidence(detect, target_class, observer=observer)
    return aggregate_predictions(
        descent.predictions,
        descent.imageWidth,
        descent.imageHeight,
        mask_image=descent.maskImage,
    )


def compare_results(before: AggregatedResult, after: AggregatedResult) -> ComparisonResult:
    """
    Pair both results with the relative change of covered area, which is only
    defined when both images have a detection.
    """
    change = None
    if before.detected and after.detected and before.areaPercentage > 0:
        change = round(
            (after.areaPercentage - before.areaPercentage) / before.areaPercentage * 100,
            2,
        )
    return ComparisonResult(before=before, after=after, percentageChange=change)


async def stream_comparison(
    before: Optional[bytes],
    after: Optional[bytes],
    model_id: Optional[str] = None,
    settings: Optional[config.Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[StreamEvent]:
    """
    Run the comparison and yield its progress frames followed by exactly one
    terminal frame, either complete or error.
    """
    tracker = ProgressTracker()
    try:
        async for event in _run_pipeline(
            tracker, before, after, model_id, settings or config.settings, transport
        ):
            yield event
    except AnalysisError as exc:
        logger.warning(
            f"Comparison failed at step {tracker.current_step or 'startup'}: {str(exc)}"
        )
        yield ErrorEvent(error=str(exc))
    except Exception as exc:
        logger.error(f"Comparison crashed: {str(exc)}", exc_info=True)
        yield ErrorEvent(error=constants.ErrorMessage.INTERNAL)


async def run_comparison(
    before: Optional[bytes],
    after: Optional[bytes],
    model_id: Optional[str] = None,
    settings: Optional[config.Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ComparisonResult:
    """
    Run the comparison without streaming.
    Errors propagate as AnalysisError subclasses.
    """
    tracker = ProgressTracker()
    result = None
    async for event in _run_pipeline(
        tracker, before, after, model_id, settings or config.settings, transport
    ):
        if event.type == constants.EventType.COMPLETE:
            result = event.result
    return result


async def _run_pipeline(
    tracker: ProgressTracker,
    before: Optional[bytes],
    after: Optional[bytes],
    model_id: Optional[str],
    settings: config.Settings,
    transport: Optional[httpx.AsyncBaseTransport],
) -> AsyncIterator[StreamEvent]:
    if not settings.detector_api_key:
        raise ConfigurationError(constants.ErrorMessage.MISSING_API_KEY)

    model_id = model_id or settings.default_model

    yield tracker.start(constants.StepName.VALIDATE)
    _validate_inputs(before, after, model_id, settings)
    yield tracker.complete(constants.StepName.VALIDATE)

    yield tracker.start(constants.StepName.PREPARE)
    images = {
        constants.StepName.ANALYZE_BEFORE: sys_utils.encode_base64(before),
        constants.StepName.ANALYZE_AFTER: sys_utils.encode_base64(after),
    }
    url = settings.workflow_url(model_id)
    yield tracker.complete(constants.StepName.PREPARE)

    logger.info(
        f"Analyzing pair with model {model_id} "
        f"({sys_utils.get_file_size_text(len(before))} / {sys_utils.get_file_size_text(len(after))})"
    )

    for step in ANALYZE_STEPS:
        yield tracker.start(step)

    results: Dict[str, AggregatedResult] = {}
    async with httpx.AsyncClient(transport=transport) as client:
        tasks = {}
        for step in ANALYZE_STEPS:
            detect = functools.partial(
                detector_utils.infer,
                client,
                images[step],
                url=url,
                api_key=settings.detector_api_key,
                prompt=settings.class_prompt,
                timeout=settings.detector_timeout,
            )
            task = asyncio.create_task(
                analyze_image(detect, settings.target_class, LoggingDescentObserver(step))
            )
            tasks[task] = step

        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(
                    pending, return_when=asyncio.FIRST_COMPLETED
                )
                for task in sorted(done, key=lambda t: constants.StepName.ALL.index(tasks[t])):
                    step = tasks[task]
                    results[step] = task.result()
                    yield tracker.complete(step)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    yield tracker.start(constants.StepName.FINALIZE)
    result = compare_results(
        results[constants.StepName.ANALYZE_BEFORE],
        results[constants.StepName.ANALYZE_AFTER],
    )
    yield tracker.complete(constants.StepName.FINALIZE)

    complete = tracker.finish(result)
    logger.info(f"Comparison completed in {complete.totalDuration}ms")
    yield complete


def _validate_inputs(
    before: Optional[bytes],
    after: Optional[bytes],
    model_id: str,
    settings: config.Settings,
) -> None:
    if before is None or after is None:
        raise InputError(constants.ErrorMessage.MISSING_IMAGES)

    for label, data in (("before", before), ("after", after)):
        if not data:
            raise InputError(constants.ErrorMessage.EMPTY_IMAGE.format(label))
        if len(data) > settings.max_image_size:
            raise InputError(
                constants.ErrorMessage.IMAGE_TOO_LARGE.format(
                    label, sys_utils.get_file_size_text(settings.max_image_size)
                )
            )

    if model_id not in constants.DetectorModel.ALL:
        raise InputError(constants.ErrorMessage.UNKNOWN_MODEL.format(model_id))
