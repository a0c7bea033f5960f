"""
Copyright (c) 2025 Binary Core LLC. All rights reserved.

This file is part of ScalpScan, a proprietary product of Binary Core LLC.
Unauthorized copying, modification, or distribution of this file,
via any medium, is strictly prohibited.

Detector client for the external scalp detection workflows
"""

import math
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from api.exceptions import DetectorResponseMalformed, DetectorUnavailable
from api.schemas.analysis import DetectorExtraction, Point, Prediction
from core import constants
from utils import logging_utils

logger = logging_utils.get_logger("scalpscan.utils.detector")


async def infer(
    client: httpx.AsyncClient,
    image: str,
    confidence: float,
    *,
    url: str,
    api_key: str,
    prompt: Optional[str] = None,
    timeout: Optional[float] = None,
) -> DetectorExtraction:
    """
    Run the detector once on a base64 image at the given confidence threshold.

    Raises:
        DetectorUnavailable: non-success status or transport failure
        DetectorResponseMalformed: the body is not JSON
    """
    inputs: Dict[str, Any] = {
        "image": {"type": "base64", "value": image},
        "confidence": confidence,
    }
    if prompt:
        inputs["prompt"] = prompt

    try:
        response = await client.post(
            url,
            json={"api_key": api_key, "inputs": inputs},
            timeout=timeout,
        )
    except httpx.HTTPError as exc:
        raise DetectorUnavailable(
            constants.ErrorMessage.DETECTOR_UNREACHABLE.format(str(exc) or type(exc).__name__)
        ) from exc

    if not response.is_success:
        body = response.text
        logger.error(f"Detector returned {response.status_code} at confidence {confidence}")
        raise DetectorUnavailable(
            constants.ErrorMessage.DETECTOR_STATUS.format(response.status_code, body),
            status_code=response.status_code,
            body=body,
        )

    try:
        data = response.json()
    except ValueError as exc:
        raise DetectorResponseMalformed(constants.ErrorMessage.DETECTOR_MALFORMED) from exc

    return normalize_response(data)


def normalize_response(data: Any) -> DetectorExtraction:
    """
    Normalize the detector's response into a DetectorExtraction.

    Supported shapes, first match wins:
        {"predictions": [...]}
        {"outputs": [{"predictions": [...] | {"predictions": [...]}}]}
        {"outputs": [{"sam": [...] | {"predictions": [...], "image": {...}},
                      "mask_visualization": "..." | {"value": "..."}}]}
    """
    if not isinstance(data, dict):
        logger.warning(f"Unexpected detector response type: {type(data).__name__}")
        return DetectorExtraction()

    raw_predictions: List[Any] = []
    containers: List[Any] = [data]
    mask_image = None

    if isinstance(data.get("predictions"), list):
        raw_predictions = data["predictions"]
    else:
        output = _first_output(data)
        if "predictions" in output:
            raw_predictions, container = _unwrap_predictions(output["predictions"])
        elif "sam" in output:
            raw_predictions, container = _unwrap_predictions(output["sam"])
        else:
            container = None
        containers = [container, output, data]
        mask_image = _parse_mask(output.get("mask_visualization"))

    predictions = []
    for raw in raw_predictions:
        prediction = parse_prediction(raw)
        if prediction is not None:
            predictions.append(prediction)

    width, height = _explicit_dimensions(containers)
    inferred = False
    if not width or not height:
        width, height = infer_dimensions(predictions)
        inferred = True

    return DetectorExtraction(
        predictions=tuple(predictions),
        maskImage=mask_image,
        imageWidth=width,
        imageHeight=height,
        dimensionsInferred=inferred,
    )


def parse_prediction(raw: Any) -> Optional[Prediction]:
    """
    Build a Prediction from one raw entry, or None when it has no usable geometry.
    """
    if not isinstance(raw, dict):
        return None

    class_name = raw.get("class", raw.get("class_name"))
    if not isinstance(class_name, str):
        class_name = ""
    confidence = _as_float(raw.get("confidence"))
    if confidence is None:
        confidence = 0.0

    points = ()
    if isinstance(raw.get("points"), list):
        points = tuple(
            Point(x=x, y=y)
            for x, y in (
                (_as_float(p.get("x")), _as_float(p.get("y")))
                for p in raw["points"]
                if isinstance(p, dict)
            )
            if x is not None and y is not None
        )
    x, y = _as_float(raw.get("x")), _as_float(raw.get("y"))
    width, height = _as_float(raw.get("width")), _as_float(raw.get("height"))
    has_box = None not in (x, y, width, height)

    try:
        # Instance output carries both, points win once a vertex survived
        if points or (isinstance(raw.get("points"), list) and not has_box):
            return Prediction(class_name=class_name, confidence=confidence, points=points)
        if not has_box:
            return None
        return Prediction(
            class_name=class_name,
            confidence=confidence,
            center=Point(x=x, y=y),
            width=width,
            height=height,
        )
    except ValidationError:
        logger.debug(f"Skipping invalid prediction: {raw}")
        return None


def infer_dimensions(predictions: List[Prediction]) -> Tuple[int, int]:
    """
    Estimate image size from the furthest detected coordinate plus a 10% margin.
    This is a heuristic and only a lower bound of the real size.
    """
    max_x = 0.0
    max_y = 0.0
    for prediction in predictions:
        if prediction.is_polygon:
            for point in prediction.points:
                max_x = max(max_x, point.x)
                max_y = max(max_y, point.y)
        else:
            max_x = max(max_x, prediction.center.x + prediction.width / 2)
            max_y = max(max_y, prediction.center.y + prediction.height / 2)

    margin = constants.Defaults.DIMENSION_MARGIN
    # round first so float noise (60 * 1.1 = 66.00000000000001) does not add a pixel
    return math.ceil(round(max_x * margin, 6)), math.ceil(round(max_y * margin, 6))


def _first_output(data: Dict[str, Any]) -> Dict[str, Any]:
    outputs = data.get("outputs")
    if isinstance(outputs, list) and outputs and isinstance(outputs[0], dict):
        return outputs[0]
    return {}


def _unwrap_predictions(value: Any) -> Tuple[List[Any], Optional[Dict[str, Any]]]:
    """Accept either a bare list or a {"predictions": [...]} wrapper."""
    if isinstance(value, list):
        return value, None
    if isinstance(value, dict) and isinstance(value.get("predictions"), list):
        return value["predictions"], value
    return [], None


def _parse_mask(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get("value"), str):
        return value["value"]
    return None


def _explicit_dimensions(containers: List[Any]) -> Tuple[int, int]:
    for container in containers:
        if not isinstance(container, dict):
            continue
        image = container.get("image")
        if not isinstance(image, dict):
            continue
        width, height = _as_float(image.get("width")), _as_float(image.get("height"))
        if width and height and width > 0 and height > 0:
            return int(width), int(height)
    return 0, 0


def _as_float(value: Any) -> Optional[float]:
    # bool is an int subclass, never a coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return float(value)
