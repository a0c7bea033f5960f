import httpx
import pytest

from api.exceptions import DetectorResponseMalformed, DetectorUnavailable
from api.schemas.analysis import Point
from api.services import analysis as analysis_service
from detector_fakes import box, detector_transport, polygon, request_inputs, workflow_response
from utils import detector_utils

URL = "http://detector.test/scalpscan/workflows/scalp-density-detector"


def test_normalize_top_level_predictions():
    data = {
        "image": {"width": 640, "height": 480},
        "predictions": [box("bald", 0.8, 100, 100, 20, 10)],
    }
    extraction = detector_utils.normalize_response(data)

    assert len(extraction.predictions) == 1
    prediction = extraction.predictions[0]
    assert prediction.class_name == "bald"
    assert prediction.confidence == 0.8
    assert prediction.center == Point(x=100, y=100)
    assert (prediction.width, prediction.height) == (20, 10)
    assert (extraction.imageWidth, extraction.imageHeight) == (640, 480)
    assert extraction.dimensionsInferred is False
    assert extraction.maskImage is None


def test_normalize_nested_predictions_wrapper():
    data = {
        "outputs": [
            {
                "predictions": {
                    "image": {"width": 800, "height": 600},
                    "predictions": [polygon("bald", 0.6, [(0, 0), (10, 0), (10, 10)])],
                }
            }
        ]
    }
    extraction = detector_utils.normalize_response(data)

    assert extraction.predictions[0].is_polygon
    assert len(extraction.predictions[0].points) == 3
    assert (extraction.imageWidth, extraction.imageHeight) == (800, 600)


def test_normalize_nested_predictions_list_infers_dimensions():
    data = {"outputs": [{"predictions": [box("bald", 0.6, 50, 50, 20, 20)]}]}
    extraction = detector_utils.normalize_response(data)

    # furthest edge at 60px, plus the 10% margin
    assert (extraction.imageWidth, extraction.imageHeight) == (66, 66)
    assert extraction.dimensionsInferred is True


def test_normalize_sam_output_with_mask_and_image():
    data = workflow_response(
        [polygon("bald", 0.7, [(0, 0), (10, 0), (10, 10), (0, 10)])],
        width=1024,
        height=768,
        mask="bWFzaw==",
    )
    extraction = detector_utils.normalize_response(data)

    assert len(extraction.predictions) == 1
    assert extraction.maskImage == "bWFzaw=="
    assert (extraction.imageWidth, extraction.imageHeight) == (1024, 768)


def test_normalize_sam_list_with_string_mask():
    data = {
        "outputs": [
            {
                "sam": [polygon("bald", 0.7, [(0, 0), (100, 0), (100, 50)])],
                "mask_visualization": "raw-mask",
            }
        ]
    }
    extraction = detector_utils.normalize_response(data)

    assert extraction.maskImage == "raw-mask"
    assert (extraction.imageWidth, extraction.imageHeight) == (110, 55)
    assert extraction.dimensionsInferred is True


def test_normalize_skips_unusable_entries():
    data = {
        "predictions": [
            "not-a-dict",
            {"class": "bald", "confidence": 0.5},
            {"class": "bald", "x": 1, "y": 2, "width": "wide", "height": 3},
            {
                "confidence": "high",
                "points": [{"x": 1, "y": 1}, {"x": None, "y": 2}, "junk", {"x": 3, "y": 4}],
            },
        ]
    }
    extraction = detector_utils.normalize_response(data)

    assert len(extraction.predictions) == 1
    prediction = extraction.predictions[0]
    assert prediction.class_name == ""
    assert prediction.confidence == 0.0
    assert prediction.points == (Point(x=1, y=1), Point(x=3, y=4))


@pytest.mark.parametrize(
    "data",
    [None, [], "text", {}, {"outputs": []}, {"outputs": [{"other": 1}]}, {"predictions": "none"}],
)
def test_normalize_unknown_shapes_yield_empty_extraction(data):
    extraction = detector_utils.normalize_response(data)

    assert extraction.predictions == ()
    assert (extraction.imageWidth, extraction.imageHeight) == (0, 0)


@pytest.mark.anyio
async def test_infer_posts_image_confidence_and_prompt():
    captured = []

    def handler(request):
        captured.append(request)
        return httpx.Response(200, json={"predictions": [box("bald", 0.9, 10, 10, 4, 4)]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        extraction = await detector_utils.infer(
            client, "aW1hZ2U=", 0.3, url=URL, api_key="secret", prompt="bald scalp"
        )

    assert len(extraction.predictions) == 1
    request = captured[0]
    assert str(request.url) == URL
    body = request_inputs(request)
    assert body["image"] == {"type": "base64", "value": "aW1hZ2U="}
    assert body["confidence"] == 0.3
    assert body["prompt"] == "bald scalp"


@pytest.mark.anyio
async def test_infer_omits_empty_prompt():
    calls = []
    transport = detector_transport(lambda image, confidence: {"predictions": []}, calls)

    async with httpx.AsyncClient(transport=transport) as client:
        await detector_utils.infer(client, "aW1hZ2U=", 0.5, url=URL, api_key="secret")

    assert calls == [(URL, "aW1hZ2U=", 0.5)]


@pytest.mark.anyio
async def test_infer_non_success_status_raises_unavailable():
    transport = detector_transport(
        lambda image, confidence: httpx.Response(503, text="model warming up")
    )

    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(DetectorUnavailable) as exc_info:
            await detector_utils.infer(client, "aW1hZ2U=", 0.5, url=URL, api_key="secret")

    assert exc_info.value.status_code == 503
    assert exc_info.value.body == "model warming up"
    assert "model warming up" in str(exc_info.value)


@pytest.mark.anyio
async def test_infer_transport_failure_raises_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(DetectorUnavailable, match="connection refused"):
            await detector_utils.infer(client, "aW1hZ2U=", 0.5, url=URL, api_key="secret")


@pytest.mark.anyio
async def test_infer_invalid_json_raises_malformed():
    transport = detector_transport(
        lambda image, confidence: httpx.Response(200, text="<html>oops</html>")
    )

    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(DetectorResponseMalformed):
            await detector_utils.infer(client, "aW1hZ2U=", 0.5, url=URL, api_key="secret")


@pytest.mark.parametrize(
    "points",
    [[], [{"x": "a", "y": 1}, "junk", {"y": 4}]],
)
def test_parse_prediction_without_usable_vertices_falls_back_to_box(points):
    raw = {"class": "bald", "confidence": 0.9, "points": points, "x": 50, "y": 50, "width": 10, "height": 10}

    prediction = detector_utils.parse_prediction(raw)

    assert prediction.is_polygon is False
    assert prediction.center == Point(x=50, y=50)
    assert (prediction.width, prediction.height) == (10, 10)


def test_parse_prediction_prefers_points_over_box_fields():
    raw = polygon("bald", 0.9, [(0, 0), (10, 0), (10, 10)])
    raw.update({"x": 5, "y": 5, "width": 10, "height": 10})

    prediction = detector_utils.parse_prediction(raw)

    assert prediction.is_polygon is True
    assert len(prediction.points) == 3


def test_instance_output_with_empty_points_keeps_box_area():
    data = {
        "image": {"width": 100, "height": 100},
        "predictions": [
            {"class": "bald", "confidence": 0.9, "points": [], "x": 50, "y": 50, "width": 10, "height": 10}
        ],
    }
    extraction = detector_utils.normalize_response(data)

    result = analysis_service.aggregate_predictions(
        extraction.predictions, extraction.imageWidth, extraction.imageHeight
    )

    assert result.detected is True
    assert result.area == 100
    assert result.areaPercentage == 1.0
