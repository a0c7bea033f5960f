"""
Copyright (c) 2025 Binary Core LLC. All rights reserved.

This file is part of ScalpScan, a proprietary product of Binary Core LLC.
Unauthorized copying, modification, or distribution of this file,
via any medium, is strictly prohibited.

Analysis routes for before/after scalp comparison
"""

from typing import AsyncIterator, Optional

import httpx
from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import StreamingResponse

from api.schemas.analysis import (
    ComparisonResult,
    DetectorModelInfo,
    ModelsResponse,
    StreamEvent,
)
from api.services import analysis as analysis_service
from core import config, constants

router = APIRouter(
    prefix="/analyze",
    tags=["analysis"],
    responses={404: {"description": "Not found"}},
)


def get_settings() -> config.Settings:
    return config.settings


def get_detector_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for detector calls, None means the default network transport."""
    return None


@router.post("")
async def analyze(
    before: Optional[UploadFile] = File(None),
    after: Optional[UploadFile] = File(None),
    model: Optional[str] = Form(None),
    settings: config.Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_detector_transport),
) -> StreamingResponse:
    """
    Compare a before and an after image.
    Streams newline-delimited JSON frames: progress frames first,
    then a single complete or error frame.
    """
    events = analysis_service.stream_comparison(
        before=await _read_upload(before),
        after=await _read_upload(after),
        model_id=model,
        settings=settings,
        transport=transport,
    )
    return StreamingResponse(
        _to_ndjson(events), media_type=constants.Defaults.STREAM_MEDIA_TYPE
    )


@router.post(
    "/result", response_model=ComparisonResult, response_model_exclude_none=True
)
async def analyze_result(
    before: Optional[UploadFile] = File(None),
    after: Optional[UploadFile] = File(None),
    model: Optional[str] = Form(None),
    settings: config.Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_detector_transport),
) -> ComparisonResult:
    """
    Compare a before and an after image and return only the final result.
    Errors are mapped to HTTP status codes by the exception handlers.
    """
    return await analysis_service.run_comparison(
        before=await _read_upload(before),
        after=await _read_upload(after),
        model_id=model,
        settings=settings,
        transport=transport,
    )


@router.get("/models", response_model=ModelsResponse)
async def get_models(settings: config.Settings = Depends(get_settings)) -> ModelsResponse:
    """
    List the detector models an analysis can run with.
    """
    return ModelsResponse(
        models=[
            DetectorModelInfo(id=model_id, name=constants.DetectorModel.NAMES[model_id])
            for model_id in constants.DetectorModel.ALL
        ],
        default=settings.default_model,
    )


async def _read_upload(upload: Optional[UploadFile]) -> Optional[bytes]:
    if upload is None:
        return None
    return await upload.read()


async def _to_ndjson(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield event.model_dump_json(exclude_none=True) + "\n"
