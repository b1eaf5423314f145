"""
Operational endpoints.

    GET /health    service, pipeline and credential status
    GET /metrics   Prometheus text format

Neither endpoint sits behind the API key, so probes and scrapers work
without credentials.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from tts_gateway.api.dependencies import get_tts_service
from tts_gateway.core.metrics import metrics
from tts_gateway.services.tts_service import TTSService

router = APIRouter()


@router.get("/health")
def health(service: TTSService = Depends(get_tts_service)):
    """
    Health check for load balancers and probes.

    Reports the default voice and output format, pipeline limits, and
    whether a backend credential is cached (with region and remaining
    validity). No backend call is made.
    """
    return service.get_health_info()


@router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
