from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from adatickets.metrics import PrometheusExporter, metrics_registry

router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_class=PlainTextResponse, summary="Prometheus metrics")
async def metrics() -> PlainTextResponse:
    exporter = PrometheusExporter(metrics_registry)
    return PlainTextResponse(exporter.build_payload(), media_type=exporter.content_type)
