from fastapi import APIRouter, Response

from workorders.metrics import PrometheusExporter, metrics_registry

router = APIRouter(tags=["observability"])


@router.get("/metrics", summary="Prometheus metrics", include_in_schema=False)
async def metrics() -> Response:
    exporter = PrometheusExporter(metrics_registry)
    return Response(content=exporter.build_payload(), media_type=exporter.content_type)
