from fastapi import APIRouter, Depends

from ingres.api.deps import get_metrics
from ingres.services.metrics import MetricsSink

router = APIRouter()


@router.get("/metrics", response_model=dict)
def metrics_snapshot(metrics: MetricsSink = Depends(get_metrics)):
    return {"counters": metrics.snapshot()}
