from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import List

from telemetry_ingest import ledger, schemas

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])


def get_db(request: Request):
    with request.app.state.database.session() as db_session:
        yield db_session


@router.get("/", response_model=List[schemas.MetricRead])
def read_metrics_above_threshold(
    metric_name: str,
    threshold: float,
    db: Session = Depends(get_db)
):
    """
    Readings of `metric_name` strictly greater than `threshold`.
    """
    return ledger.find_metrics_above_threshold(db, metric_name, threshold)
