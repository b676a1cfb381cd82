from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from telemetry_ingest import ledger, schemas

router = APIRouter(prefix="/api/v1/stats", tags=["statistics"])


def get_db(request: Request):
    with request.app.state.database.session() as db_session:
        yield db_session


@router.get("/", response_model=schemas.StatsResponse)
def get_statistics(db: Session = Depends(get_db)):
    """
    Returns total logs, total readings and log counts by machine
    """
    return ledger.count_summary(db)
