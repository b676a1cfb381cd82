from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from typing import List, Optional

from telemetry_ingest import ledger, schemas

router = APIRouter(prefix="/api/v1/logs", tags=["logs"])


def get_db(request: Request):
    with request.app.state.database.session() as db_session:
        yield db_session


@router.get("/", response_model=List[schemas.MachineLogRead])
def read_logs(
    machine_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db)
):
    """
    List ingested logs with their metric readings, oldest first.
    Optional filter: machine_id.
    """
    return ledger.find_logs_by_machine_id(db, machine_id, skip=skip, limit=limit)


@router.get("/{log_id}", response_model=schemas.MachineLogRead)
def read_log(log_id: int, db: Session = Depends(get_db)):
    log = ledger.find_log_by_id(db, log_id)
    if not log:
        raise HTTPException(status_code=404, detail="Log not found")
    return log
