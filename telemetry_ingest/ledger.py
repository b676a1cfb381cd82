"""
Append-only ledger of machine logs and their metric readings.

A log and its readings are written in one transaction: either both are
visible or neither is. Nothing here updates or deletes rows.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, NamedTuple, Optional

from sqlalchemy import func, insert, select
from sqlalchemy.exc import SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, selectinload

from telemetry_ingest import models
from telemetry_ingest.db import Database
from telemetry_ingest.errors import PoolError, StoreError

logger = logging.getLogger(__name__)


class StoredLog(NamedTuple):
    log_id: int
    metric_count: int


def store_log_with_metrics(
    database: Database,
    machine_id: str,
    raw_payload: str,
    metrics: Dict[str, float],
) -> StoredLog:
    """
    Persist one log record and all of its readings atomically.

    - The log row is flushed first to obtain its generated id.
    - All readings go out in a single multi-row INSERT, not one per metric.
    - Any failure rolls the whole transaction back.

    Raises PoolError when no connection is free within the pool timeout and
    StoreError for every other database failure.
    """
    with database.session() as session:
        try:
            with session.begin():
                log = models.MachineLog(
                    machine_id=machine_id,
                    timestamp=datetime.now(timezone.utc),
                    raw_data=raw_payload,
                )
                session.add(log)
                session.flush()

                if metrics:
                    rows = [
                        {"log_id": log.id, "metric_name": name, "metric_value": value}
                        for name, value in metrics.items()
                    ]
                    session.execute(insert(models.Metric).values(rows))
        except PoolTimeoutError as e:
            logger.warning("Connection pool exhausted for machine %s: %s", machine_id, e)
            raise PoolError("database connection pool exhausted") from e
        except SQLAlchemyError as e:
            logger.exception("Failed to store log for machine %s", machine_id)
            raise StoreError("failed to store log") from e

    return StoredLog(log_id=log.id, metric_count=len(metrics))


def find_log_by_id(db: Session, log_id: int) -> Optional[models.MachineLog]:
    return db.execute(
        select(models.MachineLog)
        .options(selectinload(models.MachineLog.metrics))
        .where(models.MachineLog.id == log_id)
    ).scalar_one_or_none()


def find_logs_by_machine_id(
    db: Session, machine_id: Optional[str] = None, skip: int = 0, limit: int = 50
) -> List[models.MachineLog]:
    """List logs oldest first, optionally for one machine only."""
    query = select(models.MachineLog).options(
        selectinload(models.MachineLog.metrics))
    if machine_id is not None:
        query = query.where(models.MachineLog.machine_id == machine_id)
    query = query.order_by(models.MachineLog.id).offset(skip).limit(limit)
    return list(db.execute(query).scalars().all())


def find_metrics_by_log_id(db: Session, log_id: int) -> List[models.Metric]:
    return list(db.execute(
        select(models.Metric)
        .where(models.Metric.log_id == log_id)
        .order_by(models.Metric.id)
    ).scalars().all())


def find_metrics_above_threshold(
    db: Session, metric_name: str, threshold: float
) -> List[models.Metric]:
    return list(db.execute(
        select(models.Metric)
        .where(models.Metric.metric_name == metric_name,
               models.Metric.metric_value > threshold)
        .order_by(models.Metric.id)
    ).scalars().all())


def count_summary(db: Session) -> Dict:
    # Count logs by machine
    by_machine = dict(
        db.execute(
            select(models.MachineLog.machine_id, func.count(models.MachineLog.id))
            .group_by(models.MachineLog.machine_id)
        ).all()
    )
    total_logs = db.execute(select(func.count(models.MachineLog.id))).scalar() or 0
    total_metrics = db.execute(select(func.count(models.Metric.id))).scalar() or 0

    return {
        "total_logs": int(total_logs),
        "total_metrics": int(total_metrics),
        "by_machine": by_machine,
    }
