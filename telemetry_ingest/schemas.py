from pydantic import BaseModel, ConfigDict
from typing import Optional, Dict, List, Literal
from datetime import datetime


class LogMessage(BaseModel):
    """Envelope a machine sends over the ingest socket."""

    # strict: "91.2" is not a metric value; NaN, Infinity and overflowing
    # literals such as 1e999 are not JSON numbers
    model_config = ConfigDict(strict=True, allow_inf_nan=False)

    machine_id: str
    # client clock; kept only inside raw_data, the server stamps ingestion time
    timestamp: str
    metrics: Dict[str, float]


class Response(BaseModel):
    status: Literal["success", "error"]
    message: str
    timestamp: str


class MetricRead(BaseModel):
    id: int
    log_id: int
    metric_name: str
    metric_value: float

    model_config = {"from_attributes": True}


class MachineLogRead(BaseModel):
    id: int
    machine_id: str
    timestamp: datetime
    raw_data: str
    created_at: Optional[datetime] = None
    metrics: List[MetricRead] = []

    # allow ORM objects -> pydantic models (Pydantic v2)
    model_config = {"from_attributes": True}


class StatsResponse(BaseModel):
    total_logs: int
    total_metrics: int
    by_machine: Optional[Dict[str, int]] = {}
