from sqlalchemy import Column, Integer, String, Text, Double, DateTime, func, ForeignKey
from sqlalchemy.orm import relationship
from telemetry_ingest.db import Base


class MachineLog(Base):
    __tablename__ = "machine_logs"

    id = Column(Integer, primary_key=True, index=True)
    machine_id = Column(String(255), nullable=False, index=True)
    # ingestion time, taken from the server clock
    timestamp = Column(DateTime(timezone=True), nullable=False)
    # verbatim JSON text as received
    raw_data = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    metrics = relationship(
        "Metric", back_populates="log", order_by="Metric.id")


class Metric(Base):
    __tablename__ = "metrics"

    id = Column(Integer, primary_key=True, index=True)
    log_id = Column(Integer, ForeignKey("machine_logs.id"),
                    nullable=False, index=True)
    metric_name = Column(String(255), nullable=False, index=True)
    metric_value = Column(Double, nullable=False)
    log = relationship("MachineLog", back_populates="metrics")
