from sqlalchemy import Column, Integer, String, Text, Boolean, JSON, Index
from sqlalchemy.dialects.postgresql import JSONB
from shared.models.base import Base, TimestampMixin

# JSONB on Postgres, plain JSON elsewhere (SQLite dev deployments)
JsonType = JSON().with_variant(JSONB(), "postgresql")


class ScanRecord(Base, TimestampMixin):
    __tablename__ = "scan_results"

    id = Column(String(36), primary_key=True)
    token_address = Column(String(128), nullable=False)
    chain = Column(String(32), nullable=False)
    token_name = Column(String(100))
    token_symbol = Column(String(32))
    creator_address = Column(String(128))  # lowercased for correlation lookups

    scan_status = Column(String(20), nullable=False)
    risk_score = Column(Integer)  # null for failed scans
    risk_label = Column(String(20))  # safe, caution, danger, critical
    threat_categories = Column(JsonType, default=list)
    degraded_analyses = Column(JsonType, default=list)
    deep_scan = Column(Boolean, default=True)

    # Full signed document, as pinned
    result = Column(JsonType, nullable=False)
    signer = Column(String(128))
    signature = Column(Text)
    storage_hash = Column(String(128))
    storage_error = Column(Text)

    __table_args__ = (
        Index("idx_scan_token", "chain", "token_address"),
        Index("idx_scan_creator", "creator_address"),
        Index("idx_scan_risk", risk_score.desc()),
    )
