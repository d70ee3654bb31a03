"""
Security Alert Model

Alerts raised from telemetry and from server-side security events,
reviewed by platform admins.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Text, Index, JSON
from datetime import datetime
from storefront_api.database import Base
import uuid

ALERT_TYPES = (
    "failed_login", "new_device", "suspicious_activity", "rate_limit_exceeded",
    "auth_failure", "security_incident", "account_change",
)
ALERT_SEVERITIES = ("info", "warning", "critical")


class SecurityAlert(Base):
    __tablename__ = "security_alerts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(String(36), nullable=True, index=True)
    tenant_id = Column(String(36), nullable=True, index=True)

    type = Column(String(50), nullable=False)
    severity = Column(String(20), default="info", nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    alert_metadata = Column("metadata", JSON, nullable=True)

    read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_alert_read_created', 'read', 'created_at'),
    )
