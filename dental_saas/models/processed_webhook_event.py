from sqlalchemy import Column, DateTime, String

from dental_saas.core.database import Base
from utils.dates import utcnow


class ProcessedWebhookEvent(Base):
    __tablename__ = "processed_webhook_events"

    event_id = Column(String, primary_key=True)
    event_type = Column(String, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
