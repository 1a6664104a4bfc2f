from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String

from dental_saas.core.database import Base
from utils.dates import utcnow


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String, nullable=False)
    slug = Column(String(50), unique=True, index=True, nullable=False)
    display_name = Column(String, nullable=True)
    subtitle = Column(String, nullable=True)
    logo_url = Column(String, nullable=True)
    primary_color = Column(String(20), nullable=True)
    # Desativada quando a assinatura é cancelada no Stripe.
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
